"""Inquiry emails: studio notification and customer acknowledgment.

Both are best-effort. By the time they are sent the inquiry is already stored,
so a failed send is logged and reported but never fails the request.
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from src.shared.config import get_settings
from src.shared.errors import NotificationError
from src.shared.inquiry.input_validation import CleanInquiry


class ResendMailer:
    """Sends email through the Resend HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, to: str, subject: str, html_body: str, text_body: str,
                   reply_to: Optional[str] = None) -> None:
        if not self.api_key or not self.from_email:
            raise NotificationError("Email provider not configured")

        payload = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        if reply_to:
            payload["reply_to"] = reply_to

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Email send to {to} failed: {str(e) or type(e).__name__}") from e


@dataclass
class NotificationReport:
    studio_sent: bool = False
    customer_sent: bool = False


def _availability(clean: CleanInquiry) -> str:
    return f"{clean.date_from.isoformat()} - {clean.date_to.isoformat()}"


def build_studio_email(clean: CleanInquiry, attachment_url: Optional[str]):
    """Subject, HTML and text for the studio. Free-text fields arrive escaped."""
    subject = f"New Inquiry from {html.unescape(clean.full_name)}"
    phone = clean.phone or "N/A"
    email = html.escape(clean.email)

    attachment_html = ""
    attachment_text = ""
    if attachment_url:
        safe_url = html.escape(attachment_url)
        attachment_html = f'<p><strong>Reference image:</strong> <a href="{safe_url}">{safe_url}</a></p>'
        attachment_text = f"Reference image: {attachment_url}\n"

    html_body = f"""
<h2>New Tattoo Inquiry</h2>
<p><strong>Name:</strong> {clean.full_name}</p>
<p><strong>Email:</strong> {email}</p>
<p><strong>Phone:</strong> {phone}</p>
<p><strong>Placement:</strong> {clean.placement}</p>
<p><strong>Size:</strong> {clean.size}</p>
<p><strong>Description:</strong> {clean.description}</p>
<p><strong>Availability:</strong> {_availability(clean)}</p>
{attachment_html}
"""

    text_body = f"""
New tattoo inquiry

Name: {html.unescape(clean.full_name)}
Email: {clean.email}
Phone: {phone}
Placement: {html.unescape(clean.placement)}
Size: {html.unescape(clean.size)}
Description:
{html.unescape(clean.description)}

Availability: {_availability(clean)}
{attachment_text}
Reply directly to this email to respond to {html.unescape(clean.first_name)}.
"""
    return subject, html_body, text_body


def build_customer_email(clean: CleanInquiry, studio_name: str):
    """Subject, HTML and text for the customer's acknowledgment."""
    studio = html.escape(studio_name)
    subject = "We received your tattoo inquiry"

    html_body = f"""
<p>Hi {clean.first_name},</p>
<p>Thanks for reaching out to {studio}! We received your inquiry and will get back to you soon.</p>
<p><strong>Your request</strong></p>
<ul>
  <li>Placement: {clean.placement}</li>
  <li>Size: {clean.size}</li>
  <li>Availability: {_availability(clean)}</li>
</ul>
<p>If anything changes, just reply to this email.</p>
"""

    text_body = f"""
Hi {html.unescape(clean.first_name)},

Thanks for reaching out to {studio_name}! We received your inquiry and will get back to you soon.

Your request
  Placement: {html.unescape(clean.placement)}
  Size: {html.unescape(clean.size)}
  Availability: {_availability(clean)}

If anything changes, just reply to this email.
"""
    return subject, html_body, text_body


class NotificationDispatcher:
    """Sends both inquiry emails concurrently, each independently."""

    def __init__(self, mailer, studio_address: str, studio_name: str = "the studio"):
        self.mailer = mailer
        self.studio_address = studio_address
        self.studio_name = studio_name

    async def _attempt(self, label: str, to: str, subject: str, html_body: str, text_body: str,
                       reply_to: Optional[str] = None) -> bool:
        try:
            if not to:
                raise NotificationError(f"No recipient configured for {label} email")
            await self.mailer.send(to, subject, html_body, text_body, reply_to=reply_to)
        except NotificationError as e:
            logging.error(f"Failed to send {label} email: {e.message}")
            return False
        except Exception as e:
            logging.error(f"Failed to send {label} email: {str(e)}", exc_info=True)
            return False
        logging.info(f"Sent {label} email to {to}")
        return True

    async def notify(self, clean: CleanInquiry, attachment_url: Optional[str] = None) -> NotificationReport:
        studio_subject, studio_html, studio_text = build_studio_email(clean, attachment_url)
        customer_subject, customer_html, customer_text = build_customer_email(clean, self.studio_name)

        studio_sent, customer_sent = await asyncio.gather(
            self._attempt("studio", self.studio_address, studio_subject, studio_html, studio_text,
                          reply_to=clean.email),
            self._attempt("customer", clean.email, customer_subject, customer_html, customer_text,
                          reply_to=self.studio_address or None),
        )
        return NotificationReport(studio_sent=studio_sent, customer_sent=customer_sent)


def get_notifier() -> NotificationDispatcher:
    """Dependency: dispatcher configured from settings."""
    settings = get_settings()
    mailer = ResendMailer(
        api_key=settings.resend_api_key,
        from_email=settings.from_email,
        api_url=settings.resend_api_url,
        timeout=settings.email_timeout_seconds,
    )
    return NotificationDispatcher(mailer, studio_address=settings.to_email, studio_name=settings.studio_name)
