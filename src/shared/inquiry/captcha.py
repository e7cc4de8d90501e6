"""reCAPTCHA verification for inquiry submissions."""

import logging
from typing import Optional

import httpx

from src.shared.config import get_settings
from src.shared.errors import VerificationError, VerificationUnavailable


class RecaptchaVerifier:
    """
    Verifies a client interaction token against Google's siteverify API.

    A provider outage is reported as VerificationUnavailable rather than
    treated as a pass.
    """

    def __init__(
        self,
        secret: str,
        min_score: float = 0.5,
        timeout: float = 5.0,
        verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret = secret
        self.min_score = min_score
        self.timeout = timeout
        self.verify_url = verify_url
        self._transport = transport

    async def fetch_score(self, token: str, remote_ip: Optional[str] = None) -> float:
        """Ask the provider about the token. Raises on a malformed token."""
        if not self.secret:
            logging.error("RECAPTCHA_SECRET_KEY not configured")
            raise VerificationUnavailable()

        data = {"secret": self.secret, "response": token}
        if remote_ip and remote_ip != "unknown":
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.verify_url, data=data)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPError as e:
            logging.error(f"reCAPTCHA verification request failed: {str(e)}", exc_info=True)
            raise VerificationUnavailable()
        except ValueError:
            logging.error("reCAPTCHA verification returned a non-JSON body")
            raise VerificationUnavailable()

        if not isinstance(result, dict):
            raise VerificationUnavailable()

        if not result.get("success"):
            logging.info(f"reCAPTCHA rejected token: {result.get('error-codes')}")
            raise VerificationError("Verification failed. Please try again.")

        # v2 checkbox responses carry no score; a solved challenge is a pass
        score = result.get("score")
        if score is None:
            return 1.0
        try:
            return float(score)
        except (TypeError, ValueError):
            raise VerificationUnavailable()

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> float:
        """Return the score, or raise when the token is absent, rejected or too low."""
        if not token or not token.strip():
            raise VerificationError("Verification not completed.")

        score = await self.fetch_score(token.strip(), remote_ip)
        if score < self.min_score:
            logging.info(f"reCAPTCHA score {score} below threshold {self.min_score}")
            raise VerificationError("Verification failed. Please try again.")
        return score


class DisabledVerifier:
    """Used when CAPTCHA_ENABLED=false (local development only)."""

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> float:
        return 1.0


def get_bot_checker():
    """Dependency: verifier configured from settings."""
    settings = get_settings()
    if not settings.captcha_enabled:
        return DisabledVerifier()
    return RecaptchaVerifier(
        secret=settings.recaptcha_secret,
        min_score=settings.captcha_min_score,
        timeout=settings.captcha_timeout_seconds,
        verify_url=settings.recaptcha_verify_url,
    )
