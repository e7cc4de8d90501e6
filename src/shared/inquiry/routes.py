"""Inquiry submission route."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db
from src.shared.auth.dependencies import Identity, get_identity, require_user
from src.shared.config import get_settings
from src.shared.inquiry.attachments import AttachmentHandler, get_attachment_handler
from src.shared.inquiry.captcha import get_bot_checker
from src.shared.inquiry.notifications import NotificationDispatcher, get_notifier
from src.shared.inquiry.pipeline import InquiryPipeline, Submission, SUCCESS_MESSAGE
from src.shared.inquiry.rate_limit import SubmissionRateLimiter, get_client_address, get_rate_limiter
from src.shared.inquiry.schemas import SubmitResponse

router = APIRouter(tags=["inquiry"])


@router.post("/submit-form", response_model=SubmitResponse, status_code=status.HTTP_200_OK)
async def submit_form(
    request: Request,
    placement: Optional[str] = Form(None),
    size: Optional[str] = Form(None),
    desc: Optional[str] = Form(None),
    first_name: Optional[str] = Form(None, alias="firstName"),
    last_name: Optional[str] = Form(None, alias="lastName"),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    date_from: Optional[str] = Form(None, alias="dateFrom"),
    date_to: Optional[str] = Form(None, alias="dateTo"),
    captcha_token: Optional[str] = Form(None, alias="g-recaptcha-response"),
    file: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    rate_limiter: SubmissionRateLimiter = Depends(get_rate_limiter),
    bot_checker=Depends(get_bot_checker),
    attachments: AttachmentHandler = Depends(get_attachment_handler),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """
    Submit a tattoo inquiry.

    - Rate limited per client address (fixed window)
    - reCAPTCHA verified before anything is stored
    - Optional JPEG/PNG reference image
    - Stored before any email goes out; email failures do not fail the request
    """
    if get_settings().submit_requires_auth:
        identity = require_user(identity)

    submission = Submission(
        client_address=get_client_address(request),
        fields={
            "placement": placement,
            "size": size,
            "desc": desc,
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "phone": phone,
            "dateFrom": date_from,
            "dateTo": date_to,
        },
        captcha_token=captcha_token,
        upload=file,
        identity=identity if identity.is_authenticated else None,
    )

    pipeline = InquiryPipeline(db, rate_limiter, bot_checker, attachments, notifier)
    await pipeline.run(submission)

    report = submission.notifications
    if report is not None and not (report.studio_sent and report.customer_sent):
        logging.warning(
            f"Inquiry {submission.inquiry.id} stored but emails incomplete "
            f"(studio={report.studio_sent}, customer={report.customer_sent})"
        )

    return SubmitResponse(message=SUCCESS_MESSAGE)
