"""The inquiry submission pipeline.

Steps run strictly in order and each one must succeed before the next:

    Received -> RateChecked -> BotVerified -> AttachmentResolved
             -> Validated -> Stored -> Notified -> Responded

Any rejection short-circuits to the response. Storage failure is fatal;
notification failure is not, because the stored row is the source of truth.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from src.shared.auth.dependencies import Identity
from src.shared.errors import (
    AttachmentError,
    RateLimitError,
    ServiceError,
    StorageError,
    ValidationError,
    VerificationError,
    VerificationUnavailable,
)
from src.shared.inquiry.attachments import AttachmentHandler
from src.shared.inquiry.database import Inquiry
from src.shared.inquiry.input_validation import validate_inquiry
from src.shared.inquiry.notifications import NotificationDispatcher, NotificationReport
from src.shared.inquiry.rate_limit import SubmissionRateLimiter
from src.shared.inquiry.store import save_inquiry

SUCCESS_MESSAGE = "Inquiry submitted successfully!"


class SubmissionStage(str, enum.Enum):
    RECEIVED = "received"
    RATE_CHECKED = "rate_checked"
    BOT_VERIFIED = "bot_verified"
    ATTACHMENT_RESOLVED = "attachment_resolved"
    VALIDATED = "validated"
    STORED = "stored"
    NOTIFIED = "notified"
    RESPONDED = "responded"

    REJECTED_RATE_LIMIT = "rejected_rate_limit"
    REJECTED_BOT_CHECK = "rejected_bot_check"
    REJECTED_ATTACHMENT = "rejected_attachment"
    REJECTED_VALIDATION = "rejected_validation"
    FAILED_STORAGE = "failed_storage"


# Error type -> terminal stage
FAILURE_STAGES = (
    (RateLimitError, SubmissionStage.REJECTED_RATE_LIMIT),
    (VerificationError, SubmissionStage.REJECTED_BOT_CHECK),
    (VerificationUnavailable, SubmissionStage.REJECTED_BOT_CHECK),
    (AttachmentError, SubmissionStage.REJECTED_ATTACHMENT),
    (ValidationError, SubmissionStage.REJECTED_VALIDATION),
    (StorageError, SubmissionStage.FAILED_STORAGE),
)


@dataclass
class Submission:
    """Inputs and progress of one submission request."""
    client_address: str
    fields: Dict[str, Optional[str]]
    captcha_token: Optional[str] = None
    upload: Optional[UploadFile] = None
    identity: Optional[Identity] = None
    stage: SubmissionStage = SubmissionStage.RECEIVED
    history: List[SubmissionStage] = field(default_factory=list)
    inquiry: Optional[Inquiry] = None
    attachment_url: Optional[str] = None
    notifications: Optional[NotificationReport] = None

    def advance(self, stage: SubmissionStage) -> None:
        self.history.append(self.stage)
        self.stage = stage
        logging.debug(f"Submission from {self.client_address}: {stage.value}")


def failure_stage(error: ServiceError) -> SubmissionStage:
    for error_type, stage in FAILURE_STAGES:
        if isinstance(error, error_type):
            return stage
    return SubmissionStage.FAILED_STORAGE


class InquiryPipeline:
    """Wires the pipeline's collaborators together for one request."""

    def __init__(
        self,
        db: Session,
        rate_limiter: SubmissionRateLimiter,
        bot_checker,
        attachments: AttachmentHandler,
        notifier: NotificationDispatcher,
        today: Optional[date] = None,
    ):
        self.db = db
        self.rate_limiter = rate_limiter
        self.bot_checker = bot_checker
        self.attachments = attachments
        self.notifier = notifier
        self.today = today

    async def run(self, submission: Submission) -> Submission:
        """Run every step. Raises the step's ServiceError on rejection."""
        try:
            self.rate_limiter.check(self.db, submission.client_address)
            submission.advance(SubmissionStage.RATE_CHECKED)

            await self.bot_checker.verify(submission.captcha_token, submission.client_address)
            submission.advance(SubmissionStage.BOT_VERIFIED)

            submission.attachment_url = await self.attachments.store_upload(submission.upload)
            submission.advance(SubmissionStage.ATTACHMENT_RESOLVED)

            clean = validate_inquiry(submission.fields, today=self.today)
            submission.advance(SubmissionStage.VALIDATED)

            submission.inquiry = save_inquiry(self.db, clean, submission.attachment_url, submission.identity)
            submission.advance(SubmissionStage.STORED)
        except ServiceError as e:
            submission.advance(failure_stage(e))
            logging.info(
                f"Submission from {submission.client_address} ended in "
                f"{submission.stage.value}: {e.message}"
            )
            if submission.attachment_url and not isinstance(e, StorageError):
                logging.info(f"Attachment {submission.attachment_url} kept for a rejected submission")
            raise

        submission.notifications = await self.notifier.notify(clean, submission.attachment_url)
        submission.advance(SubmissionStage.NOTIFIED)
        return submission
