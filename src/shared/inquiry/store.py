"""Durable storage of validated inquiries."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.shared.auth.dependencies import Identity
from src.shared.errors import StorageError
from src.shared.inquiry.database import Inquiry
from src.shared.inquiry.input_validation import CleanInquiry


def _next_created_at(db: Session) -> datetime:
    """Server timestamp, bumped past the newest row if the clock has not advanced."""
    now = datetime.utcnow()
    latest = db.query(func.max(Inquiry.created_at)).scalar()
    if latest is not None and latest >= now:
        return latest + timedelta(microseconds=1)
    return now


def save_inquiry(
    db: Session,
    clean: CleanInquiry,
    attachment_url: Optional[str] = None,
    identity: Optional[Identity] = None,
) -> Inquiry:
    """
    Insert one inquiry in a single transaction.

    Raises StorageError (after rolling back) if the row cannot be committed;
    nothing downstream may run in that case.
    """
    try:
        inquiry = Inquiry(
            first_name=clean.first_name,
            last_name=clean.last_name,
            email=clean.email,
            phone=clean.phone,
            placement=clean.placement,
            size=clean.size,
            description=clean.description,
            date_from=clean.date_from,
            date_to=clean.date_to,
            attachment_url=attachment_url,
            submitter_id=identity.subject_id if identity is not None else None,
            created_at=_next_created_at(db),
        )
        db.add(inquiry)
        db.commit()
        db.refresh(inquiry)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to save inquiry from {clean.email}: {str(e)}", exc_info=True)
        raise StorageError()

    logging.info(f"Saved inquiry {inquiry.id} from {clean.email}")
    return inquiry


def list_inquiries(db: Session, limit: int = 100, offset: int = 0) -> List[Inquiry]:
    """Newest first."""
    return (
        db.query(Inquiry)
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
