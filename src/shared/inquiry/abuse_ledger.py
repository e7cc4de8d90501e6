"""Append-only ledger of policy violations."""

import logging
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from src.shared.inquiry.database import AbuseLogEntry

RATE_LIMIT_EXCEEDED = "rate limit exceeded"


def record_abuse(db: Session, client_address: str, reason: str) -> AbuseLogEntry:
    """Add an entry to the session. The caller owns the commit."""
    entry = AbuseLogEntry(
        client_address=client_address,
        reason=reason,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    logging.warning(f"Abuse ledger: {reason} (client {client_address})")
    return entry


def list_abuse_logs(db: Session, limit: int = 100, offset: int = 0) -> List[AbuseLogEntry]:
    """Newest first."""
    return (
        db.query(AbuseLogEntry)
        .order_by(AbuseLogEntry.created_at.desc(), AbuseLogEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
