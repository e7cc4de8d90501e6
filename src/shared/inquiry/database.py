"""Database models for inquiries, the abuse ledger and submission rate windows."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Text

# Import Base from auth database to use the same declarative base
from src.shared.auth.database import Base


class Inquiry(Base):
    """A customer's tattoo request. Written once, never updated."""
    __tablename__ = "inquiries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(32), nullable=True)  # Digits only
    placement = Column(String, nullable=False)
    size = Column(String, nullable=False)  # e.g. "3x5 in"
    description = Column(Text, nullable=False)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    attachment_url = Column(String, nullable=True)
    submitter_id = Column(String, nullable=True)  # Set only for signed-in submitters
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class AbuseLogEntry(Base):
    """Append-only record of a rejected or suspicious request."""
    __tablename__ = "abuse_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_address = Column(String, nullable=False)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        Index('idx_abuse_logs_client_created', 'client_address', 'created_at'),
    )


class RateWindow(Base):
    """Fixed-window submission counter, one row per client address."""
    __tablename__ = "rate_windows"

    client_address = Column(String, primary_key=True)
    window_start = Column(DateTime, nullable=False)
    count = Column(Integer, default=0, nullable=False)
