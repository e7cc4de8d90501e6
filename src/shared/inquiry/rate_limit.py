"""Fixed-window submission rate limiting, backed by the database.

The counter lives in the ``rate_windows`` table so every instance that shares
the database shares the limit. Windows are aligned to wall-clock multiples of
the window length, so a client can send up to twice the limit across a window
boundary; that is the accepted cost of a fixed window.
"""

import ipaddress
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from fastapi import Request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.shared.config import get_settings
from src.shared.errors import RateLimitError, StorageError
from src.shared.inquiry.abuse_ledger import record_abuse, RATE_LIMIT_EXCEEDED
from src.shared.inquiry.database import RateWindow

EPOCH = datetime(1970, 1, 1)


def _peer_is_trusted(peer: str, trusted_proxies: Iterable[str]) -> bool:
    try:
        peer_ip = ipaddress.ip_address(peer)
    except ValueError:
        return peer in trusted_proxies
    for entry in trusted_proxies:
        try:
            if peer_ip in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            logging.warning(f"Ignoring malformed TRUSTED_PROXIES entry: {entry}")
    return False


def get_client_address(request: Request, trusted_proxies: Optional[Iterable[str]] = None) -> str:
    """
    Client address for rate limiting.

    X-Forwarded-For is only honoured when the direct peer is a trusted proxy;
    otherwise any client could pick its own address and dodge the limit.
    """
    if trusted_proxies is None:
        trusted_proxies = get_settings().trusted_proxies
    peer = request.client.host if request.client and request.client.host else None

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and peer and _peer_is_trusted(peer, trusted_proxies):
        # Take the first IP in the chain
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return peer or "unknown"


class SubmissionRateLimiter:
    """Caps submissions per client address per fixed window."""

    def __init__(
        self,
        max_submissions: int,
        window_seconds: int,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        if max_submissions < 1 or window_seconds < 1:
            raise ValueError("Rate limit and window must both be positive")
        self.max_submissions = max_submissions
        self.window_seconds = window_seconds
        self.clock = clock

    def window_start_for(self, moment: datetime) -> datetime:
        elapsed = int((moment - EPOCH).total_seconds())
        return EPOCH + timedelta(seconds=elapsed - elapsed % self.window_seconds)

    def check(self, db: Session, client_address: str) -> int:
        """
        Count this request against the client's window.

        Returns the request's position within the window. Raises
        RateLimitError (after writing an abuse ledger entry) once the count
        goes past the limit.
        """
        window_start = self.window_start_for(self.clock())
        try:
            count = self._increment(db, client_address, window_start)
        except IntegrityError:
            # Another request created the row first; its insert won, count again
            db.rollback()
            try:
                count = self._increment(db, client_address, window_start)
            except SQLAlchemyError as e:
                db.rollback()
                logging.error(f"Failed to record rate window for {client_address}: {str(e)}", exc_info=True)
                raise StorageError()
        except SQLAlchemyError as e:
            db.rollback()
            logging.error(f"Failed to record rate window for {client_address}: {str(e)}", exc_info=True)
            raise StorageError()

        if count > self.max_submissions:
            raise RateLimitError(
                f"Too many submissions. You can send {self.max_submissions} "
                f"inquiries per {self._window_label()}. Please try again later."
            )
        return count

    def _delete_closed_windows(self, db: Session, current_start: datetime, keep: Optional[str] = None) -> int:
        query = db.query(RateWindow).filter(RateWindow.window_start < current_start)
        if keep is not None:
            query = query.filter(RateWindow.client_address != keep)
        return query.delete(synchronize_session="fetch")

    def _increment(self, db: Session, client_address: str, window_start: datetime) -> int:
        # Other clients' closed windows go in the same commit; this client's row is reused
        self._delete_closed_windows(db, window_start, keep=client_address)
        window = (
            db.query(RateWindow)
            .filter(RateWindow.client_address == client_address)
            .with_for_update()
            .first()
        )
        if window is None:
            window = RateWindow(client_address=client_address, window_start=window_start, count=0)
            db.add(window)
        elif window.window_start != window_start:
            # New window: reset
            window.window_start = window_start
            window.count = 0

        window.count += 1
        count = window.count
        if count > self.max_submissions:
            # Ledger entry commits together with the counter
            record_abuse(db, client_address, RATE_LIMIT_EXCEEDED)
        db.commit()
        return count

    def purge_stale_windows(self, db: Session) -> int:
        """Delete counters from windows that have already closed."""
        current_start = self.window_start_for(self.clock())
        try:
            deleted = self._delete_closed_windows(db, current_start)
            db.commit()
            return deleted
        except SQLAlchemyError as e:
            logging.warning(f"Failed to cleanup old rate windows: {str(e)}")
            db.rollback()
            return 0

    def _window_label(self) -> str:
        if self.window_seconds % 3600 == 0:
            hours = self.window_seconds // 3600
            return "hour" if hours == 1 else f"{hours} hours"
        if self.window_seconds % 60 == 0:
            minutes = self.window_seconds // 60
            return "minute" if minutes == 1 else f"{minutes} minutes"
        return f"{self.window_seconds} seconds"


def get_rate_limiter() -> SubmissionRateLimiter:
    """Dependency: limiter configured from settings."""
    settings = get_settings()
    return SubmissionRateLimiter(
        max_submissions=settings.rate_limit_max_submissions,
        window_seconds=settings.rate_limit_window_seconds,
    )
