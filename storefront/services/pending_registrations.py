"""
In-memory store for registrations that are waiting for OTP confirmation.

A registration is not written to the database until its OTP is confirmed, so
the submitted fields live here in the meantime. Entries are keyed by the
normalised email (one pending registration per address; a new submission
replaces the old one) and expire OTP_EXPIRE_MINUTES after submission.

Expired entries are evicted whenever the store is touched; there is no
background sweeper. Losing the process loses pending registrations, which
only means the user has to submit the form again.

The store is handed to the registration service through the
get_pending_registrations dependency, so tests (and a future shared backend)
can replace it.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from storefront.clock import utcnow
from storefront.config import settings


@dataclass(frozen=True)
class PendingRegistration:
    name: str
    email: str
    phone: str
    hashed_password: str
    otp_hash: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class PendingRegistrationStore:
    def __init__(self, ttl: timedelta):
        self.ttl = ttl
        self._lock = threading.Lock()
        self._entries: dict[str, PendingRegistration] = {}

    def put(self, entry: PendingRegistration, now: datetime | None = None) -> None:
        with self._lock:
            self._purge_locked(now or utcnow())
            self._entries[entry.email] = entry

    def get(self, email: str, now: datetime | None = None) -> PendingRegistration | None:
        """Return the live entry for email, dropping it first if it has expired."""
        now = now or utcnow()
        with self._lock:
            entry = self._entries.get(email)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[email]
                return None
            return entry

    def discard(self, email: str) -> None:
        with self._lock:
            self._entries.pop(email, None)

    def purge_expired(self, now: datetime | None = None) -> int:
        with self._lock:
            return self._purge_locked(now or utcnow())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_locked(self, now: datetime) -> int:
        expired = [email for email, entry in self._entries.items() if entry.is_expired(now)]
        for email in expired:
            del self._entries[email]
        return len(expired)


_pending_registrations = PendingRegistrationStore(
    ttl=timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
)


def get_pending_registrations() -> PendingRegistrationStore:
    """FastAPI dependency returning the process-wide pending registration store."""
    return _pending_registrations
