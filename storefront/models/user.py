"""
User model — the principal record.

Each User is a storefront account (customer or admin). This ORM class is the
*internal* principal record: it is the only type that carries the password
hash and the OTP digests. Everything returned to API callers goes through
the Pydantic schemas in storefront/schemas/user.py, which have no secret
fields at all.

Standing:
  - active:       False means the account was banned/deactivated by an admin
  - is_verified:  False until the email address has been proven via OTP
  - account_locked / lock_until: temporary ban after repeated bad passwords

Lockout state machine (checked lazily at the next login, never swept):

    Unlocked --(5th consecutive bad password)--> Locked (lock_until = now + 30m)
    Locked   --(login while lock_until > now)--> Locked (refused, not counted)
    Locked   --(lock_until passed)-------------> evaluated as Unlocked, but the
                                                 failure counter carries over
    any      --(successful login)--------------> Unlocked, counter reset

Login history keeps the most recent LOGIN_HISTORY_LIMIT attempts as a JSON
list on the row; older entries are dropped when a new one is appended.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.clock import ensure_utc, utcnow
from storefront.config import settings
from storefront.database import Base


class Role(str, enum.Enum):
    """
    Defines the role a principal holds within the storefront.

    Inherits from str so the enum value serializes naturally to JSON.
    """
    USER = "user"      # Shopper, the default for every registration
    ADMIN = "admin"    # Store administrator, manages users


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Stored lower-cased and trimmed so lookups are case-insensitive
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # Argon2id hash of the password (never store plaintext!)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[Role] = mapped_column(
        Enum(Role),
        default=Role.USER,
        nullable=False,
    )

    # --- Standing ---
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # --- Lockout ---
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    account_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    login_history: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # --- Password lifecycle ---
    last_password_change: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Password-reset challenge (HMAC digest of the code, never the code itself)
    reset_otp_hash: Mapped[str | None] = mapped_column(String(64))
    reset_otp_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    reset_otp_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Email-verification challenge for principals that exist but are unverified
    register_otp_hash: Mapped[str | None] = mapped_column(String(64))
    register_otp_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    register_otp_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # ------------------------------------------------------------------
    # Password
    # ------------------------------------------------------------------

    def set_password_hash(self, hashed_password: str, now: datetime | None = None) -> None:
        """Store a new hash. Callers validate the plaintext against the policy first."""
        self.hashed_password = hashed_password
        self.last_password_change = now or utcnow()

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    def is_locked(self, now: datetime | None = None) -> bool:
        """True only while the lock flag is set AND lock_until is in the future."""
        now = now or utcnow()
        lock_until = ensure_utc(self.lock_until)
        return bool(self.account_locked and lock_until is not None and lock_until > now)

    def record_login_attempt(
        self,
        successful: bool,
        ip: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Apply the outcome of a password comparison.

        A stale lock (flag still set, lock_until passed) is not cleared on
        failure: the counter keeps counting from where it was, so a principal
        already at the threshold re-locks on the next bad password.
        """
        now = now or utcnow()
        self._append_history(successful, ip, user_agent, now)

        if successful:
            self.failed_login_attempts = 0
            self.account_locked = False
            self.lock_until = None
            self.last_login = now
            return

        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= settings.MAX_FAILED_LOGIN_ATTEMPTS:
            self.account_locked = True
            self.lock_until = now + timedelta(minutes=settings.LOCKOUT_MINUTES)

    def record_locked_attempt(
        self,
        ip: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Audit a login refused by an active lock. The counter is left alone."""
        self._append_history(False, ip, user_agent, now or utcnow())

    def _append_history(
        self,
        successful: bool,
        ip: str | None,
        user_agent: str | None,
        now: datetime,
    ) -> None:
        entry = {
            "timestamp": now.isoformat(),
            "ip": ip,
            "user_agent": user_agent,
            "successful": successful,
        }
        # Reassign rather than append so SQLAlchemy notices the JSON change
        history = [*(self.login_history or []), entry]
        self.login_history = history[-settings.LOGIN_HISTORY_LIMIT:]
