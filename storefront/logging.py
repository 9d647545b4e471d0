"""
Structured logging configuration and security event loggers.

structlog is routed through the standard library so uvicorn and SQLAlchemy
records end up in the same stream. Output is JSON by default (LOG_JSON) and
a colourless console renderer otherwise.

Never pass passwords, OTP codes, or tokens to these loggers. The one
exception is ConsoleEmailRelay, which only runs in local development and
whose whole job is to print the message.
"""

import logging
import sys

import structlog
from structlog.stdlib import LoggerFactory

from storefront.config import settings


def configure_logging() -> None:
    """Configure structlog and the stdlib root logger. Called once at startup."""
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.LOG_JSON
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


class SecurityLogger:
    """Security event logging utility."""

    @staticmethod
    def log_login_attempt(
        email: str,
        success: bool,
        portal: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        failure_reason: str | None = None,
    ):
        logger = structlog.get_logger("security.auth")
        logger.info(
            "Login attempt",
            event_type="login_attempt",
            email=email,
            success=success,
            portal=portal,
            ip_address=ip_address,
            user_agent=user_agent,
            failure_reason=failure_reason,
        )

    @staticmethod
    def log_account_locked(user_id: str, email: str, lock_until: str):
        logger = structlog.get_logger("security.auth")
        logger.warning(
            "Account locked",
            event_type="account_locked",
            user_id=user_id,
            email=email,
            lock_until=lock_until,
        )

    @staticmethod
    def log_otp_issued(email: str, purpose: str):
        logger = structlog.get_logger("security.otp")
        logger.info("OTP issued", event_type="otp_issued", email=email, purpose=purpose)

    @staticmethod
    def log_otp_rejected(email: str, purpose: str, reason: str):
        logger = structlog.get_logger("security.otp")
        logger.warning(
            "OTP rejected",
            event_type="otp_rejected",
            email=email,
            purpose=purpose,
            reason=reason,
        )

    @staticmethod
    def log_registration_completed(user_id: str, email: str):
        logger = structlog.get_logger("security.registration")
        logger.info(
            "Registration completed",
            event_type="registration_completed",
            user_id=user_id,
            email=email,
        )

    @staticmethod
    def log_password_changed(user_id: str, via: str):
        logger = structlog.get_logger("security.password")
        logger.info("Password changed", event_type="password_changed", user_id=user_id, via=via)

    @staticmethod
    def log_unauthorized_access(
        path: str,
        method: str,
        reason: str,
        user_id: str | None = None,
    ):
        logger = structlog.get_logger("security.access")
        logger.warning(
            "Unauthorized access attempt",
            event_type="unauthorized_access",
            path=path,
            method=method,
            reason=reason,
            user_id=user_id,
        )

    @staticmethod
    def log_admin_action(admin_id: str, action: str, target_user_id: str):
        logger = structlog.get_logger("security.admin")
        logger.info(
            "Admin action",
            event_type="admin_action",
            admin_id=admin_id,
            action=action,
            target_user_id=target_user_id,
        )
