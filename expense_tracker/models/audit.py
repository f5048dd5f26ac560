"""
Auth Audit Models

Every sign-in, registration and password reset attempt is recorded in the
backend's auth_logs table, successful or not.

DESIGN DECISION: Auth logs are append-only. The client only ever inserts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuthLogEvent(str, Enum):
    """Auth events we record."""
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    REGISTRATION = "registration"
    REGISTRATION_FAILED = "registration_failed"
    RESET_CODE_REQUESTED = "reset_code_requested"
    PASSWORD_RESET_SUCCESS = "password_reset_success"
    LOGOUT = "logout"
    SESSION_EXPIRED = "session_expired"


class AuthLogEntry(BaseModel):
    """
    A single auth log row.

    ip_address and user_agent are best effort; they stay None when the
    lookup fails or the host does not know them.
    """

    entry_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )
    event: AuthLogEvent
    user_email: str
    success: bool
    error_message: Optional[str] = Field(default=None, max_length=1000)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def to_log_dict(self) -> dict[str, Any]:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "entry_id": str(self.entry_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event.value,
            "user_email": self.user_email,
            "success": self.success,
            "error_message": self.error_message,
        }

    def to_payload(self) -> dict[str, Any]:
        """Row for the auth_logs table."""
        payload = {
            "event": self.event.value,
            "user_email": self.user_email,
            "success": self.success,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }
        if self.error_message:
            payload["error_message"] = self.error_message
        return payload


class AuthLogBuilder:
    """
    Helper class to build auth log entries with common patterns.

    Usage:
        entry = AuthLogBuilder.login("me@example.com")
        entry = AuthLogBuilder.login_failed("me@example.com", "Invalid login credentials")
    """

    @staticmethod
    def login(email: str) -> AuthLogEntry:
        return AuthLogEntry(event=AuthLogEvent.LOGIN, user_email=email, success=True)

    @staticmethod
    def login_failed(email: str, error_message: str) -> AuthLogEntry:
        return AuthLogEntry(
            event=AuthLogEvent.LOGIN_FAILED,
            user_email=email,
            success=False,
            error_message=error_message,
        )

    @staticmethod
    def registration(email: str) -> AuthLogEntry:
        return AuthLogEntry(event=AuthLogEvent.REGISTRATION, user_email=email, success=True)

    @staticmethod
    def registration_failed(email: str, error_message: str) -> AuthLogEntry:
        return AuthLogEntry(
            event=AuthLogEvent.REGISTRATION_FAILED,
            user_email=email,
            success=False,
            error_message=error_message,
        )

    @staticmethod
    def reset_code_requested(email: str) -> AuthLogEntry:
        return AuthLogEntry(
            event=AuthLogEvent.RESET_CODE_REQUESTED,
            user_email=email,
            success=True,
        )

    @staticmethod
    def password_reset_success(email: str) -> AuthLogEntry:
        return AuthLogEntry(
            event=AuthLogEvent.PASSWORD_RESET_SUCCESS,
            user_email=email,
            success=True,
        )

    @staticmethod
    def logout(email: str, expired: bool = False) -> AuthLogEntry:
        return AuthLogEntry(
            event=AuthLogEvent.SESSION_EXPIRED if expired else AuthLogEvent.LOGOUT,
            user_email=email,
            success=True,
        )
