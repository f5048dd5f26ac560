"""
Auth Audit Logger and Logging Setup

DESIGN DECISION: Every auth attempt is logged, successful or not.
This provides:
1. Traceability of who signed in from where
2. A record of failed attempts and password resets
3. Debugging capability when users report being signed out

The audit logger:
- Always logs locally through structlog
- Persists to the backend's auth_logs table when storage is configured
- Never raises; a failed audit write must not break sign-in
"""

import logging
from typing import Callable, Optional

import requests
import structlog

from expense_tracker.models.audit import AuthLogBuilder, AuthLogEntry
from expense_tracker.services.remote.interface import AuthLogStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for local JSON logs.

    Safe to call more than once; the last level wins.
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level, logging.INFO))
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
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def lookup_public_ip(url: str, timeout: float = 5.0) -> Optional[str]:
    """Best-effort public IP lookup; None when the service is unreachable."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        return response.json().get("ip")
    except (requests.RequestException, ValueError, AttributeError):
        return None


class AuthAuditLogger:
    """
    Central auth logging service.

    Logs entries both to:
    1. Structured local log (for debugging)
    2. The auth_logs table (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuthLogStorageInterface] = None,
        ip_lookup: Optional[Callable[[], Optional[str]]] = None,
        user_agent: Optional[str] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Backend table for persistence. If None, only logs locally.
            ip_lookup: Returns the client's public IP; called once and cached.
            user_agent: Host description stored with each entry.
        """
        self._storage = storage
        self._ip_lookup = ip_lookup
        self._ip_address: Optional[str] = None
        self._ip_resolved = False
        self._user_agent = user_agent
        self._logger = structlog.get_logger(__name__)

    def _client_ip(self) -> Optional[str]:
        if not self._ip_resolved and self._ip_lookup is not None:
            self._ip_address = self._ip_lookup()
            self._ip_resolved = True
        return self._ip_address

    def log(self, entry: AuthLogEntry) -> bool:
        """
        Log an auth entry.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        entry = entry.model_copy(update={
            "ip_address": entry.ip_address or self._client_ip(),
            "user_agent": entry.user_agent or self._user_agent,
        })

        log_dict = entry.to_log_dict()
        if entry.success:
            self._logger.info("auth_event", **log_dict)
        else:
            self._logger.warning("auth_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_entry(entry)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "auth_log_storage_failed",
                    error=str(e),
                    entry_id=str(entry.entry_id),
                )
                return False

        return True

    def log_login(self, email: str) -> bool:
        return self.log(AuthLogBuilder.login(email))

    def log_login_failed(self, email: str, error_message: str) -> bool:
        return self.log(AuthLogBuilder.login_failed(email, error_message))

    def log_registration(self, email: str) -> bool:
        return self.log(AuthLogBuilder.registration(email))

    def log_registration_failed(self, email: str, error_message: str) -> bool:
        return self.log(AuthLogBuilder.registration_failed(email, error_message))

    def log_reset_code_requested(self, email: str) -> bool:
        return self.log(AuthLogBuilder.reset_code_requested(email))

    def log_password_reset(self, email: str) -> bool:
        return self.log(AuthLogBuilder.password_reset_success(email))

    def log_logout(self, email: str, expired: bool = False) -> bool:
        return self.log(AuthLogBuilder.logout(email, expired=expired))
