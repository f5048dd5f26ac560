"""
Session Lifecycle

Keeps the signed-in session alive and ends it when it should end:

1. Refresh: one deadline, refresh_margin before the access token expires.
   When it passes, a silent refresh is attempted; if that fails the user
   is signed out. A successful refresh arms the deadline again for the
   new token.
2. Inactivity: any activity event pushes a second deadline
   inactivity_timeout into the future. When it passes the user is signed
   out and the host is asked to reload.

DESIGN DECISION: Deadlines, not timers. The host calls poll() whenever
it gets control (every Streamlit rerun, a CLI tick, a test step) and
poll() compares the deadlines with the injected clock. There are no
threads and nothing to cancel; a deadline only changes by being reset.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from expense_tracker.events import (
    ACTIVITY_EVENTS,
    RELOAD_REQUESTED,
    SIGNED_IN,
    SIGNED_OUT,
    TOKEN_REFRESHED,
    Event,
    EventBus,
)
from expense_tracker.models.session import Session
from expense_tracker.services.local_storage import LocalStorage
from expense_tracker.services.remote.interface import AuthBackendInterface, RemoteError


logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionExpiredError(Exception):
    """An operation needed a session and there is none (or it ended)."""
    pass


class SessionStore:
    """Persists the session blob in local storage under one key."""

    def __init__(
        self,
        storage: LocalStorage,
        key: str = "expense-tracker-auth",
        clock: Clock = utcnow,
    ):
        self._storage = storage
        self._key = key
        self._clock = clock

    def load(self) -> Optional[Session]:
        """Return the stored session unless it is unreadable or past persist_until."""
        data = self._storage.get_json(self._key)
        if not data:
            return None
        try:
            session = Session.model_validate(data)
        except ValidationError as e:
            logger.warning("stored_session_invalid", error=str(e))
            self.clear()
            return None

        if session.persist_until is not None and self._clock() >= session.persist_until:
            logger.info("stored_session_lapsed", user_id=session.user.id)
            self.clear()
            return None
        return session

    def save(self, session: Session) -> None:
        self._storage.set_json(self._key, session.model_dump(mode="json"))

    def clear(self) -> None:
        self._storage.remove_item(self._key)


class SessionLifecycle:
    """
    Owns the current session.

    Publishes SIGNED_IN, TOKEN_REFRESHED, SIGNED_OUT and RELOAD_REQUESTED
    on the bus and listens for the activity events.
    """

    def __init__(
        self,
        auth: AuthBackendInterface,
        store: SessionStore,
        bus: EventBus,
        inactivity_timeout: timedelta = timedelta(minutes=30),
        refresh_margin: timedelta = timedelta(minutes=5),
        remember_me_lifetime: timedelta = timedelta(days=30),
        default_lifetime: timedelta = timedelta(days=1),
        clock: Clock = utcnow,
        on_token_change: Optional[Callable[[Optional[str]], None]] = None,
    ):
        self._auth = auth
        self._store = store
        self._bus = bus
        self._inactivity_timeout = inactivity_timeout
        self._refresh_margin = refresh_margin
        self._remember_me_lifetime = remember_me_lifetime
        self._default_lifetime = default_lifetime
        self._clock = clock
        self._on_token_change = on_token_change

        self._session: Optional[Session] = None
        self._refresh_deadline: Optional[datetime] = None
        self._inactivity_deadline: Optional[datetime] = None
        self._unsubscribers: list[Callable[[], None]] = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> Optional[Session]:
        """Subscribe to activity events and restore a persisted session, if any."""
        if not self._unsubscribers:
            for name in sorted(ACTIVITY_EVENTS):
                self._unsubscribers.append(self._bus.subscribe(name, self._on_activity))

        if self._session is None:
            restored = self._store.load()
            if restored is not None:
                self._activate(restored)
                logger.info("session_restored", user_id=restored.user.id)
                self._bus.publish(SIGNED_IN, {"user_id": restored.user.id, "restored": True})
        return self._session

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def refresh_deadline(self) -> Optional[datetime]:
        return self._refresh_deadline

    @property
    def inactivity_deadline(self) -> Optional[datetime]:
        return self._inactivity_deadline

    def require_session(self) -> Session:
        if self._session is None:
            raise SessionExpiredError("Not signed in")
        return self._session

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def establish(self, session: Session, remember_me: bool = False) -> Session:
        """Adopt a session returned by sign-in, sign-up or code verification."""
        lifetime = self._remember_me_lifetime if remember_me else self._default_lifetime
        session = session.model_copy(update={"persist_until": self._clock() + lifetime})
        self._store.save(session)
        self._activate(session)
        logger.info("session_established", user_id=session.user.id, remember_me=remember_me)
        self._bus.publish(SIGNED_IN, {"user_id": session.user.id, "restored": False})
        return session

    def record_activity(self) -> None:
        """Push the inactivity deadline back."""
        if self._session is not None:
            self._inactivity_deadline = self._clock() + self._inactivity_timeout

    def poll(self) -> None:
        """Fire whichever deadline has passed. Inactivity wins over refresh."""
        if self._session is None:
            return
        now = self._clock()

        if self._inactivity_deadline is not None and now >= self._inactivity_deadline:
            logger.info("session_inactive", user_id=self._session.user.id)
            self.sign_out(reason="inactivity")
            self._bus.publish(RELOAD_REQUESTED, {"reason": "inactivity"})
            return

        if self._refresh_deadline is not None and now >= self._refresh_deadline:
            self._refresh_deadline = None
            self.refresh()

    def refresh(self) -> bool:
        """
        Trade the refresh token for a new session.

        Returns:
            True on success; on failure the user has been signed out
        """
        current = self.require_session()
        try:
            renewed = self._auth.refresh_session(current.refresh_token)
        except RemoteError as e:
            logger.warning("session_refresh_failed", user_id=current.user.id, error=str(e))
            self.sign_out(reason="refresh_failed")
            return False

        renewed = renewed.model_copy(update={"persist_until": current.persist_until})
        self._store.save(renewed)
        self._session = renewed
        self._arm_refresh()
        self._notify_token(renewed.access_token)
        logger.info("session_refreshed", user_id=renewed.user.id, expires_at=renewed.expires_at.isoformat())
        self._bus.publish(TOKEN_REFRESHED, {"user_id": renewed.user.id})
        return True

    def sign_out(self, reason: str = "user") -> None:
        """
        End the session locally, telling the backend when possible.

        A backend failure is logged; the local session is cleared regardless.
        """
        session = self._session
        if session is not None:
            try:
                self._auth.sign_out(session.access_token)
            except RemoteError as e:
                logger.warning("remote_sign_out_failed", user_id=session.user.id, error=str(e))

        self._session = None
        self._refresh_deadline = None
        self._inactivity_deadline = None
        self._store.clear()
        self._notify_token(None)
        logger.info("signed_out", reason=reason)
        self._bus.publish(SIGNED_OUT, {
            "reason": reason,
            "user_id": session.user.id if session else None,
            "email": session.user.email if session else None,
        })

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _activate(self, session: Session) -> None:
        self._session = session
        self._arm_refresh()
        self.record_activity()
        self._notify_token(session.access_token)

    def _arm_refresh(self) -> None:
        if self._session is not None:
            self._refresh_deadline = self._session.refresh_due_at(self._refresh_margin)

    def _notify_token(self, token: Optional[str]) -> None:
        if self._on_token_change is not None:
            self._on_token_change(token)

    def _on_activity(self, event: Event) -> None:
        self.record_activity()
