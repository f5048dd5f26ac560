"""
Host Event Bus

The host environment (Streamlit page, CLI, test) publishes what happens
around the app: connectivity changes and user activity. Services subscribe
to the events they care about. Session state changes are published on the
same bus so the UI can react to them.
"""

from datetime import datetime, timezone
from typing import Any, Callable, NamedTuple, Optional

import structlog


logger = structlog.get_logger(__name__)

# Connectivity
ONLINE = "online"
OFFLINE = "offline"

# User activity (any of these resets the inactivity countdown)
MOUSEDOWN = "mousedown"
KEYDOWN = "keydown"
TOUCHSTART = "touchstart"
SCROLL = "scroll"
ACTIVITY_EVENTS = frozenset({MOUSEDOWN, KEYDOWN, TOUCHSTART, SCROLL})

# Session lifecycle
SIGNED_IN = "signed_in"
TOKEN_REFRESHED = "token_refreshed"
SIGNED_OUT = "signed_out"
RELOAD_REQUESTED = "reload_requested"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], Any]


class EventBus:
    """
    Synchronous publish/subscribe.

    Handlers run in subscription order on the publisher's call stack.
    A handler that raises is logged and skipped so one bad subscriber
    cannot starve the others.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Subscribe to an event; returns a function that undoes it."""
        self._subscribers.setdefault(name, []).append(handler)
        return lambda: self.unsubscribe(name, handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, []))

    def publish(self, name: str, payload: Optional[dict] = None) -> list[Any]:
        event = Event(
            name=name,
            ts=datetime.now(timezone.utc).isoformat(),
            payload=payload or {},
        )

        results = []
        for handler in list(self._subscribers.get(name, [])):
            try:
                results.append(handler(event))
            except Exception as e:
                logger.error("event_handler_failed", event_name=name, error=str(e))
        return results


class ConnectivityMonitor:
    """
    Tracks whether the host believes it is online.

    The host calls set_online() when it detects a change; ONLINE and
    OFFLINE are published only on transitions.
    """

    def __init__(self, bus: EventBus, online: bool = True):
        self._bus = bus
        self._online = online

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("connectivity_changed", online=online)
        self._bus.publish(ONLINE if online else OFFLINE, {"online": online})
