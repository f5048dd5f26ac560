"""
Pending Action Queue

Buffers backend mutations that failed because the network was gone and
replays them when connectivity returns.

Semantics:
- enqueue appends at the tail and persists the whole list immediately
- a drain snapshots the list and clears it (memory and storage) before
  running anything, so no action runs twice within one drain
- an action that raises during replay goes back at the TAIL, not its
  old position, and the drain carries on with the next one
- there is no backoff between replays; backoff lives in fetch_with_retry

Delivery is at-least-once. A crash in the middle of a drain loses the
snapshot entries that had not yet failed.
"""

from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from expense_tracker.events import ONLINE, Event, EventBus
from expense_tracker.models.actions import PendingAction, ReplayReport
from expense_tracker.offline.dispatcher import ActionDispatcher
from expense_tracker.services.local_storage import LocalStorage


logger = structlog.get_logger(__name__)

DEFAULT_STORAGE_KEY = "pendingActions"


class PendingActionQueue:
    """
    Ordered, persisted list of deferred mutations.

    Lifecycle: start() reloads what a previous process left behind (once
    per instance) and subscribes to ONLINE; stop() unsubscribes.
    """

    def __init__(
        self,
        storage: LocalStorage,
        dispatcher: ActionDispatcher,
        bus: Optional[EventBus] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        max_attempts: Optional[int] = None,
    ):
        """
        Args:
            storage: Where the list is persisted after every change
            dispatcher: Runs an action against the backend
            bus: Event bus to listen on for ONLINE; None means drains are manual
            storage_key: Local storage key for the serialized list
            max_attempts: Drop an action after this many failed replays.
                          None keeps retrying forever.
        """
        self._storage = storage
        self._dispatcher = dispatcher
        self._bus = bus
        self._storage_key = storage_key
        self._max_attempts = max_attempts
        self._actions: list[PendingAction] = []
        self._loaded = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> "PendingActionQueue":
        if not self._loaded:
            restored = self._load()
            self._actions = restored + self._actions
            self._loaded = True
            if restored:
                logger.info("pending_actions_restored", count=len(restored))
        if self._bus is not None and self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(ONLINE, self._on_online)
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def __enter__(self) -> "PendingActionQueue":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -------------------------------------------------------------------------
    # Queue operations
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> list[PendingAction]:
        return list(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def enqueue(self, action: PendingAction) -> None:
        """Append an action at the tail and persist."""
        self._actions.append(action)
        self._save()
        logger.info(
            "pending_action_enqueued",
            action_id=action.action_id,
            operation=action.operation.value,
            queue_length=len(self._actions),
        )

    def drain_and_replay(self) -> ReplayReport:
        """
        Replay every queued action once, in order.

        Returns:
            Which actions succeeded, went back on the queue, or were dropped
        """
        snapshot = self._actions
        self._actions = []
        self._save()

        report = ReplayReport()
        for action in snapshot:
            try:
                self._dispatcher.dispatch(action)
            except Exception as e:
                failed = action.model_copy(update={"attempts": action.attempts + 1})
                if self._max_attempts is not None and failed.attempts >= self._max_attempts:
                    logger.error(
                        "pending_action_dropped",
                        action_id=action.action_id,
                        operation=action.operation.value,
                        attempts=failed.attempts,
                        error=str(e),
                    )
                    report.dropped.append(action.action_id)
                else:
                    logger.warning(
                        "pending_action_failed",
                        action_id=action.action_id,
                        operation=action.operation.value,
                        attempts=failed.attempts,
                        error=str(e),
                    )
                    self.enqueue(failed)
                    report.requeued.append(action.action_id)
            else:
                report.succeeded.append(action.action_id)

        if snapshot:
            logger.info(
                "pending_actions_replayed",
                succeeded=len(report.succeeded),
                requeued=len(report.requeued),
                dropped=len(report.dropped),
            )
        return report

    def clear(self) -> None:
        """Forget every queued action (used on sign-out)."""
        self._actions = []
        self._save()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _on_online(self, event: Event) -> ReplayReport:
        return self.drain_and_replay()

    def _save(self) -> None:
        self._storage.set_json(
            self._storage_key,
            [action.model_dump(mode="json") for action in self._actions],
        )

    def _load(self) -> list[PendingAction]:
        raw = self._storage.get_json(self._storage_key, default=[])
        if not isinstance(raw, list):
            logger.warning("pending_actions_unreadable", key=self._storage_key)
            return []

        actions = []
        for item in raw:
            try:
                actions.append(PendingAction.model_validate(item))
            except ValidationError as e:
                logger.warning("pending_action_discarded", error=str(e))
        return actions
