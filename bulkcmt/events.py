"""Repository-changed notifications with disposable subscriptions."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, List, Optional

from .exceptions import GitError

if TYPE_CHECKING:
    from .git import GitRepo

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Subscription:
    """Handle returned by :meth:`RepositoryEvents.subscribe`."""

    def __init__(self, events: "RepositoryEvents", listener: Listener) -> None:
        self._events: Optional[RepositoryEvents] = events
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._events is not None

    def dispose(self) -> None:
        """Stop receiving notifications. Safe to call more than once."""
        events, self._events = self._events, None
        if events is not None:
            events._remove(self._listener)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


class RepositoryEvents:
    """Explicit observer registry for one repository."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def emit(self) -> None:
        """Call every listener in registration order.

        A listener that raises is logged and skipped; the rest still run.
        """
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:  # noqa: BLE001
                logger.exception("Repository change listener failed")


class RepositoryMonitor:
    """Detects repository changes made outside this process by polling."""

    def __init__(self, repo: GitRepo, events: RepositoryEvents) -> None:
        self.repo = repo
        self.events = events
        self._last: Optional[str] = None

    def check(self) -> bool:
        """Emit and return True when the repository changed since last check.

        The first call only records a baseline.
        """
        try:
            current = self.repo.fingerprint()
        except GitError as exc:
            logger.debug("Fingerprint failed: %s", exc)
            return False
        previous, self._last = self._last, current
        if previous is None or previous == current:
            return False
        self.events.emit()
        return True
