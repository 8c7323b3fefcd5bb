"""Post-commit notifications for read-side caches that depend on point totals."""

from typing import Callable

from wildwatch.core.logging import get_logger

log = get_logger(__name__)


class InvalidationHook:
    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def notify(self) -> None:
        """Call every subscriber. A failing subscriber is logged and skipped."""
        for callback in list(self._subscribers):
            try:
                callback()
            except Exception:
                log.exception("cache_hook_failed", hook=self.name, subscriber=getattr(callback, "__qualname__", repr(callback)))


# Fired after any committed transaction that changed a user's points.
points_changed = InvalidationHook("points_changed")
