"""Value watchers for the formstate engine.

This module provides the subscription registry used to notify consumers when
values change. Subscribers listen either to a specific field path or to the
whole value tree (the "*" wildcard).

Notification is synchronous and ordered deepest path first: when a commit
touches ``"address.city"``, a subscriber on ``"address.city"`` is called
before a subscriber on ``"address"``, so a subscriber on a whole sub-object
always sees fully updated children. Wildcard subscribers are called last.
"""

import logging
from copy import deepcopy
from typing import Any, Callable, Dict, Iterable, List, Optional

from formstate.paths import get_value, is_path_prefix, parse_path
from formstate.types import WATCH_ALL

logger = logging.getLogger(__name__)


WatchCallback = Callable[[str, Any], None]
"""Type alias for watch callbacks.

Callbacks receive the subscribed path (or "*") and a copy of the value at
that path. They are called synchronously after a value commit.
"""


class Watcher:
    """Subscription registry keyed by field path.

    Features:
    - Path-specific subscriptions (notified when the path, an ancestor or a
      descendant changes)
    - Wildcard subscriptions (notified on every commit)
    - Deepest-first dispatch, in registration order within a depth
    - Error isolation (a failing subscriber does not affect the others)

    Examples:
        >>> watcher = Watcher()
        >>> seen = []
        >>> unsubscribe = watcher.subscribe("address", lambda path, value: seen.append(value))
        >>> watcher.notify({"address": {"city": "Oslo"}}, ["address.city"])
        >>> seen
        [{'city': 'Oslo'}]
        >>> unsubscribe()
        >>> watcher.listener_count()
        0
    """

    def __init__(self):
        """Initialize watcher with empty subscription registries."""
        self._listeners: Dict[str, List[WatchCallback]] = {}
        self._any_listeners: List[WatchCallback] = []

    def subscribe(self, path: str, callback: WatchCallback) -> Callable[[], None]:
        """Subscribe to changes at path, or to every change with "*".

        Returns:
            A function that removes this subscription

        Raises:
            InvalidPathError: If path is neither "*" nor a valid field name
        """
        if path == WATCH_ALL:
            self._any_listeners.append(callback)
        else:
            parse_path(path)
            self._listeners.setdefault(path, []).append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(path, callback)

        return unsubscribe

    def unsubscribe(self, path: str, callback: WatchCallback) -> None:
        """Remove one subscription; unknown subscriptions are ignored."""
        listeners = self._any_listeners if path == WATCH_ALL else self._listeners.get(path, [])
        if callback in listeners:
            listeners.remove(callback)
        if path != WATCH_ALL and path in self._listeners and not self._listeners[path]:
            del self._listeners[path]

    def detach(self, path: str) -> None:
        """Drop every subscription at path or below it."""
        for subscribed in [p for p in self._listeners if is_path_prefix(path, p)]:
            del self._listeners[subscribed]

    def notify(self, values: Any, changed: Iterable[str]) -> None:
        """Dispatch a commit of the changed paths to affected subscribers.

        Args:
            values: The value tree after the commit
            changed: Field names whose values were written
        """
        changed = list(changed)
        affected = [
            path
            for path in self._listeners
            if any(is_path_prefix(c, path) or is_path_prefix(path, c) for c in changed)
        ]
        # sorted() is stable, so registration order holds within a depth
        affected = sorted(affected, key=lambda p: len(parse_path(p)), reverse=True)

        for path in affected:
            value = get_value(values, path)
            for callback in list(self._listeners.get(path, [])):
                self._dispatch(callback, path, value)
        self.notify_all(values)

    def notify_all(self, values: Any, paths: Optional[Iterable[str]] = None) -> None:
        """Dispatch to wildcard subscribers, and to paths if given."""
        for path in sorted(paths or [], key=lambda p: len(parse_path(p)), reverse=True):
            value = get_value(values, path)
            for callback in list(self._listeners.get(path, [])):
                self._dispatch(callback, path, value)
        for callback in list(self._any_listeners):
            self._dispatch(callback, WATCH_ALL, values)

    def _dispatch(self, callback: WatchCallback, path: str, value: Any) -> None:
        try:
            callback(path, deepcopy(value))
        except Exception:
            logger.exception("Watch subscriber for %r raised", path)

    def paths(self) -> List[str]:
        """Paths that currently have subscribers (excluding "*")."""
        return list(self._listeners)

    def listener_count(self, path: Optional[str] = None) -> int:
        """Number of subscriptions, for path only when given."""
        if path == WATCH_ALL:
            return len(self._any_listeners)
        if path is not None:
            return len(self._listeners.get(path, []))
        return len(self._any_listeners) + sum(len(ls) for ls in self._listeners.values())


__all__ = [
    "Watcher",
    "WatchCallback",
]
