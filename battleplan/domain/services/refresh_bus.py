from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class RefreshBus:
    """Publish/subscribe channel keyed by owner.

    Mutations publish for the owner they touched; display state for that
    owner subscribes and invalidates itself. One instance lives for the
    whole application.
    """

    def __init__(self) -> None:
        self._listeners: dict[tuple[str, str], list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, kind: str, owner_id: str, listener: Listener) -> Callable[[], None]:
        key = (kind, str(owner_id))
        with self._lock:
            self._listeners[key].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                    if not listeners:
                        del self._listeners[key]

        return unsubscribe

    def publish(self, kind: str, owner_id: str) -> int:
        """Notify every listener of one owner; returns how many were called."""
        with self._lock:
            listeners = list(self._listeners.get((kind, str(owner_id)), ()))
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Refresh listener failed for %s/%s", kind, owner_id)
        return len(listeners)

    def subscriber_count(self, kind: str, owner_id: str) -> int:
        with self._lock:
            return len(self._listeners.get((kind, str(owner_id)), ()))
