from __future__ import annotations

from typing import Any, Callable

DEFAULT_THRESHOLD = 0.1


class VisibilityTrigger:
    """Fire a callback once when an element becomes visible enough.

    Mirrors an intersection observer: callers report the visible ratio of
    the element and the trigger fires the first time it reaches
    ``threshold``, then stops observing until it is re-armed.
    """

    def __init__(self, callback: Callable[[], Any], threshold: float = DEFAULT_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("Visibility threshold must be between 0 and 1")
        self._callback = callback
        self.threshold = threshold
        self._observing = True

    @property
    def observing(self) -> bool:
        return self._observing

    def notify(self, ratio: float) -> Any:
        """Report the current intersection ratio.

        Returns whatever the callback returned when it fired, else ``None``.
        """
        if not self._observing or ratio <= 0.0 or ratio < self.threshold:
            return None
        self._observing = False
        return self._callback()

    def rearm(self) -> None:
        self._observing = True

    def disconnect(self) -> None:
        self._observing = False
