"""Process-wide holder for the shared session pool."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class SharedPoolSlot(Generic[T]):
    """A slot holding zero or one pool, changed only by compare-and-set.

    Reads are unsynchronized; a reference assignment is atomic, and the
    slot is written once per process outside of tests.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: T | None = None

    def get(self) -> T | None:
        return self._value

    def compare_and_set(self, expected: T | None, new: T | None) -> bool:
        """Set new only if the slot still holds expected (by identity)."""
        with self._lock:
            if self._value is not expected:
                return False
            self._value = new
            return True

    def install_if_absent(
        self,
        factory: Callable[[], T],
        discard: Callable[[T], None] | None = None,
    ) -> tuple[T, bool]:
        """Install factory() unless a value is already present.

        A candidate that loses the race is passed to discard.

        Returns:
            (installed value, True if this call installed it)

        Raises:
            RuntimeError: If the slot was cleared while this call was installing.
        """
        current = self._value
        if current is not None:
            return current, False

        candidate = factory()
        if self.compare_and_set(None, candidate):
            return candidate, True

        if discard is not None:
            discard(candidate)
        winner = self._value
        if winner is None:
            raise RuntimeError("shared pool cleared during install")
        return winner, False

    def clear(self) -> T | None:
        """Empty the slot and return what it held (useful for testing)."""
        with self._lock:
            value, self._value = self._value, None
            return value
