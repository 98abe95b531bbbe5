"""
Single-slot registry — holds at most one active occupant.

Used for every exclusive audio resource (monitoring session, recording,
playback). Installing a new occupant always releases the previous one
first, so two occupants never coexist.
"""
from __future__ import annotations

import structlog
from typing import Callable, Generic, Optional, TypeVar

logger = structlog.get_logger()

T = TypeVar("T")


class SingleSlot(Generic[T]):

    def __init__(self, name: str, release: Callable[[T], None]):
        self.name = name
        self._release = release
        self._current: Optional[T] = None

    @property
    def current(self) -> Optional[T]:
        return self._current

    @property
    def occupied(self) -> bool:
        return self._current is not None

    def holds(self, occupant: T) -> bool:
        return self._current is occupant

    def replace(self, occupant: T) -> Optional[T]:
        """Release the current occupant (if any), then install `occupant`.

        Returns the occupant that was released.
        """
        previous = self._current
        if previous is not None:
            self._current = None
            self._release(previous)
            logger.debug("slot_released", slot=self.name, reason="replaced")
        self._current = occupant
        return previous

    def compare_and_clear(self, expected: T) -> bool:
        """Release and clear only if `expected` is still the occupant."""
        if self._current is not expected or expected is None:
            return False
        self._current = None
        self._release(expected)
        return True

    def clear(self) -> Optional[T]:
        previous = self._current
        if previous is not None:
            self._current = None
            self._release(previous)
            logger.debug("slot_released", slot=self.name, reason="cleared")
        return previous
