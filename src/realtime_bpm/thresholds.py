"""Descending amplitude threshold ladder.

Thresholds are stored as integer hundredths (90 == 0.90) so they can be used
as dictionary keys without float comparison drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

START_THRESHOLD = 95  # never visited itself; the first threshold is one step below
MIN_VALID_THRESHOLD = 30
THRESHOLD_STEP = 5


def to_float(threshold: int) -> float:
    return round(threshold / 100.0, 2)


def from_float(value: float) -> int:
    return int(round(float(value) * 100.0))


@dataclass(frozen=True)
class ThresholdLadder:
    start: int = START_THRESHOLD
    step: int = THRESHOLD_STEP
    floor: int = MIN_VALID_THRESHOLD

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError("step must be positive")
        if self.floor >= self.start:
            raise ValueError("floor must be below start")

    def descending(self, floor: Optional[int] = None) -> Iterator[int]:
        """Yield thresholds from the top of the ladder down to ``floor`` (inclusive).

        Callers stop early by breaking out of the loop.
        """
        lowest = self.floor if floor is None else floor
        threshold = self.start - self.step
        while threshold >= lowest:
            yield threshold
            threshold -= self.step

    def ascending(self, floor: Optional[int] = None) -> Iterator[int]:
        return iter(list(self.descending(floor))[::-1])

    def walk(self, visitor: Callable[[int], object], floor: Optional[int] = None) -> None:
        """Call ``visitor`` per threshold, top first; a truthy return stops the walk."""
        for threshold in self.descending(floor):
            if visitor(threshold):
                break

    def __iter__(self) -> Iterator[int]:
        return self.descending()

    def __contains__(self, threshold: object) -> bool:
        if not isinstance(threshold, int):
            return False
        top = self.start - self.step
        return self.floor <= threshold <= top and (top - threshold) % self.step == 0
