"""Amplitude peak scanning and the per-threshold peak ledger."""

from __future__ import annotations

from typing import Iterable

import numpy as np

EXCLUSION_WINDOW = 10_000  # samples skipped after a detection


def find_peaks_at_threshold(
    data: np.ndarray,
    threshold: float,
    offset: int = 0,
    exclusion: int = EXCLUSION_WINDOW,
) -> list[int]:
    """Return within-block offsets of samples strictly above ``threshold``.

    Scanning starts at ``offset``. After a hit the next examined sample is
    ``hit + exclusion``, so one sustained transient yields a single peak.

    Args:
        data: 1D amplitude block.
        threshold: amplitude level in the signal's units (e.g. 0.9).
        offset: first index to examine.
        exclusion: distance to jump after each hit (>=1).
    """
    x = np.asarray(data, dtype=np.float32)
    start = max(0, int(offset))
    if start >= x.size:
        return []
    hits = np.flatnonzero(x[start:] > threshold)
    peaks: list[int] = []
    next_allowed = start
    jump = max(1, int(exclusion))
    for h in hits:
        i = int(h) + start
        if i < next_allowed:
            continue
        peaks.append(i)
        next_allowed = i + jump
    return peaks


class PeakLedger:
    """Peaks found so far and the resume cursor, per threshold.

    Keys are integer thresholds from :mod:`realtime_bpm.thresholds`. Peak lists
    only grow while tracked; :meth:`prune_below` is the only deletion path.
    """

    def __init__(self, thresholds: Iterable[int] = ()) -> None:
        self._peaks: dict[int, list[int]] = {}
        self._cursors: dict[int, int] = {}
        self.reset(thresholds)

    def reset(self, thresholds: Iterable[int]) -> None:
        self._peaks = {t: [] for t in thresholds}
        self._cursors = {t: 0 for t in self._peaks}

    def thresholds(self) -> list[int]:
        """Tracked thresholds, highest first."""
        return sorted(self._peaks, reverse=True)

    def __contains__(self, threshold: object) -> bool:
        return threshold in self._peaks

    def __len__(self) -> int:
        return len(self._peaks)

    def record_peak(self, threshold: int, index: int) -> None:
        peaks = self._peaks[threshold]
        if peaks and index <= peaks[-1]:
            raise ValueError("peaks must be recorded in increasing order")
        peaks.append(int(index))

    def peaks_for(self, threshold: int) -> list[int]:
        return list(self._peaks.get(threshold, ()))

    def count(self, threshold: int) -> int:
        return len(self._peaks.get(threshold, ()))

    def cursor_for(self, threshold: int) -> int:
        return self._cursors[threshold]

    def advance_cursor(self, threshold: int, value: int) -> int:
        # Never moves backward
        cur = max(self._cursors[threshold], int(value))
        self._cursors[threshold] = cur
        return cur

    def prune_below(self, floor: int) -> list[int]:
        """Drop every threshold strictly below ``floor``; returns the dropped keys."""
        dropped = [t for t in self._peaks if t < floor]
        for t in dropped:
            del self._peaks[t]
            del self._cursors[t]
        return dropped
