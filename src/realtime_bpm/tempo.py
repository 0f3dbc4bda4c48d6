"""Interval histogram and octave-folded tempo candidates.

Peaks at one threshold are compared with their nearest followers; every
distance becomes an interval vote, every interval is folded into the
90-180 BPM band and the votes of equal tempos are merged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Sequence

NEIGHBOR_WINDOW = 10
TEMPO_MIN = 90.0
TEMPO_MAX = 180.0


@dataclass
class IntervalCount:
    interval: int  # samples
    count: int


@dataclass
class TempoCandidate:
    tempo: int  # BPM
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


def identify_intervals(
    peaks: Sequence[int],
    window: int = NEIGHBOR_WINDOW,
) -> list[IntervalCount]:
    """Count sample distances between each peak and its next ``window`` peaks.

    The look-ahead is clamped to the end of ``peaks``. Zero distances are
    dropped. Output keeps first-seen order.
    """
    counts: dict[int, IntervalCount] = {}
    n_peaks = len(peaks)
    for n in range(n_peaks):
        stop = min(n_peaks, n + 1 + int(window))
        for j in range(n + 1, stop):
            interval = abs(int(peaks[j]) - int(peaks[n]))
            if interval == 0:
                continue
            item = counts.get(interval)
            if item is None:
                counts[interval] = IntervalCount(interval, 1)
            else:
                item.count += 1
    return list(counts.values())


def fold_tempo(raw: float, tempo_min: float = TEMPO_MIN, tempo_max: float = TEMPO_MAX) -> int:
    """Fold a raw BPM into [tempo_min, tempo_max] by octaves and round it."""
    if raw <= 0:
        raise ValueError("tempo must be positive")
    t = float(raw)
    while t < tempo_min:
        t *= 2.0
    while t > tempo_max:
        t /= 2.0
    return int(round(t))


def group_by_tempo(sample_rate: float, intervals: Sequence[IntervalCount]) -> list[TempoCandidate]:
    """Convert interval votes to tempo candidates, merging equal folded tempos.

    Args:
        sample_rate: samples per second of the analyzed stream.
        intervals: output of :func:`identify_intervals`.
    """
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    by_tempo: dict[int, TempoCandidate] = {}
    for ic in intervals:
        if ic.interval == 0:
            continue
        raw = 60.0 / (abs(ic.interval) / float(sample_rate))
        tempo = fold_tempo(raw)
        cand = by_tempo.get(tempo)
        if cand is None:
            by_tempo[tempo] = TempoCandidate(tempo, ic.count)
        else:
            cand.count += ic.count
    return list(by_tempo.values())


def top_candidates(candidates: Sequence[TempoCandidate], length: int = 5) -> list[TempoCandidate]:
    # sorted() is stable: equal counts keep their first-seen order
    ranked = sorted(candidates, key=lambda c: c.count, reverse=True)
    return ranked[: max(0, int(length))]
