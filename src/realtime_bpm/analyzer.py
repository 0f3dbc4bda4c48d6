"""Incremental BPM analyzer fed one fixed-size audio block at a time.

Peaks are collected per amplitude threshold across blocks. On each block the
highest threshold with enough peaks wins, its peak intervals are turned into
tempo candidates, and the reliability floor is raised to that threshold when
it improves. With continuous analysis enabled, a stabilization deadline
resets everything when no block arrives in time so detection starts over.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from .peaks import EXCLUSION_WINDOW, PeakLedger, find_peaks_at_threshold
from .tempo import TempoCandidate, group_by_tempo, identify_intervals, top_candidates
from .thresholds import MIN_VALID_THRESHOLD, ThresholdLadder, from_float, to_float

logger = logging.getLogger(__name__)

MIN_PEAKS = 15
TOP_CANDIDATES = 5

MESSAGE_BPM = "BPM"
MESSAGE_BPM_STABLE = "BPM_STABLE"

# wire name -> AnalyzerOptions attribute
OPTION_KEYS = {
    "continuousAnalysis": "continuous_analysis",
    "stabilizationTime": "stabilization_time",
    "computeBpmDelay": "compute_bpm_delay",
}


class AnalyzerPhase(str, Enum):
    WARMING = "warming"
    STABLE = "stable"


@dataclass
class AnalyzerOptions:
    continuous_analysis: bool = False
    stabilization_time: float = 20.0  # s without a block before re-acquiring
    compute_bpm_delay: float = 10.0  # s, hint for the caller only

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BpmResult:
    bpm: list[TempoCandidate]
    threshold: float

    def to_dict(self) -> dict:
        return {"bpm": [c.to_dict() for c in self.bpm], "threshold": self.threshold}


@dataclass
class BpmEvent:
    message: str  # BPM | BPM_STABLE
    result: BpmResult

    def to_dict(self) -> dict:
        return {"message": self.message, "result": self.result.to_dict()}


@dataclass
class _State:
    floor: int
    ledger: PeakLedger
    block_count: int = 0
    next_index: int = 0  # absolute index of the next block's first sample
    phase: AnalyzerPhase = AnalyzerPhase.WARMING
    deadline: Optional[float] = None
    stable_result: Optional[BpmResult] = None
    insufficient_logged: bool = False


def compute_bpm(
    ledger: PeakLedger,
    sample_rate: float,
    floor: int,
    min_peaks: int = MIN_PEAKS,
    length: int = TOP_CANDIDATES,
) -> tuple[list[TempoCandidate], Optional[int]]:
    """Rank tempos from the highest tracked threshold holding more than ``min_peaks``.

    Returns (candidates, threshold). ``threshold`` is None when no tracked
    threshold qualifies; candidates are then empty.
    """
    found: Optional[int] = None
    for t in ledger.thresholds():
        if t < floor:
            break
        if ledger.count(t) > min_peaks:
            found = t
            break
    if found is None:
        return [], None
    intervals = identify_intervals(ledger.peaks_for(found))
    tempos = group_by_tempo(sample_rate, intervals)
    return top_candidates(tempos, length), found


class RealTimeBpmAnalyzer:
    """Stateful tempo analyzer; one instance per audio stream.

    ``analyze_block`` must be called sequentially. Configuration, ``reset`` and
    ``poll`` may come from another thread and are serialized with block
    processing by a single lock.
    """

    def __init__(
        self,
        options: Optional[AnalyzerOptions] = None,
        ladder: Optional[ThresholdLadder] = None,
        min_valid_threshold: float = to_float(MIN_VALID_THRESHOLD),
        clock: Callable[[], float] = time.monotonic,
        **config: Any,
    ) -> None:
        self.options = options or AnalyzerOptions()
        self.ladder = ladder or ThresholdLadder()
        self.initial_floor = from_float(min_valid_threshold)
        if self.initial_floor not in self.ladder:
            raise ValueError(f"min_valid_threshold {min_valid_threshold} is not on the ladder")
        self._clock = clock
        self._lock = threading.Lock()
        self._state = self._initial_state()
        for key, value in config.items():
            self.set_async_configuration(key, value)

    def _initial_state(self) -> _State:
        ledger = PeakLedger(self.ladder.descending(self.initial_floor))
        return _State(floor=self.initial_floor, ledger=ledger)

    @property
    def phase(self) -> AnalyzerPhase:
        return self._state.phase

    @property
    def min_valid_threshold(self) -> float:
        return to_float(self._state.floor)

    @property
    def floor(self) -> int:
        return self._state.floor

    @property
    def block_count(self) -> int:
        return self._state.block_count

    @property
    def deadline(self) -> Optional[float]:
        return self._state.deadline

    @property
    def ledger(self) -> PeakLedger:
        return self._state.ledger

    @property
    def stable_result(self) -> Optional[BpmResult]:
        return self._state.stable_result

    def reset(self) -> None:
        with self._lock:
            self._reset_locked()

    def _reset_locked(self) -> None:
        self._state = self._initial_state()
        logger.debug("analyzer reset (floor=%.2f)", to_float(self.initial_floor))

    def set_async_configuration(self, key: str, value: Any) -> bool:
        """Apply one configuration key; unknown keys are logged and ignored."""
        attr = OPTION_KEYS.get(key, key if key in OPTION_KEYS.values() else None)
        if attr is None:
            logger.warning("Key not found in options: %s", key)
            return False
        if attr == "continuous_analysis":
            if not isinstance(value, bool):
                logger.warning("Non-boolean value rejected for %s: %r", key, value)
                return False
        else:
            try:
                value = float(value)
            except (TypeError, ValueError):
                logger.warning("Non-numeric value rejected for %s: %r", key, value)
                return False
            if value < 0:
                logger.warning("Negative value rejected for %s: %s", key, value)
                return False
        with self._lock:
            setattr(self.options, attr, value)
            if attr == "continuous_analysis" and not value:
                self._state.deadline = None
        return True

    def poll(self) -> bool:
        """Fire the stabilization deadline if it has elapsed.

        Returns True when the analyzer was reset; the caller may then shorten
        its delay (``options.compute_bpm_delay`` is set to 0).
        """
        with self._lock:
            return self._expire_locked(self._clock())

    def _expire_locked(self, now: float) -> bool:
        deadline = self._state.deadline
        if deadline is None or now < deadline:
            return False
        logger.info("Stabilization timeout fired, restarting detection")
        self.options.compute_bpm_delay = 0.0
        self._reset_locked()
        return True

    def analyze_block(
        self,
        channel_data: np.ndarray,
        sample_rate: float,
        post_message: Optional[Callable[[BpmEvent], None]] = None,
    ) -> list[BpmEvent]:
        """Process one block and return the emitted events (BPM, then BPM_STABLE)."""
        x = np.asarray(channel_data, dtype=np.float32)
        if x.ndim != 1:
            raise ValueError("channel_data must be a 1D mono block")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        events: list[BpmEvent] = []
        with self._lock:
            now = self._clock()
            if self.options.continuous_analysis:
                self._expire_locked(now)
            st = self._state
            min_index = st.next_index
            max_index = min_index + int(x.size)
            self._find_peaks(x, min_index, max_index)
            st.next_index = max_index
            st.block_count += 1

            candidates, found = compute_bpm(st.ledger, sample_rate, st.floor)
            if found is None:
                if not st.insufficient_logged:
                    # once per warming epoch
                    logger.warning("Could not find enough samples for a reliable detection.")
                    st.insufficient_logged = True
                result = BpmResult([], to_float(st.floor))
            else:
                result = BpmResult(candidates, to_float(found))
                st.phase = AnalyzerPhase.STABLE
            events.append(BpmEvent(MESSAGE_BPM, result))

            if found is not None and found > st.floor:
                logger.info(
                    "Floor raised %.2f -> %.2f (top tempo %s)",
                    to_float(st.floor),
                    to_float(found),
                    candidates[0].tempo if candidates else None,
                )
                st.floor = found
                st.ledger.prune_below(found)
                st.stable_result = result
                events.append(BpmEvent(MESSAGE_BPM_STABLE, result))

            if self.options.continuous_analysis:
                st.deadline = now + float(self.options.stabilization_time)

        if post_message is not None:
            for ev in events:
                post_message(ev)
        return events

    def _find_peaks(self, x: np.ndarray, min_index: int, max_index: int) -> None:
        ledger = self._state.ledger
        for t in self.ladder.ascending(self._state.floor):
            if t not in ledger:
                continue
            cursor = ledger.cursor_for(t)
            if cursor >= max_index:
                continue
            offset = max(0, cursor - min_index)
            for rel in find_peaks_at_threshold(x, to_float(t), offset):
                index = min_index + rel
                ledger.record_peak(t, index)
                ledger.advance_cursor(t, index + EXCLUSION_WINDOW)
