from __future__ import annotations

import numpy as np
import pytest

from realtime_bpm.peaks import EXCLUSION_WINDOW, PeakLedger, find_peaks_at_threshold
from realtime_bpm.thresholds import ThresholdLadder, to_float


def test_sustained_transient_yields_single_peak() -> None:
    x = np.zeros(30_000, dtype=np.float32)
    x[100:400] = 0.95  # one loud passage
    x[20_000] = 0.95
    peaks = find_peaks_at_threshold(x, 0.9)
    assert peaks == [100, 20_000]


def test_offset_and_strict_comparison() -> None:
    x = np.zeros(1000, dtype=np.float32)
    x[10] = 1.0
    x[500] = 0.5
    assert find_peaks_at_threshold(x, 0.5) == [10]
    assert find_peaks_at_threshold(x, 0.4, offset=11) == [500]
    assert find_peaks_at_threshold(x, 0.4, offset=5000) == []


def test_exclusion_window_is_counted_from_hit() -> None:
    x = np.zeros(3 * EXCLUSION_WINDOW, dtype=np.float32)
    x[0] = 1.0
    x[EXCLUSION_WINDOW - 1] = 1.0  # inside the window, skipped
    x[EXCLUSION_WINDOW] = 1.0
    assert find_peaks_at_threshold(x, 0.5) == [0, EXCLUSION_WINDOW]


def test_peak_count_is_monotonic_in_threshold() -> None:
    rng = np.random.RandomState(0)
    x = rng.rand(200_000).astype(np.float32)
    ladder = list(ThresholdLadder().ascending())
    counts = [len(find_peaks_at_threshold(x, to_float(t), exclusion=700)) for t in ladder]
    # lower threshold -> at least as many peaks
    assert all(lo >= hi for lo, hi in zip(counts, counts[1:]))
    assert counts[0] > 0


def test_ledger_cursor_never_moves_backward() -> None:
    ledger = PeakLedger([90, 85])
    assert ledger.cursor_for(90) == 0
    assert ledger.advance_cursor(90, 12_000) == 12_000
    assert ledger.advance_cursor(90, 5_000) == 12_000
    assert ledger.cursor_for(85) == 0


def test_ledger_records_in_order_and_prunes_below_floor() -> None:
    ledger = PeakLedger(ThresholdLadder().descending())
    ledger.record_peak(60, 10)
    ledger.record_peak(60, 20_000)
    with pytest.raises(ValueError):
        ledger.record_peak(60, 15)
    assert ledger.peaks_for(60) == [10, 20_000]
    assert ledger.count(60) == 2

    dropped = ledger.prune_below(60)
    assert sorted(dropped) == [30, 35, 40, 45, 50, 55]
    assert ledger.thresholds() == [90, 85, 80, 75, 70, 65, 60]
    assert 55 not in ledger
    assert ledger.peaks_for(55) == []
    # entries at the floor survive untouched
    assert ledger.peaks_for(60) == [10, 20_000]
