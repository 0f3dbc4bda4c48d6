from __future__ import annotations

import numpy as np
import pytest

from realtime_bpm.preprocess import LowpassFilter, downmix, pcm_to_float


def test_downmix_averages_channels() -> None:
    x = np.array([[1.0, 0.0], [0.5, 0.5], [-1.0, 1.0]], dtype=np.float32)
    assert np.allclose(downmix(x), [0.5, 0.5, 0.0])
    mono = np.ones(4, dtype=np.float64)
    assert downmix(mono).dtype == np.float32
    with pytest.raises(ValueError):
        downmix(np.zeros((2, 2, 2)))


def test_pcm_to_float_scaling() -> None:
    x = np.array([0, 16384, -32768], dtype=np.int16)
    assert np.allclose(pcm_to_float(x), [0.0, 0.5, -1.0])
    u8 = np.array([128, 255, 0], dtype=np.uint8)
    assert np.allclose(pcm_to_float(u8), [0.0, 127 / 128, -1.0])


def test_lowpass_keeps_bass_and_attenuates_treble() -> None:
    fs = 44100.0
    t = np.arange(0, 1.0, 1 / fs)
    bass = np.sin(2 * np.pi * 50.0 * t)
    treble = np.sin(2 * np.pi * 5000.0 * t)
    lp = LowpassFilter(fs, cutoff_hz=350.0)
    y_bass = lp(bass)
    lp.reset()
    y_treble = lp(treble)
    # skip the settling region
    assert np.std(y_bass[4410:]) > 0.6
    assert np.std(y_treble[4410:]) < 0.05


def test_lowpass_is_seamless_across_blocks() -> None:
    fs = 44100.0
    x = np.random.RandomState(0).randn(8192).astype(np.float32)
    whole = LowpassFilter(fs)(x)
    lp = LowpassFilter(fs)
    parts = np.concatenate([lp(x[i : i + 1000]) for i in range(0, x.size, 1000)])
    assert np.allclose(whole, parts, atol=1e-5)
