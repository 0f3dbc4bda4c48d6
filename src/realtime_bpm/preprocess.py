"""Signal conditioning before tempo analysis."""

from __future__ import annotations

import numpy as np
from scipy.signal import butter, lfilter, lfilter_zi


def downmix(x: np.ndarray) -> np.ndarray:
    """Average channels of a (frames, channels) array into one mono stream.

    1D input is returned as float32 unchanged.
    """
    x = np.asarray(x)
    if x.ndim == 1:
        return x.astype(np.float32, copy=False)
    if x.ndim != 2:
        raise ValueError("x must be 1D or (frames, channels)")
    return x.astype(np.float32).mean(axis=1)


def pcm_to_float(x: np.ndarray) -> np.ndarray:
    """Scale integer PCM samples into [-1, 1] float32.

    Float input is passed through (as float32).
    """
    x = np.asarray(x)
    if x.dtype == np.uint8:
        # 8-bit WAV is unsigned, centered on 128
        return (x.astype(np.float32) - 128.0) / 128.0
    if np.issubdtype(x.dtype, np.integer):
        scale = float(np.iinfo(x.dtype).max) + 1.0
        return x.astype(np.float32) / scale
    return x.astype(np.float32, copy=False)


class LowpassFilter:
    """Causal Butterworth low-pass that keeps its state between blocks.

    Args:
        fs: sampling rate [Hz].
        cutoff_hz: corner frequency [Hz].
        order: IIR order.
    """

    def __init__(self, fs: float, cutoff_hz: float = 350.0, order: int = 2) -> None:
        if fs <= 0:
            raise ValueError("fs must be positive")
        nyq = 0.5 * fs
        wn = min(0.999, max(1e-6, cutoff_hz / nyq))
        self.fs = float(fs)
        self.cutoff_hz = float(cutoff_hz)
        self.b, self.a = butter(order, wn, btype="low")
        self._zi_unit = lfilter_zi(self.b, self.a)
        self._zi: np.ndarray | None = None

    def reset(self) -> None:
        self._zi = None

    def __call__(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float32)
        if x.size == 0:
            return x.copy()
        if self._zi is None:
            # start settled at the first sample to avoid a step transient
            self._zi = self._zi_unit * float(x[0])
        y, self._zi = lfilter(self.b, self.a, x, zi=self._zi)
        return y.astype(np.float32)
