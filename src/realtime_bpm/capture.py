"""WAV file source that replays audio as fixed-size blocks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from time import perf_counter, sleep
from typing import Iterator, Optional, Tuple

import numpy as np
from scipy.io import wavfile

from .preprocess import downmix, pcm_to_float


def read_wav(path: Path | str) -> Tuple[int, np.ndarray]:
    """Read a WAV file as (sample_rate, mono float32 in [-1, 1])."""
    fs, data = wavfile.read(str(path))
    if data.size == 0:
        raise ValueError(f"empty WAV file: {path}")
    return int(fs), downmix(pcm_to_float(data))


@dataclass
class WavSourceConfig:
    path: Path
    block_size: int = 4096
    realtime: bool = False  # sleep between blocks to mimic live input


class WavSource:
    """Iterate a WAV file block by block.

    The trailing partial block is dropped, as a live capture path would only
    deliver full blocks.
    """

    def __init__(self, cfg: WavSourceConfig) -> None:
        if cfg.block_size <= 0:
            raise ValueError("block_size must be positive")
        self.cfg = cfg
        self.sample_rate: Optional[int] = None
        self._data: Optional[np.ndarray] = None

    def open(self) -> int:
        """Load the file and return its sample rate."""
        self.sample_rate, self._data = read_wav(self.cfg.path)
        return self.sample_rate

    def __iter__(self) -> Iterator[np.ndarray]:
        if self._data is None or self.sample_rate is None:
            raise RuntimeError("WavSource is not opened")
        n = self.cfg.block_size
        block_sec = n / float(self.sample_rate)
        t_next = perf_counter()
        for start in range(0, self._data.size - n + 1, n):
            if self.cfg.realtime:
                t_next += block_sec
                delay = t_next - perf_counter()
                if delay > 0:
                    sleep(delay)
            yield self._data[start : start + n]

    def close(self) -> None:
        self._data = None
