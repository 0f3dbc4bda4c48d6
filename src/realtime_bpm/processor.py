"""Block accumulator and message front-end around the analyzer.

Audio hosts usually hand over small frames (e.g. 128 samples); the analyzer
wants fixed blocks. ``BpmProcessor`` buffers frames, runs one analysis per
full block and forwards events as plain dict messages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np

from .analyzer import AnalyzerOptions, BpmEvent, RealTimeBpmAnalyzer
from .preprocess import LowpassFilter, downmix

logger = logging.getLogger(__name__)

MESSAGE_ASYNC_CONFIGURATION = "ASYNC_CONFIGURATION"
MESSAGE_RESET = "RESET"


class BlockBuffer:
    """Fixed-capacity float32 buffer that hands out full blocks."""

    def __init__(self, size: int = 4096) -> None:
        if size <= 0:
            raise ValueError("size must be positive")
        self.size = int(size)
        self._buf = np.zeros(self.size, dtype=np.float32)
        self._written = 0

    def __len__(self) -> int:
        return self._written

    def is_empty(self) -> bool:
        return self._written == 0

    def is_full(self) -> bool:
        return self._written == self.size

    def flush(self) -> None:
        self._written = 0

    def append(self, frame: np.ndarray) -> list[np.ndarray]:
        """Append samples; return copies of every block completed by this call."""
        x = np.asarray(frame, dtype=np.float32).reshape(-1)
        blocks: list[np.ndarray] = []
        pos = 0
        while pos < x.size:
            take = min(self.size - self._written, x.size - pos)
            self._buf[self._written : self._written + take] = x[pos : pos + take]
            self._written += take
            pos += take
            if self.is_full():
                blocks.append(self._buf.copy())
                self.flush()
        return blocks


@dataclass
class ProcessorConfig:
    buffer_size: int = 4096
    lowpass_hz: Optional[float] = None  # None disables the pre-filter


class BpmProcessor:
    def __init__(
        self,
        sample_rate: float,
        cfg: Optional[ProcessorConfig] = None,
        analyzer: Optional[RealTimeBpmAnalyzer] = None,
        post_message: Optional[Callable[[dict], None]] = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.sample_rate = float(sample_rate)
        self.cfg = cfg or ProcessorConfig()
        self.analyzer = analyzer or RealTimeBpmAnalyzer(AnalyzerOptions())
        self.post_message = post_message
        self.buffer = BlockBuffer(self.cfg.buffer_size)
        self._lowpass = (
            LowpassFilter(self.sample_rate, self.cfg.lowpass_hz)
            if self.cfg.lowpass_hz
            else None
        )

    def process(self, frame: np.ndarray) -> list[BpmEvent]:
        """Feed one frame (mono, or (frames, channels)); returns events produced."""
        x = downmix(frame)
        if self._lowpass is not None:
            x = self._lowpass(x)
        events: list[BpmEvent] = []
        for block in self.buffer.append(x):
            events.extend(self.analyzer.analyze_block(block, self.sample_rate, self._emit))
        return events

    def _emit(self, event: BpmEvent) -> None:
        if self.post_message is not None:
            self.post_message(event.to_dict())

    def on_message(self, data: dict[str, Any]) -> bool:
        """Handle a control message from the host. Returns False if ignored."""
        message = data.get("message")
        if message == MESSAGE_ASYNC_CONFIGURATION:
            params = data.get("parameters") or {}
            for key, value in params.items():
                self.analyzer.set_async_configuration(key, value)
            return True
        if message == MESSAGE_RESET:
            self.reset()
            return True
        logger.warning("Unknown message ignored: %r", message)
        return False

    def reset(self) -> None:
        self.analyzer.reset()
        self.buffer.flush()
        if self._lowpass is not None:
            self._lowpass.reset()
