from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory

import numpy as np
import pytest
from scipy.io import wavfile

from realtime_bpm.capture import WavSource, WavSourceConfig, read_wav


def test_read_wav_downmixes_int16_stereo() -> None:
    with TemporaryDirectory() as td:
        path = Path(td) / "clip.wav"
        left = np.full(1000, 16384, dtype=np.int16)
        right = np.zeros(1000, dtype=np.int16)
        wavfile.write(str(path), 22050, np.stack([left, right], axis=1))
        fs, x = read_wav(path)
    assert fs == 22050
    assert x.shape == (1000,)
    assert x.dtype == np.float32
    assert np.allclose(x, 0.25)


def test_wav_source_yields_full_blocks_only() -> None:
    with TemporaryDirectory() as td:
        path = Path(td) / "clip.wav"
        wavfile.write(str(path), 8000, np.zeros(2500, dtype=np.float32))
        src = WavSource(WavSourceConfig(path, block_size=1000))
        with pytest.raises(RuntimeError):
            list(src)
        assert src.open() == 8000
        blocks = list(src)
        src.close()
    assert src.sample_rate == 8000
    assert len(blocks) == 2
    assert all(b.shape == (1000,) for b in blocks)
