from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory

import numpy as np
from scipy.io import wavfile

from realtime_bpm.app import main


def test_main_prints_stable_tempo(capsys) -> None:
    with TemporaryDirectory() as td:
        path = Path(td) / "clicks.wav"
        x = np.zeros(90 * 4096, dtype=np.float32)
        x[::22050] = 1.0
        wavfile.write(str(path), 44100, x)
        rc = main([str(path)])
    assert rc == 0
    assert capsys.readouterr().out.startswith("120 BPM")


def test_main_reports_silence(capsys) -> None:
    with TemporaryDirectory() as td:
        path = Path(td) / "silence.wav"
        wavfile.write(str(path), 8000, np.zeros(20_000, dtype=np.int16))
        rc = main([str(path), "--block-size", "1024"])
    assert rc == 1
    assert capsys.readouterr().out == ""
