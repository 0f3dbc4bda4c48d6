"""Local runner for the BPM analyzer with src/ layout.

Usage: uv run python run_app.py path/to/track.wav
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> int:
    # Ensure src/ is on sys.path so `import realtime_bpm` resolves
    root = Path(__file__).resolve().parent
    src = root / "src"
    if src.exists():
        sys.path.insert(0, str(src))
    from realtime_bpm.app import main as app_main  # type: ignore

    return app_main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
