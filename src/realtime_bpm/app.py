"""Command-line entry: stream a WAV file through the BPM processor.

Run with: `uv run task run -- path/to/track.wav`
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from .analyzer import MESSAGE_BPM_STABLE, AnalyzerOptions, RealTimeBpmAnalyzer
from .capture import WavSource, WavSourceConfig
from .processor import BpmProcessor, ProcessorConfig

logger = logging.getLogger("realtime_bpm.app")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="realtime-bpm", description=__doc__.splitlines()[0])
    p.add_argument("wav", type=Path, help="input WAV file")
    p.add_argument("--block-size", type=int, default=4096)
    p.add_argument("--lowpass", type=float, default=None, help="low-pass cutoff in Hz")
    p.add_argument("--realtime", action="store_true", help="pace blocks like live audio")
    p.add_argument("--continuous", action="store_true", help="enable continuous re-acquisition")
    p.add_argument("--stabilization-time", type=float, default=20.0)
    p.add_argument("--verbose", "-v", action="store_true", help="log every BPM event")
    p.add_argument("--log-file", type=Path, default=None)
    return p


def setup_logging(verbose: bool, log_file: Optional[Path]) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    source = WavSource(WavSourceConfig(args.wav, args.block_size, args.realtime))
    sample_rate = source.open()
    options = AnalyzerOptions(
        continuous_analysis=args.continuous,
        stabilization_time=args.stabilization_time,
    )
    processor = BpmProcessor(
        sample_rate,
        ProcessorConfig(args.block_size, args.lowpass),
        RealTimeBpmAnalyzer(options),
    )
    stable = None
    try:
        for block in source:
            for ev in processor.process(block):
                if ev.message == MESSAGE_BPM_STABLE:
                    stable = ev.result
                    logger.info("stable %s", ev.to_dict()["result"])
                else:
                    logger.debug("bpm %s", ev.to_dict()["result"])
    finally:
        source.close()

    if stable is None or not stable.bpm:
        logger.warning("No stable tempo found in %s", args.wav)
        return 1
    best = stable.bpm[0]
    print(f"{best.tempo} BPM (votes={best.count}, threshold={stable.threshold:.2f})")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
