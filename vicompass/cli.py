from __future__ import annotations

import argparse
import os
import sys
import time
from dataclasses import asdict
from typing import Iterable, List, Optional

from vicompass.core.config import CompassSettings, Config, get_config
from vicompass.core.errors import InvalidConfiguration
from vicompass.core.logging import init_logging
from vicompass.runtime.service import CompassRuntime, CompassStatus

NO_DATA_TOKENS = ("", "-", "---", "none", "nan")


def parse_samples(lines: Iterable[str]) -> List[Optional[float]]:
    """One heading per line; blank, '-' or '---' mean no data. '#' starts a comment."""
    out: List[Optional[float]] = []
    for lineno, line in enumerate(lines, start=1):
        text = line.split("#", 1)[0].strip()
        if text.lower() in NO_DATA_TOKENS:
            out.append(None)
            continue
        try:
            out.append(float(text))
        except ValueError as exc:
            raise ValueError(f"line {lineno}: not a heading: {text!r}") from exc
    return out


def run_replay(
    runtime: CompassRuntime,
    samples: Iterable[Optional[float]],
    *,
    sample_interval: float = 0.1,
    track_after: int = 1,
) -> CompassStatus:
    """Feed samples at a fixed rate, switching tracking on after ``track_after`` of them."""
    runtime.start()
    try:
        for i, sample in enumerate(samples, start=1):
            runtime.push_heading(sample)
            if i == track_after:
                runtime.set_tracking(True)
            if sample_interval > 0:
                time.sleep(sample_interval)
        return runtime.snapshot()
    finally:
        runtime.stop()


def build_settings(args: argparse.Namespace, config: Config) -> CompassSettings:
    settings = CompassSettings.from_profile(config.load_profile())
    changes = {}
    if args.tolerance is not None:
        changes["diff_tolerance"] = args.tolerance
    if args.responsiveness is not None:
        changes["responsiveness"] = args.responsiveness
    if args.mode is not None:
        changes["feedback_mode"] = args.mode
    if args.smoothing is not None:
        changes["smoothing_mode"] = args.smoothing
    if args.on_course_cue:
        changes["on_course_cue"] = True
    if changes:
        settings = CompassSettings.from_profile({**_as_profile(settings), **changes})
    return settings


def _as_profile(settings: CompassSettings) -> dict:
    return {k: getattr(v, "value", v) for k, v in asdict(settings).items()}


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Replay heading samples through the steering feedback engine")
    ap.add_argument("samples", nargs="?", default="-", help="File with one heading per line ('-' for stdin)")
    ap.add_argument("--sample-interval", type=float, default=0.1, help="Seconds between samples")
    ap.add_argument("--track-after", type=int, default=1, help="Enable tracking after this many samples")
    ap.add_argument("--tolerance", type=float, default=None, help="Tolerance band in degrees (5, 10, 15, 20)")
    ap.add_argument("--responsiveness", default=None, help="slow, medium or fast")
    ap.add_argument("--mode", default=None, help="Feedback mode: rhythmic, spoken or off")
    ap.add_argument("--smoothing", default=None, help="Smoothing: ema or window")
    ap.add_argument("--on-course-cue", action="store_true", help="Play a slow cue while within tolerance")
    ap.add_argument("--config-dir", default=None, help="Directory holding profile.yml")
    ap.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"))
    args = ap.parse_args(argv)

    logger = init_logging(level=args.log_level)
    config = Config(args.config_dir) if args.config_dir else get_config()
    try:
        settings = build_settings(args, config)
    except InvalidConfiguration as exc:
        logger.error("invalid configuration | %s", exc)
        return 2

    try:
        if args.samples == "-":
            samples = parse_samples(sys.stdin)
        else:
            if not os.path.exists(args.samples):
                logger.error("samples file not found | path=%s", args.samples)
                return 2
            with open(args.samples, "r", encoding="utf-8") as fh:
                samples = parse_samples(fh)
    except ValueError as exc:
        logger.error("bad samples | %s", exc)
        return 2

    runtime = CompassRuntime(settings)
    status = run_replay(runtime, samples, sample_interval=args.sample_interval, track_after=args.track_after)
    display = status.display
    logger.info(
        "replay done | heading=%s target=%s correction=%s colour=%s fires=%d",
        status.heading_text,
        status.target_text,
        display.text if display else None,
        display.colour if display else None,
        runtime.scheduler.fire_count,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
