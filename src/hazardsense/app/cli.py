from __future__ import annotations

import argparse
import json
from typing import Optional

from pydantic import ValidationError

from hazardsense.core.config import load_run_config
from hazardsense.core.schema import RunConfig
from hazardsense.monitor.pipeline import MonitorPipeline


def _load(path: Optional[str]) -> RunConfig:
    return load_run_config(path) if path else RunConfig()


def _apply_overrides(cfg: RunConfig, args: argparse.Namespace) -> RunConfig:
    if args.replay:
        cfg.source.type = "replay"
        cfg.source.path = args.replay
    if args.video:
        cfg.source.type = "video"
        cfg.source.path = args.video
    if args.weights:
        cfg.source.weights = args.weights
    if args.device:
        cfg.source.device = args.device
    if args.max_frames is not None:
        cfg.source.max_frames = int(args.max_frames)
    if args.out_dir:
        cfg.export.out_dir = args.out_dir
    if args.target_fps is not None:
        cfg.pipeline.governor.target_fps = float(args.target_fps)
    if args.score_threshold is not None:
        cfg.pipeline.detection.score_threshold = float(args.score_threshold)
    # Re-validate so overrides go through the same bounds as YAML values.
    return RunConfig.model_validate(cfg.model_dump())


def cmd_run(args: argparse.Namespace) -> int:
    cfg = _apply_overrides(_load(args.config), args)
    out = MonitorPipeline(echo=not args.quiet).run(cfg)
    print(f"OK: {out}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    cfg = _load(args.config)
    print(json.dumps(cfg.model_dump(), indent=2, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hazardsense")
    sub = p.add_subparsers(dest="cmd", required=True)

    spr = sub.add_parser("run", help="Run the hazard monitor over a replay file or video")
    spr.add_argument("--config", default=None, help="Run YAML config (defaults apply when omitted).")
    src = spr.add_mutually_exclusive_group()
    src.add_argument("--replay", help="JSONL file with recorded detections per frame.")
    src.add_argument("--video", help="Video file; detections come from YOLO.")
    spr.add_argument("--weights", help="YOLO weights for --video.")
    spr.add_argument("--device", help="cpu / cuda:0 etc.")
    spr.add_argument("--max-frames", dest="max_frames", type=int, help="Stop a video after N frames.")
    spr.add_argument("--out-dir", help="Override export.out_dir.")
    spr.add_argument("--target-fps", dest="target_fps", type=float, help="Override governor target FPS (5-30).")
    spr.add_argument("--score-threshold", dest="score_threshold", type=float, help="Initial NMS score threshold.")
    spr.add_argument("--quiet", action="store_true", help="Do not echo events to stdout.")
    spr.set_defaults(func=cmd_run)

    spc = sub.add_parser("config", help="Print the validated configuration")
    spc.add_argument("--config", default=None, help="Run YAML config.")
    spc.set_defaults(func=cmd_config)

    return p


def main() -> int:
    args = build_parser().parse_args()
    try:
        return int(args.func(args))
    except (FileNotFoundError, ValueError, ValidationError) as e:
        print(f"ERROR: {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
