from __future__ import annotations

"""Per-frame stages of the hazard pipeline.

Each stage reads what earlier stages left in ctx.state and adds its own
keys. Long-lived collaborators come from ctx.assets:

    detector, governor, store, associator, footpath, limiter,
    dispatcher, depth, clock, log
"""

import time
from dataclasses import dataclass
from typing import List

from hazardsense.core.pipeline.base import StageContext
from hazardsense.core.schema import PipelineConfig
from hazardsense.core.types import Frame, NormalizedDetection
from hazardsense.footpath.alerting import build_warnings, select_for_dispatch
from hazardsense.footpath.obstacles import fuse_depth, recommend_path, safe_direction
from hazardsense.footpath.stairs import detect_stairs
from hazardsense.footpath.surface import detect_uneven_surface
from hazardsense.perception.geometry import normalize
from hazardsense.perception.hazard import rank_detections
from hazardsense.perception.suppression import sanitize, suppress


@dataclass
class DetectStage:
    """Call the external detector; failures count as an empty frame."""

    name: str = "detect"

    def run(self, ctx: StageContext) -> None:
        frame: Frame = ctx.state["frame"]
        clock = ctx.assets.get("clock") or time.perf_counter
        t0 = clock()
        try:
            raw = ctx.assets["detector"].detect(frame, frame.width, frame.height) or []
        except Exception as e:
            ctx.log("detector_error", {"frame": frame.index, "error": repr(e)})
            raw = []
        ctx.state["detect_ms"] = (clock() - t0) * 1000.0

        items = list(raw)
        valid = sanitize(items)
        if len(valid) != len(items):
            ctx.log("malformed_detections", {"frame": frame.index, "dropped": len(items) - len(valid)})
        ctx.state["raw"] = valid


@dataclass
class SuppressStage:
    name: str = "suppress"

    def run(self, ctx: StageContext) -> None:
        cfg: PipelineConfig = ctx.cfg
        governor = ctx.assets["governor"]
        ctx.state["kept"] = suppress(
            ctx.state.get("raw", []),
            score_threshold=governor.score_threshold,
            iou_threshold=cfg.detection.nms_iou_threshold,
            max_detections=cfg.detection.max_detections,
            per_class=cfg.detection.per_class_nms,
        )


@dataclass
class EstimateStage:
    name: str = "estimate"

    def run(self, ctx: StageContext) -> None:
        cfg: PipelineConfig = ctx.cfg
        frame: Frame = ctx.state["frame"]
        ctx.state["normalized"] = [
            normalize(d, frame.width, frame.height, cfg.camera) for d in ctx.state.get("kept", [])
        ]


@dataclass
class TrackStage:
    name: str = "track"

    def run(self, ctx: StageContext) -> None:
        associator = ctx.assets["associator"]
        ctx.state["tracked"] = associator.associate(
            ctx.state.get("normalized", []),
            ctx.assets["store"],
            ctx.state["now_ms"],
        )


@dataclass
class ScoreStage:
    name: str = "score"

    def run(self, ctx: StageContext) -> None:
        cfg: PipelineConfig = ctx.cfg
        ctx.state["scored"] = rank_detections(ctx.state.get("tracked", []), cfg.detection.max_detections)


@dataclass
class DepthStage:
    """Optional depth signal; only on secondary frames."""

    name: str = "depth"

    def run(self, ctx: StageContext) -> None:
        depth = ctx.assets.get("depth")
        if depth is None or not ctx.state.get("secondary"):
            return
        ctx.state["depth_zones"] = depth.estimate(ctx.state["frame"], ctx.state.get("scored", []))


@dataclass
class FootpathStage:
    name: str = "footpath"

    def run(self, ctx: StageContext) -> None:
        cfg: PipelineConfig = ctx.cfg
        analyzer = ctx.assets["footpath"]
        dets: List[NormalizedDetection] = ctx.state.get("scored", [])

        obstacles = analyzer.analyze(dets, ctx.state["now_ms"])
        obstacles = fuse_depth(obstacles, ctx.state.get("depth_zones"))
        ground = analyzer.ground_level(dets)
        safe = safe_direction(obstacles)

        ctx.state["obstacles"] = obstacles
        ctx.state["safe_direction"] = safe
        ctx.state["recommendation"] = recommend_path(obstacles)
        ctx.state["stairs"] = detect_stairs(ground, cfg.footpath)
        ctx.state["surface"] = detect_uneven_surface(ground, cfg.footpath)
        ctx.state["warnings"] = build_warnings(
            obstacles,
            safe,
            include_low=cfg.alerts.include_low_warnings,
        )


@dataclass
class AlertStage:
    """Push rate-limited alerts to the dispatcher on secondary frames."""

    name: str = "alert"

    def run(self, ctx: StageContext) -> None:
        dispatcher = ctx.assets.get("dispatcher")
        if dispatcher is None or not ctx.state.get("secondary"):
            return
        limiter = ctx.assets["limiter"]
        now = ctx.state["now_ms"]

        for w in select_for_dispatch(ctx.state.get("warnings", []), limiter, now):
            dispatcher.warning(w)

        stairs = ctx.state.get("stairs")
        if stairs is not None and stairs.detected and limiter.allow("stairs", now):
            dispatcher.stairs(stairs)

        surface = ctx.state.get("surface")
        if surface is not None and surface.detected and limiter.allow("surface", now):
            dispatcher.surface(surface)


def default_stages() -> list:
    return [
        DetectStage(),
        SuppressStage(),
        EstimateStage(),
        TrackStage(),
        ScoreStage(),
        DepthStage(),
        FootpathStage(),
        AlertStage(),
    ]
