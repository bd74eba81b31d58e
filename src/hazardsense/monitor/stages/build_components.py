from __future__ import annotations

from dataclasses import dataclass

from hazardsense.core.io import ReplayFrameSource, VideoFrameSource
from hazardsense.core.pipeline.base import StageContext
from hazardsense.core.schema import RunConfig, SourceCfg
from hazardsense.runtime.alerts import LogAlertDispatcher
from hazardsense.runtime.detectors import ReplayDetector, YoloDetector
from hazardsense.runtime.pipeline import HazardPipeline


def make_source(src: SourceCfg):
    if src.type == "replay":
        return ReplayFrameSource(src.path)
    if src.type == "video":
        return VideoFrameSource(src.path, max_frames=src.max_frames)
    raise ValueError(f"Unsupported source type: {src.type}")


def make_detector(src: SourceCfg):
    if src.type == "replay":
        return ReplayDetector()
    if src.type == "video":
        if not src.weights:
            raise ValueError("source.weights is required for video sources")
        return YoloDetector(weights=src.weights, device=src.device)
    raise ValueError(f"Unsupported source type: {src.type}")


@dataclass
class BuildComponents:
    """Stage that constructs frame source, detector, dispatcher and pipeline."""

    name: str = "build_components"

    def run(self, ctx: StageContext) -> None:
        cfg: RunConfig = ctx.cfg
        log = ctx.log

        source = make_source(cfg.source)
        detector = make_detector(cfg.source)
        dispatcher = LogAlertDispatcher(log)
        pipeline = HazardPipeline(cfg.pipeline, detector, dispatcher=dispatcher, log=log)

        ctx.assets["source"] = source
        ctx.assets["pipeline"] = pipeline
        log("components_ready", {"detector": type(detector).__name__, "source": type(source).__name__})
