from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict

from hazardsense.core.pipeline.base import StageContext
from hazardsense.core.types import FrameResult
from hazardsense.runtime.pipeline import HazardPipeline, run_stream


@dataclass
class StreamFrames:
    """Stage that pulls every frame through the hazard pipeline."""

    name: str = "stream_frames"

    def run(self, ctx: StageContext) -> None:
        pipeline: HazardPipeline = ctx.assets["pipeline"]
        source = ctx.assets["source"]

        levels: Counter = Counter()
        stats: Dict[str, Any] = {"stairs_frames": 0, "surface_frames": 0, "max_warnings": 0}

        def _collect(res: FrameResult) -> None:
            for d in res.detections:
                if d.hazard is not None:
                    levels[d.hazard.level.value] += 1
            stats["stairs_frames"] += int(res.stairs.detected)
            stats["surface_frames"] += int(res.surface.detected)
            stats["max_warnings"] = max(stats["max_warnings"], len(res.warnings))

        try:
            processed = run_stream(source, pipeline, on_result=_collect)
        finally:
            close = getattr(source, "close", None)
            if close is not None:
                close()
            pipeline.stop()

        ctx.state["processed_frames"] = processed
        ctx.state["hazard_levels"] = dict(levels)
        ctx.state["frame_stats"] = stats
        ctx.state["metrics"] = pipeline.metrics()
