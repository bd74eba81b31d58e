from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from hazardsense.core.pipeline.base import LogFn, PipelineRunner, StageContext, noop_log
from hazardsense.core.schema import PipelineConfig
from hazardsense.core.types import Frame, FrameResult, RelativePosition, StairInfo, SurfaceInfo
from hazardsense.footpath.alerting import AlertRateLimiter
from hazardsense.footpath.obstacles import FootPathAnalyzer
from hazardsense.perception.tracking import TrackAssociator, TrackStore
from hazardsense.runtime.alerts import AlertDispatcher
from hazardsense.runtime.depth import DepthCollaborator, ObjectDepthEstimator
from hazardsense.runtime.detectors import Detector
from hazardsense.runtime.governor import FrameRateGovernor
from hazardsense.runtime.stages import default_stages


class FrameSource(Protocol):
    """Pull interface for frames; None means the stream is over."""
    def next_frame(self) -> Optional[Frame]: ...


@dataclass
class PipelineState:
    """All cross-frame mutable state, owned by one pipeline."""
    tracks: TrackStore
    footpath: FootPathAnalyzer
    limiter: AlertRateLimiter
    governor: FrameRateGovernor

    @staticmethod
    def create(cfg: PipelineConfig) -> "PipelineState":
        return PipelineState(
            tracks=TrackStore(),
            footpath=FootPathAnalyzer(cfg.footpath),
            limiter=AlertRateLimiter(cfg.alerts.cooldowns_ms),
            governor=FrameRateGovernor(cfg.governor, cfg.detection.score_threshold),
        )

    def clear(self) -> None:
        self.tracks.clear()
        self.footpath.reset()
        self.limiter.reset()


class HazardPipeline:
    """Single-worker perception-to-hazard pipeline.

    submit() is the only entry point. It returns None when the governor
    drops the frame or the pipeline is stopped (also when stop() arrives
    while the frame is in progress); otherwise a FrameResult,
    possibly partial when a stage failed. It never raises.
    """

    def __init__(
        self,
        cfg: PipelineConfig,
        detector: Detector,
        *,
        dispatcher: Optional[AlertDispatcher] = None,
        depth: Optional[DepthCollaborator] = None,
        log: LogFn = noop_log,
        clock: Optional[Callable[[], float]] = None,
        state: Optional[PipelineState] = None,
    ):
        self.cfg = cfg
        self.state = state or PipelineState.create(cfg)
        self.log = log
        if depth is None and cfg.depth.enabled:
            depth = ObjectDepthEstimator(cfg.depth)
        self._assets: Dict[str, Any] = {
            "detector": detector,
            "dispatcher": dispatcher,
            "depth": depth,
            "clock": clock or time.perf_counter,
            "log": log,
        }
        self._runner = PipelineRunner(
            stages=default_stages(),
            fail_fast=False,
            trace=False,
            should_continue=lambda: not self._stopped,
        )
        self._stopped = False

    @property
    def governor(self) -> FrameRateGovernor:
        return self.state.governor

    @property
    def tracks(self) -> TrackStore:
        return self.state.tracks

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _assets_for_frame(self) -> Dict[str, Any]:
        s = self.state
        assets = dict(self._assets)
        assets.update(
            {
                "governor": s.governor,
                "store": s.tracks,
                "associator": TrackAssociator(self.cfg.tracking, self.cfg.camera.horizontal_fov),
                "footpath": s.footpath,
                "limiter": s.limiter,
            }
        )
        return assets

    def submit(self, frame: Frame, now_ms: Optional[float] = None) -> Optional[FrameResult]:
        if self._stopped:
            return None
        now = float(frame.timestamp_ms if now_ms is None else now_ms)
        governor = self.state.governor
        if not governor.try_begin(now):
            return None

        processed_index = governor.frames_processed
        ctx = StageContext(
            cfg=self.cfg,
            state={
                "frame": frame,
                "now_ms": now,
                "secondary": governor.is_secondary_frame(processed_index),
            },
            assets=self._assets_for_frame(),
        )
        try:
            self._runner.run(ctx)
        finally:
            governor.finish(ctx.state.get("detect_ms", 0.0))

        if self._stopped:
            # stop() arrived mid-frame; drop whatever the finished stages left behind.
            self.state.clear()
            return None

        result = self._result(ctx)
        if result.errors:
            self.log("frame_partial", {"frame": frame.index, "errors": result.errors})
        if processed_index % self.cfg.sample_every_n_frames == 0:
            self.log(
                "frame_sample",
                {
                    "frame": frame.index,
                    "detections": len(result.detections),
                    "obstacles": len(result.obstacles),
                    "warnings": len(result.warnings),
                    "tracks": len(self.state.tracks),
                    **governor.metrics(),
                },
            )
        return result

    @staticmethod
    def _result(ctx: StageContext) -> FrameResult:
        s = ctx.state
        frame: Frame = s["frame"]
        return FrameResult(
            frame_index=frame.index,
            timestamp_ms=s["now_ms"],
            detections=list(s.get("scored", [])),
            obstacles=list(s.get("obstacles", [])),
            warnings=list(s.get("warnings", [])),
            stairs=s.get("stairs") or StairInfo(detected=False),
            surface=s.get("surface") or SurfaceInfo(detected=False),
            safe_direction=s.get("safe_direction", RelativePosition.CENTER),
            recommendation=s.get("recommendation"),
            latency_ms=float(s.get("detect_ms", 0.0)),
            errors=list(ctx.errors),
        )

    def stop(self) -> None:
        """Stop accepting frames and drop tracks, path history and cooldowns."""
        self._stopped = True
        self.state.clear()
        self.log("pipeline_stopped", self.state.governor.metrics())

    def start(self) -> None:
        self._stopped = False

    def metrics(self) -> Dict[str, Any]:
        m = self.state.governor.metrics()
        m["tracks"] = len(self.state.tracks)
        return m


def run_stream(
    source: FrameSource,
    pipeline: HazardPipeline,
    on_result: Optional[Callable[[FrameResult], None]] = None,
) -> int:
    """Pull frames until the source ends or the pipeline is stopped.

    Returns the number of frames that produced a result.
    """
    processed = 0
    while not pipeline.stopped:
        frame = source.next_frame()
        if frame is None:
            break
        result = pipeline.submit(frame)
        if result is None:
            continue
        processed += 1
        if on_result is not None:
            on_result(result)
    return processed
