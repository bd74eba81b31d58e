from __future__ import annotations

import threading
from typing import Any, Dict, Optional

from hazardsense.core.schema import GovernorCfg

MIN_FPS = 5.0
MAX_FPS = 30.0


class FrameRateGovernor:
    """Admits at most one frame per interval and never more than one in flight.

    Rejected frames are dropped and counted, never queued. After every
    processed frame the detector latency nudges the score threshold:
    slow frames raise it (fewer candidates), fast frames lower it.

    The admit and release steps hold a lock, so frames submitted from a
    capture thread and a pull loop still see a single worker.
    """

    def __init__(self, cfg: GovernorCfg, score_threshold: float):
        self.cfg = cfg
        self.initial_threshold = float(score_threshold)
        self._lock = threading.Lock()
        self.set_target_fps(cfg.target_fps)
        self.reset()

    def reset(self) -> None:
        self.score_threshold = self.initial_threshold
        self.last_process_ms: Optional[float] = None
        self.in_flight = False
        self._started_ms: Optional[float] = None
        self.frames_processed = 0
        self.dropped_frames = 0
        self.avg_latency_ms = 0.0
        self.last_fps = 0.0

    def set_target_fps(self, fps: float) -> None:
        self.target_fps = max(MIN_FPS, min(MAX_FPS, float(fps)))
        self.min_interval_ms = 1000.0 / self.target_fps

    def try_begin(self, now_ms: float) -> bool:
        """Claim the worker for a frame arriving at `now_ms`."""
        with self._lock:
            if self.in_flight:
                self.dropped_frames += 1
                return False
            if self.last_process_ms is not None and now_ms - self.last_process_ms < self.min_interval_ms:
                self.dropped_frames += 1
                return False
            self.in_flight = True
            self._started_ms = float(now_ms)
            return True

    def finish(self, latency_ms: float) -> None:
        """Release the worker and feed the measured latency back."""
        with self._lock:
            if not self.in_flight:
                return
            self.in_flight = False
            self.last_process_ms = self._started_ms
            self._started_ms = None

            latency_ms = max(0.0, float(latency_ms))
            self.frames_processed += 1
            n = self.frames_processed
            self.avg_latency_ms = (self.avg_latency_ms * (n - 1) + latency_ms) / n
            self.last_fps = 1000.0 / latency_ms if latency_ms > 0 else 0.0
            if self.cfg.adaptive_threshold:
                self._adapt(latency_ms)

    def _adapt(self, latency_ms: float) -> None:
        # Drift toward the bound only; a threshold already past it is left alone.
        c = self.cfg
        t = self.score_threshold
        if latency_ms > c.slow_latency_ms and t < c.threshold_ceiling:
            self.score_threshold = min(c.threshold_ceiling, t + c.raise_step)
        elif latency_ms < c.fast_latency_ms and t > c.threshold_floor:
            self.score_threshold = max(c.threshold_floor, t - c.lower_step)

    def is_secondary_frame(self, processed_index: int) -> bool:
        """Secondary consumers run on every n-th processed frame only."""
        return processed_index % int(self.cfg.secondary_every_n) == 0

    def metrics(self) -> Dict[str, Any]:
        return {
            "frames_processed": self.frames_processed,
            "dropped_frames": self.dropped_frames,
            "avg_latency_ms": round(self.avg_latency_ms, 3),
            "last_fps": round(self.last_fps, 3),
            "score_threshold": round(self.score_threshold, 4),
            "target_fps": self.target_fps,
        }
