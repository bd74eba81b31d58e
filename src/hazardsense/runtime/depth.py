from __future__ import annotations

import math
from typing import Any, Dict, Protocol, Sequence

from hazardsense.core.schema import DepthCfg
from hazardsense.core.types import DepthZone, DepthZones, Frame, NormalizedDetection


class DepthCollaborator(Protocol):
    def estimate(self, frame: Frame, detections: Sequence[NormalizedDetection]) -> DepthZones: ...


class ObjectDepthEstimator:
    """Depth zones from detection distances, for when no depth model is around."""

    def __init__(self, cfg: DepthCfg):
        self.cfg = cfg

    def zone_of(self, distance: float) -> str:
        if distance < self.cfg.critical:
            return "critical"
        if distance < self.cfg.near:
            return "near"
        if distance < self.cfg.mid:
            return "mid"
        return "far"

    def estimate(self, frame: Frame, detections: Sequence[NormalizedDetection]) -> DepthZones:
        mins: Dict[str, float] = {}
        for d in detections:
            if not math.isfinite(d.distance):
                continue
            z = self.zone_of(d.distance)
            mins[z] = min(mins.get(z, math.inf), d.distance)
        zones: Dict[str, Any] = {z: DepthZone(has_objects=True, min_distance=v) for z, v in mins.items()}
        return DepthZones(**zones)
