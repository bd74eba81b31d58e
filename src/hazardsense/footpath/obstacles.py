from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from hazardsense.core.schema import FootpathCfg
from hazardsense.core.types import (
    GROUND_OBSTACLES,
    DepthZones,
    FootObstacle,
    HazardLevel,
    NormalizedDetection,
    ObjectClass,
    PathRecommendation,
    RelativePosition,
)

_ZONE_ORDER = (RelativePosition.LEFT, RelativePosition.CENTER, RelativePosition.RIGHT)


@dataclass(frozen=True)
class PathSample:
    """Labels and distances seen in one processed frame."""
    timestamp_ms: float
    objects: Tuple[Tuple[str, float], ...]

    def distance_of(self, label: str) -> Optional[float]:
        for lbl, dist in self.objects:
            if lbl == label:
                return dist
        return None


def is_ground_level(det: NormalizedDetection, threshold: float) -> bool:
    return det.bbox.bottom > threshold


def in_footpath(det: NormalizedDetection, band: Tuple[float, float] = (0.35, 0.65)) -> bool:
    cx = det.bbox.x + det.bbox.w / 2.0
    return band[0] <= cx <= band[1]


def surface_type(kind: ObjectClass) -> str:
    if kind in (ObjectClass.BENCH, ObjectClass.CHAIR):
        return "elevated"
    if kind is ObjectClass.SKATEBOARD:
        return "rolling_hazard"
    if kind in (ObjectClass.BOTTLE, ObjectClass.CUP):
        return "trip_hazard"
    return "concrete"


def hazard_level(distance: float, in_path: bool, safety_zone: float) -> HazardLevel:
    """Distance bands, tighter when the obstacle is straight ahead."""
    critical = 0.7 if in_path else 0.5
    high = 1.2 if in_path else 1.0
    medium = safety_zone + 0.5 if in_path else safety_zone
    if distance < critical:
        return HazardLevel.CRITICAL
    if distance < high:
        return HazardLevel.HIGH
    if distance < medium:
        return HazardLevel.MEDIUM
    return HazardLevel.LOW


def safe_direction(obstacles: Sequence[FootObstacle]) -> RelativePosition:
    """Zone with no obstacles, or the one whose nearest obstacle is farthest."""
    counts: Dict[RelativePosition, int] = {z: 0 for z in _ZONE_ORDER}
    nearest: Dict[RelativePosition, float] = {z: float("inf") for z in _ZONE_ORDER}
    for ob in obstacles:
        counts[ob.direction] += 1
        nearest[ob.direction] = min(nearest[ob.direction], ob.distance)

    best = RelativePosition.CENTER
    best_score = float("-inf")
    for zone in _ZONE_ORDER:
        score = (10.0 if counts[zone] == 0 else 0.0) + (5.0 if counts[zone] == 0 else nearest[zone])
        if score > best_score:
            best_score = score
            best = zone
    return best


def recommend_path(obstacles: Sequence[FootObstacle]) -> PathRecommendation:
    if not obstacles:
        return PathRecommendation(safe=True, message="Path clear", direction="forward", confidence=1.0)

    counts = {z: 0 for z in _ZONE_ORDER}
    for ob in obstacles:
        counts[ob.direction] += 1
    zone = min(_ZONE_ORDER, key=lambda z: counts[z])
    clear = counts[zone] == 0
    return PathRecommendation(
        safe=clear,
        message=f"Move {zone.value}" if clear else "Caution: obstacles ahead",
        direction=zone.value,
        obstacle_count=len(obstacles),
        confidence=1.0 if clear else 0.7,
    )


class FootPathAnalyzer:
    """Ground obstacle filter with a short path history for approach rates.

    The history ring buffer is the only state; `reset()` clears it.
    """

    def __init__(self, cfg: FootpathCfg):
        self.cfg = cfg
        self.history: Deque[PathSample] = deque(maxlen=int(cfg.path_history_len))

    def reset(self) -> None:
        self.history.clear()

    def record(self, detections: Sequence[NormalizedDetection], now_ms: float) -> None:
        self.history.append(
            PathSample(timestamp_ms=float(now_ms), objects=tuple((d.label, float(d.distance)) for d in detections))
        )

    def collision_time(self, det: NormalizedDetection) -> float:
        """Seconds until contact from the last two history samples."""
        fallback = det.distance / self.cfg.default_walk_speed_mps
        if len(self.history) < 2:
            return fallback
        prev, cur = self.history[-2], self.history[-1]
        prev_dist = prev.distance_of(det.label)
        if prev_dist is None:
            return fallback
        delta = prev_dist - det.distance
        dt_s = (cur.timestamp_ms - prev.timestamp_ms) / 1000.0
        if delta <= 0 or dt_s <= 0:
            return fallback
        return det.distance / (delta / dt_s)

    def ground_level(self, detections: Sequence[NormalizedDetection]) -> List[NormalizedDetection]:
        return [d for d in detections if is_ground_level(d, self.cfg.ground_level_threshold)]

    def obstacles(self, detections: Sequence[NormalizedDetection]) -> List[FootObstacle]:
        """Ground-level obstacle classes within twice the safety zone, nearest first."""
        max_dist = self.cfg.safety_zone * 2.0
        out: List[FootObstacle] = []
        for d in self.ground_level(detections):
            if d.kind not in GROUND_OBSTACLES or d.distance >= max_dist:
                continue
            path = in_footpath(d, self.cfg.footpath_band)
            out.append(
                FootObstacle(
                    detection=d,
                    hazard_level=hazard_level(d.distance, path, self.cfg.safety_zone),
                    in_footpath=path,
                    predicted_collision_time_s=self.collision_time(d),
                    surface_type=surface_type(d.kind),
                )
            )
        out.sort(key=lambda o: o.distance)
        return out

    def analyze(self, detections: Sequence[NormalizedDetection], now_ms: float) -> List[FootObstacle]:
        """Record this frame in the history, then classify its obstacles."""
        self.record(detections, now_ms)
        return self.obstacles(detections)


def fuse_depth(obstacles: Sequence[FootObstacle], zones: Optional[DepthZones]) -> List[FootObstacle]:
    """Escalate obstacles the depth signal puts inside the critical zone."""
    if zones is None or not zones.critical.has_objects:
        return list(obstacles)
    limit = zones.critical.min_distance * 1.2
    return [replace(o, hazard_level=HazardLevel.CRITICAL) if o.distance < limit else o for o in obstacles]
