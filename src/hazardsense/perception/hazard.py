from __future__ import annotations

"""Multi-factor hazard score.

score = base(class) + distance + size + centrality, clamped to [0, 10]

- base: vehicles 5, two-wheelers 4, people/animals 3, small items 1-2
- distance: closer is worse, 2 * log2(1 + 8 / d) capped at 5.9
- size: min(5, 4 * log10(1 + 100 * area))
- centrality: 3 center, 2 left/right

Levels: >=8 critical, >=6 high, >=4 medium, else low.
"""

import math
from typing import Dict, List, Sequence

from hazardsense.core.types import (
    HazardLevel,
    HazardScore,
    NormalizedDetection,
    ObjectClass,
    RelativePosition,
    ScoredDetection,
    TrackedDetection,
)

DEFAULT_BASE = 2.0

HAZARD_BASE: Dict[ObjectClass, float] = {
    ObjectClass.CAR: 5.0,
    ObjectClass.BUS: 5.0,
    ObjectClass.TRUCK: 5.0,
    ObjectClass.MOTORCYCLE: 4.0,
    ObjectClass.BICYCLE: 4.0,
    ObjectClass.STOP_SIGN: 4.0,
    ObjectClass.PERSON: 3.0,
    ObjectClass.DOG: 3.0,
    ObjectClass.TRAFFIC_LIGHT: 3.0,
    ObjectClass.FIRE_HYDRANT: 3.0,
    ObjectClass.SKATEBOARD: 3.0,
    ObjectClass.CAT: 2.0,
    ObjectClass.BENCH: 2.0,
    ObjectClass.PARKING_METER: 2.0,
    ObjectClass.SUITCASE: 2.0,
    ObjectClass.CHAIR: 1.0,
    ObjectClass.POTTED_PLANT: 1.0,
    ObjectClass.UMBRELLA: 1.0,
    ObjectClass.HANDBAG: 1.0,
    ObjectClass.BOTTLE: 1.0,
    ObjectClass.CUP: 1.0,
}

CENTRALITY: Dict[RelativePosition, float] = {
    RelativePosition.CENTER: 3.0,
    RelativePosition.LEFT: 2.0,
    RelativePosition.RIGHT: 2.0,
}


def distance_factor(distance: float) -> float:
    d = distance if math.isfinite(distance) and distance > 0 else 5.0
    d = max(0.2, min(15.0, d))
    return min(5.9, math.log2(1.0 + 8.0 / d) * 2.0)


def size_factor(width: float, height: float) -> float:
    area = max(1e-4, (width or 0.1) * (height or 0.1))
    return min(5.0, math.log10(1.0 + area * 100.0) * 4.0)


def level_for(score: float) -> HazardLevel:
    if score >= 8.0:
        return HazardLevel.CRITICAL
    if score >= 6.0:
        return HazardLevel.HIGH
    if score >= 4.0:
        return HazardLevel.MEDIUM
    return HazardLevel.LOW


def score_detection(d: NormalizedDetection) -> HazardScore:
    """Pure function of the detection; no state is kept between calls."""
    base = HAZARD_BASE.get(d.kind, DEFAULT_BASE)
    centrality = CENTRALITY.get(d.position.relative, 1.0) if d.position is not None else 1.0
    raw = base + distance_factor(d.distance) + size_factor(d.bbox.w, d.bbox.h) + centrality
    score = min(10.0, max(0.0, raw))
    return HazardScore(score=score, level=level_for(score))


def attach_score(d: TrackedDetection) -> ScoredDetection:
    return ScoredDetection(
        label=d.label,
        kind=d.kind,
        confidence=d.confidence,
        bbox=d.bbox,
        distance=d.distance,
        position=d.position,
        track_id=d.track_id,
        velocity=d.velocity,
        hazard=score_detection(d),
    )


def rank_detections(dets: Sequence[TrackedDetection], max_detections: int) -> List[ScoredDetection]:
    """Score, then order by hazard score and confidence (both descending)."""
    scored = [attach_score(d) for d in dets]
    scored.sort(key=lambda s: (-s.hazard.score, -s.confidence))
    return scored[: max(0, int(max_detections))]
