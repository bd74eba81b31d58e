from __future__ import annotations

"""Stair detection from the current frame's ground-level detections.

Two cues, either is enough:
- step pattern: a run of detections, sorted by distance, whose consecutive
  distance deltas all fall inside the step range (0.15-0.8 m);
- narrow bands: at least two thin, wide boxes in the lower frame.
"""

from typing import List, Sequence, Tuple

from hazardsense.core.schema import FootpathCfg
from hazardsense.core.types import NormalizedDetection, StairInfo

BAND_MAX_HEIGHT = 0.15
BAND_MIN_WIDTH = 0.15
BAND_MIN_Y = 0.4
MIN_BANDS = 2


def is_narrow_band(d: NormalizedDetection) -> bool:
    return d.bbox.h < BAND_MAX_HEIGHT and d.bbox.w > BAND_MIN_WIDTH and d.bbox.y > BAND_MIN_Y


def longest_step_run(ordered: Sequence[NormalizedDetection], delta_range: Tuple[float, float]) -> List[NormalizedDetection]:
    """Longest run of consecutive detections with in-range distance deltas."""
    lo, hi = delta_range
    best: List[NormalizedDetection] = []
    run: List[NormalizedDetection] = []
    for d in ordered:
        if run and lo <= d.distance - run[-1].distance <= hi:
            run.append(d)
        else:
            run = [d]
        if len(run) > len(best):
            best = list(run)
    return best


def detect_stairs(ground: Sequence[NormalizedDetection], cfg: FootpathCfg) -> StairInfo:
    candidates = sorted(
        (d for d in ground if d.distance < cfg.safety_zone * 2.0),
        key=lambda d: d.distance,
    )
    if not candidates:
        return StairInfo(detected=False)

    run = longest_step_run(candidates, cfg.step_delta_range)
    has_run = len(run) >= cfg.min_step_run
    bands = [d for d in candidates if is_narrow_band(d)]
    has_bands = len(bands) >= MIN_BANDS
    if not has_run and not has_bands:
        return StairInfo(detected=False)

    nearest = candidates[0]
    # Bands are sorted by distance too, so bands[0] is the nearest.
    ref = bands[0] if has_bands else run[0]
    going_down = ref.bbox.y > cfg.going_down_top

    lo, hi = cfg.step_height_range
    if has_run:
        deltas = [b.distance - a.distance for a, b in zip(run, run[1:])]
        step_height = min(hi, max(lo, sum(deltas) / len(deltas)))
        step_count = len(run)
    else:
        step_height = cfg.default_step_height
        step_count = len(bands)

    return StairInfo(
        detected=True,
        direction=nearest.position.relative,
        distance=nearest.distance,
        step_count=step_count,
        estimated_step_height=step_height,
        going_up=not going_down,
        going_down=going_down,
    )
