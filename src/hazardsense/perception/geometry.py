from __future__ import annotations

import math
from typing import Optional

from hazardsense.core.schema import CameraCfg
from hazardsense.core.types import (
    CANONICAL_HEIGHTS_M,
    BBox,
    NormalizedDetection,
    ObjectClass,
    Position,
    RawDetection,
    RelativePosition,
)

MIN_PINHOLE_M = 0.1
MAX_DISTANCE_M = 100.0
MIN_FALLBACK_M = 0.2


def focal_length_px(frame_height_px: float, vertical_fov_deg: float) -> float:
    vfov = math.radians(vertical_fov_deg)
    return (frame_height_px / 2.0) / math.tan(vfov / 2.0)


def area_distance(norm_bbox: Optional[BBox]) -> float:
    """Area heuristic: bigger boxes are closer."""
    w = norm_bbox.w if norm_bbox is not None and norm_bbox.w > 0 else 0.1
    h = norm_bbox.h if norm_bbox is not None and norm_bbox.h > 0 else 0.1
    area = w * h
    if not math.isfinite(area):
        area = 0.01
    area = max(1e-4, area)
    return min(MAX_DISTANCE_M, max(MIN_FALLBACK_M, 6.0 / math.sqrt(area)))


def estimate_distance(
    kind: ObjectClass,
    bbox_height_px: float,
    frame_height_px: float,
    vertical_fov_deg: float,
    norm_bbox: Optional[BBox] = None,
) -> float:
    """Monocular distance in meters.

    Pinhole model when the class has a canonical height; anything out of
    (0.1, 100) m or non-finite falls back to the area heuristic.
    """
    canonical = CANONICAL_HEIGHTS_M.get(kind)
    if canonical and bbox_height_px > 0 and frame_height_px > 0:
        z = canonical * focal_length_px(frame_height_px, vertical_fov_deg) / bbox_height_px
        if math.isfinite(z) and MIN_PINHOLE_M < z < MAX_DISTANCE_M:
            return z
    return area_distance(norm_bbox)


def relative_position(center_x: float) -> RelativePosition:
    if center_x < 0.33:
        return RelativePosition.LEFT
    if center_x > 0.66:
        return RelativePosition.RIGHT
    return RelativePosition.CENTER


def normalize(raw: RawDetection, frame_width: int, frame_height: int, camera: CameraCfg) -> NormalizedDetection:
    """Pixel detection -> fractional bbox, distance and bearing."""
    fw = float(frame_width) if frame_width > 0 else 1.0
    fh = float(frame_height) if frame_height > 0 else 1.0
    b = raw.bbox
    norm = BBox(b.x / fw, b.y / fh, b.w / fw, b.h / fh)
    cx, cy = norm.center
    kind = ObjectClass.parse(raw.label)
    distance = estimate_distance(kind, b.h, frame_height, camera.vertical_fov, norm)
    return NormalizedDetection(
        label=raw.label,
        kind=kind,
        confidence=float(raw.score),
        bbox=norm,
        distance=distance,
        position=Position(
            relative=relative_position(cx),
            angle_deg=(cx - 0.5) * camera.horizontal_fov,
            center=(cx, cy),
        ),
    )
