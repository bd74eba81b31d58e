from __future__ import annotations

from typing import Sequence

import numpy as np

from hazardsense.core.schema import FootpathCfg
from hazardsense.core.types import NormalizedDetection, Severity, SurfaceInfo


def combined_variance(ground: Sequence[NormalizedDetection]) -> float:
    """var(bbox bottoms) + 0.5 * var(distances), population variance."""
    if not ground:
        return 0.0
    bottoms = np.array([d.bbox.bottom for d in ground], dtype=float)
    dists = np.array([d.distance for d in ground], dtype=float)
    return float(np.var(bottoms) + 0.5 * np.var(dists))


def severity_for(variance: float) -> Severity:
    if variance > 0.2:
        return Severity.HIGH
    if variance > 0.1:
        return Severity.MEDIUM
    return Severity.LOW


def detect_uneven_surface(ground: Sequence[NormalizedDetection], cfg: FootpathCfg) -> SurfaceInfo:
    near = [d for d in ground if d.distance < cfg.surface_max_distance]
    if len(near) < cfg.surface_min_samples:
        return SurfaceInfo(detected=False)

    variance = combined_variance(near)
    if variance <= cfg.surface_variance_threshold:
        return SurfaceInfo(detected=False, variance=variance)
    return SurfaceInfo(
        detected=True,
        severity=severity_for(variance),
        variance=variance,
        nearest_distance=min(d.distance for d in near),
    )
