from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from hazardsense.core.types import FootObstacle, HazardLevel, ObstacleWarning, RelativePosition

URGENT = (HazardLevel.CRITICAL, HazardLevel.HIGH)


def warning_message(ob: FootObstacle, safe: Optional[RelativePosition] = None) -> str:
    msg = f"{ob.label} {ob.distance:.1f}m {ob.direction.value}"
    if safe is not None and ob.hazard_level in URGENT and safe != ob.direction:
        msg += f". Move {safe.value}"
    return msg


def build_warnings(
    obstacles: Sequence[FootObstacle],
    safe: Optional[RelativePosition] = None,
    *,
    include_low: bool = False,
) -> List[ObstacleWarning]:
    """Warnings ordered by priority (critical first), then distance."""
    out: List[ObstacleWarning] = []
    for ob in obstacles:
        if ob.hazard_level is HazardLevel.LOW and not include_low:
            continue
        out.append(
            ObstacleWarning(
                object=ob.label,
                distance=ob.distance,
                direction=ob.direction,
                hazard_level=ob.hazard_level,
                in_footpath=ob.in_footpath,
                collision_time_s=ob.predicted_collision_time_s,
                message=warning_message(ob, safe),
                priority=ob.hazard_level.priority,
            )
        )
    out.sort(key=lambda w: (w.priority, w.distance))
    return out


class AlertRateLimiter:
    """Per-key cooldown windows (keys: hazard levels, 'stairs', 'surface')."""

    def __init__(self, cooldowns_ms: Mapping[str, float], default_ms: float = 2000.0):
        self.cooldowns_ms: Dict[str, float] = {str(k): float(v) for k, v in cooldowns_ms.items()}
        self.default_ms = float(default_ms)
        self._last: Dict[str, float] = {}

    def cooldown(self, key: str) -> float:
        return self.cooldowns_ms.get(key, self.default_ms)

    def allow(self, key: str, now_ms: float) -> bool:
        """True (and the window restarts) when `key` is out of cooldown."""
        last = self._last.get(key)
        if last is not None and now_ms - last < self.cooldown(key):
            return False
        self._last[key] = float(now_ms)
        return True

    def reset(self) -> None:
        self._last.clear()


def select_for_dispatch(
    warnings: Sequence[ObstacleWarning],
    limiter: AlertRateLimiter,
    now_ms: float,
) -> List[ObstacleWarning]:
    """First warning of each level whose cooldown has elapsed, priority order."""
    out: List[ObstacleWarning] = []
    seen = set()
    for w in warnings:
        if w.hazard_level in seen:
            continue
        seen.add(w.hazard_level)
        if limiter.allow(w.hazard_level.value, now_ms):
            out.append(w)
    return out
