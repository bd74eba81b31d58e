from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Protocol

from hazardsense.core.pipeline.base import LogFn, noop_log
from hazardsense.core.types import ObstacleWarning, StairInfo, SurfaceInfo


class AlertDispatcher(Protocol):
    """Consumer of rate-limited alerts (speech, spatial audio, haptics)."""
    def warning(self, w: ObstacleWarning) -> None: ...
    def stairs(self, info: StairInfo) -> None: ...
    def surface(self, info: SurfaceInfo) -> None: ...


class LogAlertDispatcher:
    """Forwards alerts to the structured event log."""

    def __init__(self, log: LogFn = noop_log):
        self.log = log

    def warning(self, w: ObstacleWarning) -> None:
        self.log("alert_warning", asdict(w))

    def stairs(self, info: StairInfo) -> None:
        self.log("alert_stairs", asdict(info))

    def surface(self, info: SurfaceInfo) -> None:
        self.log("alert_surface", asdict(info))


class RecordingDispatcher:
    """Keeps every alert in memory; handy for summaries and tests."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def warning(self, w: ObstacleWarning) -> None:
        self.events.append({"kind": "warning", "level": w.hazard_level.value, "message": w.message})

    def stairs(self, info: StairInfo) -> None:
        self.events.append({"kind": "stairs", "step_count": info.step_count, "going_down": info.going_down})

    def surface(self, info: SurfaceInfo) -> None:
        self.events.append({"kind": "surface", "severity": info.severity.value if info.severity else None})

    def count(self, kind: str) -> int:
        return sum(1 for e in self.events if e["kind"] == kind)
