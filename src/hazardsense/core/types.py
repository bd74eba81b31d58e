from __future__ import annotations

"""Shared data containers for the perception-to-hazard pipeline."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

Point = Tuple[float, float]


class ObjectClass(str, Enum):
    """Closed set of detector classes the pipeline knows about."""
    PERSON = "person"
    DOG = "dog"
    CAT = "cat"
    BICYCLE = "bicycle"
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    BUS = "bus"
    TRUCK = "truck"
    CHAIR = "chair"
    BENCH = "bench"
    STOP_SIGN = "stop sign"
    TRAFFIC_LIGHT = "traffic light"
    FIRE_HYDRANT = "fire hydrant"
    PARKING_METER = "parking meter"
    POTTED_PLANT = "potted plant"
    SKATEBOARD = "skateboard"
    UMBRELLA = "umbrella"
    HANDBAG = "handbag"
    SUITCASE = "suitcase"
    BACKPACK = "backpack"
    SPORTS_BALL = "sports ball"
    BOTTLE = "bottle"
    CUP = "cup"
    UNKNOWN = "unknown"

    @staticmethod
    def parse(label: str) -> "ObjectClass":
        """Map a detector label to a known class, UNKNOWN otherwise."""
        key = str(label or "").strip().lower().replace("_", " ")
        try:
            return ObjectClass(key)
        except ValueError:
            return ObjectClass.UNKNOWN


class RelativePosition(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class HazardLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def priority(self) -> int:
        """Alert priority: 1 is most urgent."""
        if self is HazardLevel.CRITICAL:
            return 1
        if self is HazardLevel.HIGH:
            return 2
        return 3


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Canonical real-world heights in meters, used by the pinhole distance model.
CANONICAL_HEIGHTS_M: Dict[ObjectClass, float] = {
    ObjectClass.PERSON: 1.7,
    ObjectClass.DOG: 0.5,
    ObjectClass.BICYCLE: 1.1,
    ObjectClass.MOTORCYCLE: 1.2,
    ObjectClass.CAR: 1.45,
    ObjectClass.BUS: 3.0,
    ObjectClass.TRUCK: 3.5,
    ObjectClass.CHAIR: 0.9,
    ObjectClass.BENCH: 1.0,
    ObjectClass.STOP_SIGN: 2.1,
    ObjectClass.TRAFFIC_LIGHT: 3.5,
    ObjectClass.FIRE_HYDRANT: 0.6,
    ObjectClass.PARKING_METER: 1.2,
    ObjectClass.POTTED_PLANT: 0.5,
    ObjectClass.SKATEBOARD: 0.1,
    ObjectClass.UMBRELLA: 0.3,
    ObjectClass.HANDBAG: 0.3,
    ObjectClass.SUITCASE: 0.7,
    ObjectClass.BOTTLE: 0.25,
    ObjectClass.CUP: 0.1,
}

# Classes that block the user's feet when they sit at ground level.
GROUND_OBSTACLES: FrozenSet[ObjectClass] = frozenset(
    {
        ObjectClass.PERSON,
        ObjectClass.BICYCLE,
        ObjectClass.CAR,
        ObjectClass.MOTORCYCLE,
        ObjectClass.BUS,
        ObjectClass.TRUCK,
        ObjectClass.BENCH,
        ObjectClass.CHAIR,
        ObjectClass.SUITCASE,
        ObjectClass.BACKPACK,
        ObjectClass.SPORTS_BALL,
        ObjectClass.FIRE_HYDRANT,
        ObjectClass.PARKING_METER,
        ObjectClass.POTTED_PLANT,
        ObjectClass.SKATEBOARD,
        ObjectClass.UMBRELLA,
        ObjectClass.HANDBAG,
        ObjectClass.BOTTLE,
        ObjectClass.CUP,
        ObjectClass.DOG,
        ObjectClass.CAT,
    }
)


@dataclass(frozen=True)
class BBox:
    """Axis-aligned box as (x, y, w, h), top-left origin."""
    x: float
    y: float
    w: float
    h: float

    @property
    def area(self) -> float:
        return max(0.0, self.w) * max(0.0, self.h)

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def center(self) -> Point:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.w, self.h))

    @staticmethod
    def from_xyxy(x1: float, y1: float, x2: float, y2: float) -> "BBox":
        return BBox(float(x1), float(y1), float(x2) - float(x1), float(y2) - float(y1))


@dataclass(frozen=True)
class RawDetection:
    """Detector output for a single object, bbox in pixels."""
    label: str
    score: float
    bbox: BBox

    def is_valid(self) -> bool:
        return math.isfinite(self.score) and self.bbox.is_finite()

    @staticmethod
    def from_dict(item: Mapping[str, Any]) -> Optional["RawDetection"]:
        """Parse the detector wire shape {class, score, bbox:[x,y,w,h]}.

        Returns None for anything malformed.
        """
        try:
            label = str(item["class"])
            score = float(item["score"])
            x, y, w, h = (float(v) for v in item["bbox"])
        except (KeyError, TypeError, ValueError):
            return None
        det = RawDetection(label=label, score=score, bbox=BBox(x, y, w, h))
        return det if det.is_valid() else None


@dataclass(frozen=True)
class Position:
    relative: RelativePosition
    angle_deg: float
    center: Point


@dataclass(frozen=True)
class NormalizedDetection:
    """Detection with a fractional bbox, distance in meters and bearing."""
    label: str
    kind: ObjectClass
    confidence: float
    bbox: BBox
    distance: float
    position: Position


@dataclass(frozen=True)
class TrackedDetection(NormalizedDetection):
    """Smoothed detection carrying its persistent track id."""
    track_id: int = 0
    velocity: Point = (0.0, 0.0)


@dataclass(frozen=True)
class HazardScore:
    score: float
    level: HazardLevel


@dataclass(frozen=True)
class ScoredDetection(TrackedDetection):
    hazard: Optional[HazardScore] = None


@dataclass
class Track:
    """Mutable per-object state; owned by a TrackStore."""
    track_id: int
    label: str
    bbox: BBox
    score: float
    distance: float
    last_seen_ms: float
    velocity: Point = (0.0, 0.0)


@dataclass(frozen=True)
class FootObstacle:
    """Ground-level obstacle with foot-placement annotations."""
    detection: NormalizedDetection
    hazard_level: HazardLevel
    in_footpath: bool
    predicted_collision_time_s: float
    surface_type: str = "concrete"

    @property
    def label(self) -> str:
        return self.detection.label

    @property
    def distance(self) -> float:
        return self.detection.distance

    @property
    def direction(self) -> RelativePosition:
        return self.detection.position.relative


@dataclass(frozen=True)
class StairInfo:
    detected: bool
    direction: Optional[RelativePosition] = None
    distance: Optional[float] = None
    step_count: int = 0
    estimated_step_height: Optional[float] = None
    going_up: bool = False
    going_down: bool = False


@dataclass(frozen=True)
class SurfaceInfo:
    detected: bool
    severity: Optional[Severity] = None
    variance: float = 0.0
    nearest_distance: Optional[float] = None


@dataclass(frozen=True)
class ObstacleWarning:
    object: str
    distance: float
    direction: RelativePosition
    hazard_level: HazardLevel
    in_footpath: bool
    collision_time_s: float
    message: str
    priority: int


@dataclass(frozen=True)
class PathRecommendation:
    safe: bool
    message: str
    direction: str
    obstacle_count: int = 0
    confidence: float = 1.0


@dataclass(frozen=True)
class DepthZone:
    has_objects: bool = False
    min_distance: float = math.inf


@dataclass(frozen=True)
class DepthZones:
    critical: DepthZone = field(default_factory=DepthZone)
    near: DepthZone = field(default_factory=DepthZone)
    mid: DepthZone = field(default_factory=DepthZone)
    far: DepthZone = field(default_factory=DepthZone)


@dataclass(frozen=True)
class Frame:
    """One unit of input: an image (or replay payload) with its geometry."""
    index: int
    width: int
    height: int
    timestamp_ms: float
    image: Any = None


@dataclass
class FrameResult:
    """Everything the pipeline derived from one accepted frame."""
    frame_index: int
    timestamp_ms: float
    detections: List[ScoredDetection] = field(default_factory=list)
    obstacles: List[FootObstacle] = field(default_factory=list)
    warnings: List[ObstacleWarning] = field(default_factory=list)
    stairs: StairInfo = field(default_factory=lambda: StairInfo(detected=False))
    surface: SurfaceInfo = field(default_factory=lambda: SurfaceInfo(detected=False))
    safe_direction: RelativePosition = RelativePosition.CENTER
    recommendation: Optional[PathRecommendation] = None
    latency_ms: float = 0.0
    errors: List[Tuple[str, str]] = field(default_factory=list)
