from __future__ import annotations

"""Pydantic schema definitions for the hazard pipeline and monitor runs."""

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, Field, model_validator


class DetectionCfg(BaseModel):
    """Score and IoU thresholds for non-max suppression."""

    score_threshold: float = Field(0.25, ge=0.0, le=1.0)
    nms_iou_threshold: float = Field(0.45, ge=0.0, le=1.0)
    per_class_nms: bool = True
    max_detections: int = Field(20, ge=1)


class CameraCfg(BaseModel):
    """Camera field of view in degrees."""

    horizontal_fov: float = Field(70.0, gt=0.0, lt=180.0)
    vertical_fov: float = Field(60.0, gt=0.0, lt=180.0)


class TrackingCfg(BaseModel):
    """Track association and smoothing parameters."""

    smoothing_factor: float = Field(0.6, gt=0.0, le=1.0)
    track_max_age_ms: float = Field(1500.0, gt=0.0)
    association_iou_threshold: float = Field(0.3, ge=0.0, le=1.0)


class FootpathCfg(BaseModel):
    """Foot placement analysis: ground filter, stairs and surface rules."""

    safety_zone: float = Field(1.5, ge=0.5, le=5.0)
    ground_level_threshold: float = Field(0.4, ge=0.0, le=1.0)
    footpath_band: Tuple[float, float] = (0.35, 0.65)
    path_history_len: int = Field(10, ge=2)
    default_walk_speed_mps: float = Field(1.0, gt=0.0)

    step_delta_range: Tuple[float, float] = (0.15, 0.8)
    min_step_run: int = Field(2, ge=2)
    step_height_range: Tuple[float, float] = (0.1, 0.3)
    default_step_height: float = 0.18
    going_down_top: float = 0.7

    surface_max_distance: float = 3.0
    surface_min_samples: int = Field(2, ge=2)
    surface_variance_threshold: float = 0.05


class AlertsCfg(BaseModel):
    """Per-level warning cooldowns in milliseconds."""

    cooldowns_ms: Dict[str, float] = Field(
        default_factory=lambda: {
            "critical": 500.0,
            "high": 1000.0,
            "medium": 2000.0,
            "low": 5000.0,
            "stairs": 3000.0,
            "surface": 4000.0,
        }
    )
    include_low_warnings: bool = False


class GovernorCfg(BaseModel):
    """Frame-rate gating and adaptive score threshold."""

    target_fps: float = Field(15.0, ge=5.0, le=30.0)
    adaptive_threshold: bool = True
    slow_latency_ms: float = 150.0
    fast_latency_ms: float = 50.0
    threshold_ceiling: float = 0.6
    threshold_floor: float = 0.3
    raise_step: float = 0.02
    lower_step: float = 0.01
    secondary_every_n: int = Field(2, ge=1)


class DepthCfg(BaseModel):
    """Upper bounds (meters) of the depth zones."""

    enabled: bool = True
    critical: float = 0.5
    near: float = 1.5
    mid: float = 3.0


# Flat option names accepted at the top level of PipelineConfig.
_FLAT_KEYS: Dict[str, Tuple[str, str]] = {
    "scoreThreshold": ("detection", "score_threshold"),
    "nmsIoUThreshold": ("detection", "nms_iou_threshold"),
    "perClassNMS": ("detection", "per_class_nms"),
    "maxDetections": ("detection", "max_detections"),
    "horizontalFOV": ("camera", "horizontal_fov"),
    "verticalFOV": ("camera", "vertical_fov"),
    "smoothingFactor": ("tracking", "smoothing_factor"),
    "trackMaxAgeMs": ("tracking", "track_max_age_ms"),
    "associationIoUThreshold": ("tracking", "association_iou_threshold"),
    "safetyZone": ("footpath", "safety_zone"),
    "targetFPS": ("governor", "target_fps"),
}


class PipelineConfig(BaseModel):
    """Configuration of the per-frame hazard pipeline.

    Supports both shapes:
    A) nested: detection: {score_threshold: ...}, tracking: {...}
    B) flat camelCase keys: scoreThreshold, smoothingFactor, targetFPS, ...
    """

    detection: DetectionCfg = Field(default_factory=DetectionCfg)
    camera: CameraCfg = Field(default_factory=CameraCfg)
    tracking: TrackingCfg = Field(default_factory=TrackingCfg)
    footpath: FootpathCfg = Field(default_factory=FootpathCfg)
    alerts: AlertsCfg = Field(default_factory=AlertsCfg)
    governor: GovernorCfg = Field(default_factory=GovernorCfg)
    depth: DepthCfg = Field(default_factory=DepthCfg)
    sample_every_n_frames: int = Field(30, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any):
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for flat, (section, key) in _FLAT_KEYS.items():
            if flat not in data:
                continue
            value = data.pop(flat)
            sub = data.get(section)
            sub = dict(sub) if isinstance(sub, dict) else {}
            sub.setdefault(key, value)
            data[section] = sub
        return data


class SourceCfg(BaseModel):
    """Where frames and detections come from."""

    type: Literal["replay", "video"] = "replay"
    path: str = "data/replay.jsonl"

    # Only used for type=video.
    weights: Optional[str] = "yolov8n.pt"
    device: str = "cpu"
    max_frames: int = 0


class ExportCfg(BaseModel):
    """Output settings for a monitor run."""

    out_dir: str = "runs/monitor"
    save_results: bool = True


class RunConfig(BaseModel):
    """Monitor run configuration loaded from YAML."""

    run_id: str = Field(
        default_factory=lambda: datetime.now().strftime("%Y%m%d_%H%M%S"),
        description="Timestamp used to isolate run output folders.",
    )
    source: SourceCfg = Field(default_factory=SourceCfg)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    export: ExportCfg = Field(default_factory=ExportCfg)
