from __future__ import annotations

"""YAML and Pydantic config loaders."""

from pathlib import Path
from typing import Any, Dict, Type, TypeVar

import yaml

from hazardsense.core.schema import PipelineConfig, RunConfig

T = TypeVar("T")


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping at top-level: {p}")
    return data


def load_pydantic(path: str | Path, cls: Type[T]) -> T:
    """Load YAML and validate it against a Pydantic v2 model."""
    return cls.model_validate(load_yaml(path))  # type: ignore[attr-defined]


def load_run_config(path: str | Path) -> RunConfig:
    """Load monitor run configuration YAML."""
    return load_pydantic(path, RunConfig)


def load_pipeline_config(path: str | Path) -> PipelineConfig:
    """Load a bare pipeline configuration (nested or flat keys)."""
    return load_pydantic(path, PipelineConfig)
