from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from hazardsense.core.io import dump_json
from hazardsense.core.pipeline.base import StageContext
from hazardsense.core.schema import RunConfig


@dataclass
class FinalizeRun:
    """Stage that writes the run summary."""
    name: str = "finalize_run"

    def run(self, ctx: StageContext) -> None:
        cfg: RunConfig = ctx.cfg
        run_root: Path = ctx.state["run_root"]

        summary: Dict[str, Any] = {
            "run_id": ctx.state["run_id"],
            "status": "completed",
            "source": cfg.source.model_dump(),
            "pipeline": cfg.pipeline.model_dump(),
            "processed_frames": ctx.state.get("processed_frames", 0),
            "hazard_levels": ctx.state.get("hazard_levels", {}),
            "frame_stats": ctx.state.get("frame_stats", {}),
            "metrics": ctx.state.get("metrics", {}),
        }
        if cfg.export.save_results:
            dump_json(run_root / "run.json", summary)

        ctx.log("run_done", {"run_id": ctx.state["run_id"], "run_root": str(run_root), **summary["metrics"]})
