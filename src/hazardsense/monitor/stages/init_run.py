from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hazardsense.core.io import ensure_dir
from hazardsense.core.pipeline.base import StageContext
from hazardsense.core.pipeline.log import JsonlLogger
from hazardsense.core.schema import RunConfig


@dataclass
class InitRun:
    """Prepare the run dir and logger."""

    name: str = "init_run"
    echo: bool = True

    def run(self, ctx: StageContext) -> None:
        cfg: RunConfig = ctx.cfg
        run_root = ensure_dir(Path(cfg.export.out_dir) / f"{cfg.source.type}__{cfg.run_id}")

        log = JsonlLogger(run_root / "monitor.log.jsonl", echo=self.echo)
        ctx.assets["log"] = log

        ctx.state.update({"run_id": cfg.run_id, "run_root": run_root})
        log("run_start", {"run_id": cfg.run_id, "source": cfg.source.type, "path": cfg.source.path})
