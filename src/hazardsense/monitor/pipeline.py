from __future__ import annotations

from pathlib import Path

from hazardsense.core.pipeline.base import PipelineRunner, StageContext
from hazardsense.core.schema import RunConfig
from hazardsense.monitor.stages.build_components import BuildComponents
from hazardsense.monitor.stages.finalize_run import FinalizeRun
from hazardsense.monitor.stages.init_run import InitRun
from hazardsense.monitor.stages.stream_frames import StreamFrames


class MonitorPipeline:

    def __init__(self, *, echo: bool = True):
        self.echo = bool(echo)

    def run(self, cfg: RunConfig) -> Path:
        ctx = StageContext(cfg=cfg)

        stages = [
            InitRun(echo=self.echo),
            BuildComponents(),
            StreamFrames(),
            FinalizeRun(),
        ]
        PipelineRunner(stages=stages).run(ctx)
        return Path(ctx.state["run_root"])
