from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

LogFn = Callable[[str, Dict[str, Any]], None]


def noop_log(event: str, payload: Dict[str, Any]) -> None:  # pragma: no cover
    return None


class Stage(Protocol):
    """Protocol for pipeline stages."""
    name: str
    def run(self, ctx: "StageContext") -> None: ...


@dataclass
class StageContext:
    """Data handed from stage to stage.

    `state` holds what the stages derive (per frame or per run), `assets`
    holds long-lived collaborators (logger, track store, detector, ...).
    """
    cfg: Any
    state: Dict[str, Any] = field(default_factory=dict)
    assets: Dict[str, Any] = field(default_factory=dict)
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def log(self) -> LogFn:
        return self.assets.get("log") or noop_log


@dataclass
class PipelineRunner:
    """Sequential runner for pipeline stages.

    With fail_fast=False a failing stage is logged and recorded in
    ctx.errors, and the remaining stages still run. When `should_continue`
    returns False the remaining stages are skipped.
    """
    stages: List[Stage]
    fail_fast: bool = True
    trace: bool = True
    should_continue: Optional[Callable[[], bool]] = None

    def run(self, ctx: StageContext) -> StageContext:
        log = ctx.log
        for st in self.stages:
            if self.should_continue is not None and not self.should_continue():
                log("stages_skipped", {"from": st.name})
                break
            if self.trace:
                log("stage_start", {"stage": st.name})
            try:
                st.run(ctx)
            except Exception as e:
                log("stage_error", {"stage": st.name, "error": repr(e)})
                if self.fail_fast:
                    raise
                ctx.errors.append((st.name, repr(e)))
                continue
            if self.trace:
                log("stage_done", {"stage": st.name})
        return ctx
