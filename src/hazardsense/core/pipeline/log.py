from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict


def _now_iso() -> str:
    """Return current UTC time as an ISO string."""
    return datetime.now(timezone.utc).isoformat()


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    return repr(obj)


@dataclass
class JsonlLogger:
    """Append structured events to a JSONL file and (optionally) stdout."""
    path: Path
    echo: bool = True
    quiet_events: frozenset = field(default_factory=lambda: frozenset({"stage_start", "stage_done"}))

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        if event in self.quiet_events:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {"t": _now_iso(), "event": event, **payload}
        line = json.dumps(rec, ensure_ascii=False, default=_default)
        if self.echo:
            print(line, flush=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
