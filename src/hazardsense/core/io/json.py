from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


def read_json(path: str | Path) -> Optional[Dict[str, Any]]:
    """Best-effort JSON read. Returns None on any error."""
    p = Path(path)
    try:
        return json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def dump_json(path: str | Path, obj: Dict[str, Any], *, indent: int = 2) -> Path:
    """Write JSON atomically (tmp file + replace)."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(f".{p.name}.{os.getpid()}.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=indent, default=str)
    os.replace(tmp, p)
    return p


def iter_jsonl(path: str | Path) -> Iterator[Dict[str, Any]]:
    """Yield one dict per non-empty line; lines that do not parse are skipped."""
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except ValueError:
                continue
            if isinstance(rec, dict):
                yield rec
