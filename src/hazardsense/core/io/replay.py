from __future__ import annotations

"""Replay of recorded detector output.

Each JSONL line is one frame:
    {"frame": 0, "t_ms": 0, "width": 640, "height": 480,
     "detections": [{"class": "car", "score": 0.85, "bbox": [100, 150, 200, 300]}]}
"""

from pathlib import Path
from typing import Iterator, Optional

from hazardsense.core.io.json import iter_jsonl
from hazardsense.core.types import Frame


class ReplayFrameSource:
    """Frames whose payload is the recorded raw detection list."""

    def __init__(self, path: str | Path, *, default_size: tuple = (640, 480), fps: float = 30.0):
        self.path = Path(path)
        self.default_size = default_size
        self.fps = float(fps)
        self._it: Optional[Iterator] = None

    def _records(self) -> Iterator[Frame]:
        for i, rec in enumerate(iter_jsonl(self.path)):
            idx = int(rec.get("frame", i))
            t_ms = rec.get("t_ms")
            yield Frame(
                index=idx,
                width=int(rec.get("width", self.default_size[0])),
                height=int(rec.get("height", self.default_size[1])),
                timestamp_ms=float(t_ms) if t_ms is not None else idx * 1000.0 / self.fps,
                image=list(rec.get("detections") or []),
            )

    def next_frame(self) -> Optional[Frame]:
        if self._it is None:
            if not self.path.exists():
                raise FileNotFoundError(f"Replay file not found: {self.path}")
            self._it = self._records()
        return next(self._it, None)

    def close(self) -> None:
        self._it = None
