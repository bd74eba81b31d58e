from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

try:
    import cv2
except Exception:  # pragma: no cover
    cv2 = None

from hazardsense.core.types import Frame


@dataclass(frozen=True)
class VideoInfo:
    path: str
    fps: float
    frame_count: int
    width: int
    height: int


def open_video(path: str):
    if cv2 is None:
        raise ImportError("opencv-python not installed. Install extras: pip install -e '.[video]'")
    cap = cv2.VideoCapture(path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {path}")
    return cap


def get_video_info(path: str) -> VideoInfo:
    cap = open_video(path)
    fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
    frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
    cap.release()
    return VideoInfo(path=path, fps=fps, frame_count=frame_count, width=width, height=height)


class VideoFrameSource:
    """Pull frames from a video file; timestamps follow the video clock."""

    def __init__(self, path: str, max_frames: int = 0):
        self.path = path
        self.max_frames = int(max_frames)
        self._cap = None
        self._idx = 0
        self._fps = 0.0

    def _ensure_open(self) -> None:
        if self._cap is None:
            self._cap = open_video(self.path)
            self._fps = float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0) or 30.0

    def next_frame(self) -> Optional[Frame]:
        if self.max_frames and self._idx >= self.max_frames:
            self.close()
            return None
        self._ensure_open()
        ok, image = self._cap.read()
        if not ok:
            self.close()
            return None
        h, w = image.shape[:2]
        frame = Frame(
            index=self._idx,
            width=int(w),
            height=int(h),
            timestamp_ms=self._idx * 1000.0 / self._fps,
            image=image,
        )
        self._idx += 1
        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
