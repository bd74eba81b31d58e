from __future__ import annotations

from typing import Any, Dict, List, Protocol

from hazardsense.core.types import BBox, Frame, RawDetection

try:
    from ultralytics import YOLO
except Exception:  # pragma: no cover
    YOLO = None


class Detector(Protocol):
    """External object detector.

    detect(frame, width, height) returns raw items, either RawDetection or
    dicts shaped {class, score, bbox: [x, y, w, h]} in pixels. Empty means
    "nothing this frame".
    """
    def detect(self, frame: Frame, width: int, height: int) -> List[Any]: ...


class ReplayDetector:
    """Returns the detections recorded on a replay frame."""

    def detect(self, frame: Frame, width: int, height: int) -> List[Any]:
        payload = frame.image
        if not isinstance(payload, list):
            return []
        return list(payload)


class YoloDetector:
    """Ultralytics YOLO adapter; boxes come back as xyxy and leave as xywh."""

    def __init__(self, weights: str, device: str = "cpu", conf: float = 0.1, iou: float = 0.7):
        if YOLO is None:
            raise ImportError("ultralytics is not installed. Install extras: pip install -e '.[video]'")
        self.model = YOLO(weights)
        self.device = device
        self.conf = conf
        self.iou = iou

    def labels(self) -> Dict[int, str]:
        names = getattr(self.model, "names", None)
        return dict(names) if names else {}

    def detect(self, frame: Frame, width: int, height: int) -> List[RawDetection]:
        res = self.model.predict(frame.image, verbose=False, device=self.device, conf=self.conf, iou=self.iou)
        out: List[RawDetection] = []
        if not res or res[0].boxes is None:
            return out
        names = self.labels()
        boxes = res[0].boxes.xyxy.cpu().numpy()
        cls = res[0].boxes.cls.cpu().numpy().astype(int)
        confs = res[0].boxes.conf.cpu().numpy()
        for (x1, y1, x2, y2), cid, score in zip(boxes, cls, confs):
            out.append(
                RawDetection(
                    label=names.get(int(cid), str(cid)),
                    score=float(score),
                    bbox=BBox.from_xyxy(x1, y1, x2, y2),
                )
            )
        return out
