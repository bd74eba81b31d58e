from __future__ import annotations

"""Greedy non-max suppression over raw detector output."""

from typing import Dict, Iterable, List, Mapping, Union

from hazardsense.core.types import BBox, RawDetection

RawLike = Union[RawDetection, Mapping]


def iou(a: BBox, b: BBox) -> float:
    """Intersection over union of two (x, y, w, h) boxes.

    Zero when the boxes do not overlap or either area is zero.
    """
    if a.area <= 0.0 or b.area <= 0.0:
        return 0.0
    ix = max(0.0, min(a.right, b.right) - max(a.x, b.x))
    iy = max(0.0, min(a.bottom, b.bottom) - max(a.y, b.y))
    inter = ix * iy
    if inter <= 0.0:
        return 0.0
    union = a.area + b.area - inter
    return 0.0 if union <= 0.0 else inter / union


def sanitize(items: Iterable[RawLike]) -> List[RawDetection]:
    """Coerce detector output to RawDetection, dropping malformed items."""
    out: List[RawDetection] = []
    for it in items or []:
        det = it if isinstance(it, RawDetection) else (RawDetection.from_dict(it) if isinstance(it, Mapping) else None)
        if det is None or not det.is_valid():
            continue
        out.append(det)
    return out


def _greedy(dets: List[RawDetection], iou_threshold: float, max_detections: int) -> List[RawDetection]:
    # sorted() is stable: equal scores keep input order, so the first one wins.
    ranked = sorted(dets, key=lambda d: -d.score)
    kept: List[RawDetection] = []
    for d in ranked:
        if len(kept) >= max_detections:
            break
        if all(iou(d.bbox, k.bbox) < iou_threshold for k in kept):
            kept.append(d)
    return kept


def nms_global(
    dets: List[RawDetection],
    *,
    score_threshold: float,
    iou_threshold: float,
    max_detections: int,
) -> List[RawDetection]:
    candidates = [d for d in dets if d.score >= score_threshold]
    return _greedy(candidates, iou_threshold, max_detections)


def nms_per_class(
    dets: List[RawDetection],
    *,
    score_threshold: float,
    iou_threshold: float,
    max_detections: int,
) -> List[RawDetection]:
    by_class: Dict[str, List[RawDetection]] = {}
    for d in dets:
        if d.score < score_threshold:
            continue
        by_class.setdefault(d.label or "unknown", []).append(d)

    merged: List[RawDetection] = []
    for group in by_class.values():
        merged.extend(_greedy(group, iou_threshold, max_detections))
    merged.sort(key=lambda d: -d.score)
    return merged[:max_detections]


def suppress(
    items: Iterable[RawLike],
    *,
    score_threshold: float = 0.25,
    iou_threshold: float = 0.45,
    max_detections: int = 20,
    per_class: bool = True,
) -> List[RawDetection]:
    """Drop malformed and low-score detections, then run NMS.

    Output is ordered by descending score.
    """
    dets = sanitize(items)
    if not dets:
        return []
    fn = nms_per_class if per_class else nms_global
    return fn(
        dets,
        score_threshold=float(score_threshold),
        iou_threshold=float(iou_threshold),
        max_detections=int(max_detections),
    )
