from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from hazardsense.core.schema import TrackingCfg
from hazardsense.core.types import BBox, NormalizedDetection, Position, Track, TrackedDetection
from hazardsense.perception.geometry import relative_position
from hazardsense.perception.suppression import iou


def _ema(alpha: float, new: float, old: float) -> float:
    return alpha * new + (1.0 - alpha) * old


def _ema_bbox(alpha: float, new: BBox, old: BBox) -> BBox:
    return BBox(
        _ema(alpha, new.x, old.x),
        _ema(alpha, new.y, old.y),
        _ema(alpha, new.w, old.w),
        _ema(alpha, new.h, old.h),
    )


@dataclass
class TrackStore:
    """Arena of live tracks keyed by a monotonically increasing id."""
    tracks: Dict[int, Track] = field(default_factory=dict)
    next_id: int = 1

    def allocate(self, det: NormalizedDetection, now_ms: float) -> Track:
        tr = Track(
            track_id=self.next_id,
            label=det.label,
            bbox=det.bbox,
            score=det.confidence,
            distance=det.distance,
            last_seen_ms=now_ms,
        )
        self.tracks[tr.track_id] = tr
        self.next_id += 1
        return tr

    def expire(self, now_ms: float, max_age_ms: float) -> List[int]:
        stale = [tid for tid, tr in self.tracks.items() if now_ms - tr.last_seen_ms > max_age_ms]
        for tid in stale:
            del self.tracks[tid]
        return stale

    def get(self, track_id: int) -> Optional[Track]:
        return self.tracks.get(track_id)

    def clear(self) -> None:
        self.tracks.clear()

    def __len__(self) -> int:
        return len(self.tracks)

    def __contains__(self, track_id: int) -> bool:
        return track_id in self.tracks


class TrackAssociator:
    """Greedy IoU association of detections to tracks with EMA smoothing.

    Detections are handled in input order; each one claims the unclaimed
    same-class track with the highest IoU (ties go to the lower id). A track
    is claimed by at most one detection per frame. The emitted position is
    derived from the smoothed box so it agrees with the footpath band.
    """

    def __init__(self, cfg: TrackingCfg, horizontal_fov: float = 70.0):
        self.horizontal_fov = float(horizontal_fov)
        self.alpha = float(cfg.smoothing_factor)
        self.iou_threshold = float(cfg.association_iou_threshold)
        self.max_age_ms = float(cfg.track_max_age_ms)

    def _best_match(self, det: NormalizedDetection, store: TrackStore, claimed: Set[int]) -> Optional[Track]:
        best: Optional[Track] = None
        best_iou = 0.0
        for tid in sorted(store.tracks):
            if tid in claimed:
                continue
            tr = store.tracks[tid]
            if tr.label != det.label:
                continue
            v = iou(tr.bbox, det.bbox)
            if v > best_iou:
                best_iou = v
                best = tr
        if best is None or best_iou < self.iou_threshold:
            return None
        return best

    def associate(
        self,
        detections: List[NormalizedDetection],
        store: TrackStore,
        now_ms: float,
    ) -> List[TrackedDetection]:
        claimed: Set[int] = set()
        out: List[TrackedDetection] = []

        for det in detections:
            tr = self._best_match(det, store, claimed)
            if tr is None:
                tr = store.allocate(det, now_ms)
                claimed.add(tr.track_id)
                out.append(self._emit(det, tr, self.horizontal_fov))
                continue

            a = self.alpha
            velocity = (det.bbox.x - tr.bbox.x, det.bbox.y - tr.bbox.y)
            tr.bbox = _ema_bbox(a, det.bbox, tr.bbox)
            tr.score = _ema(a, det.confidence, tr.score)
            tr.distance = _ema(a, det.distance, tr.distance)
            tr.velocity = velocity
            tr.last_seen_ms = now_ms
            claimed.add(tr.track_id)
            out.append(self._emit(det, tr, self.horizontal_fov))

        store.expire(now_ms, self.max_age_ms)
        return out

    @staticmethod
    def _emit(det: NormalizedDetection, tr: Track, horizontal_fov: float) -> TrackedDetection:
        cx, cy = tr.bbox.center
        return TrackedDetection(
            label=det.label,
            kind=det.kind,
            confidence=tr.score,
            bbox=tr.bbox,
            distance=tr.distance,
            position=Position(relative_position(cx), (cx - 0.5) * horizontal_fov, (cx, cy)),
            track_id=tr.track_id,
            velocity=tr.velocity,
        )
