import math

from hazardsense.core.types import BBox, RawDetection
from hazardsense.perception.suppression import iou, sanitize, suppress


def _raw(label, score, x, y, w, h):
    return RawDetection(label=label, score=score, bbox=BBox(x, y, w, h))


def test_iou_overlap_and_disjoint():
    a = BBox(0, 0, 10, 10)
    assert iou(a, a) == 1.0
    assert math.isclose(iou(a, BBox(1, 1, 10, 10)), 81 / 119)
    assert iou(a, BBox(20, 20, 5, 5)) == 0.0
    assert iou(a, BBox(0, 0, 0, 10)) == 0.0


def test_higher_score_survives_overlap():
    kept = suppress(
        [_raw("car", 0.5, 1, 1, 10, 10), _raw("car", 0.9, 0, 0, 10, 10)],
        score_threshold=0.0,
        iou_threshold=0.45,
        per_class=False,
    )
    assert len(kept) == 1
    assert kept[0].score == 0.9
    assert kept[0].bbox == BBox(0, 0, 10, 10)


def test_equal_scores_first_in_input_wins():
    first = _raw("car", 0.7, 0, 0, 10, 10)
    second = _raw("car", 0.7, 1, 0, 10, 10)
    kept = suppress([first, second], score_threshold=0.0, per_class=False)
    assert kept == [first]


def test_per_class_keeps_overlapping_boxes_of_other_classes():
    dets = [_raw("person", 0.9, 0, 0, 10, 10), _raw("bicycle", 0.8, 0, 0, 10, 10)]
    assert len(suppress(dets, score_threshold=0.0, per_class=True)) == 2
    assert len(suppress(dets, score_threshold=0.0, per_class=False)) == 1


def test_threshold_cap_and_order():
    dets = [_raw("cup", 0.1 * i, 20 * i, 0, 10, 10) for i in range(1, 10)]
    kept = suppress(dets, score_threshold=0.35, max_detections=3, per_class=False)
    assert [round(d.score, 2) for d in kept] == [0.9, 0.8, 0.7]


def test_malformed_detections_are_discarded():
    items = [
        {"class": "car", "score": 0.85, "bbox": [100, 150, 200, 300]},
        {"class": "car", "score": float("nan"), "bbox": [0, 0, 10, 10]},
        {"class": "car", "score": 0.9, "bbox": [0, 0, float("inf"), 10]},
        {"class": "car", "score": 0.9},
        {"score": 0.9, "bbox": [0, 0, 1, 1]},
        "garbage",
    ]
    clean = sanitize(items)
    assert len(clean) == 1
    assert clean[0].bbox == BBox(100, 150, 200, 300)
    assert suppress([], score_threshold=0.0) == []
