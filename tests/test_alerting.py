from hazardsense.core.types import (
    BBox,
    FootObstacle,
    HazardLevel,
    NormalizedDetection,
    ObjectClass,
    Position,
    RelativePosition,
)
from hazardsense.footpath.alerting import AlertRateLimiter, build_warnings, select_for_dispatch


def _ob(label, distance, level, rel=RelativePosition.CENTER):
    det = NormalizedDetection(
        label=label,
        kind=ObjectClass.parse(label),
        confidence=0.8,
        bbox=BBox(0.45, 0.6, 0.1, 0.3),
        distance=distance,
        position=Position(rel, 0.0, (0.5, 0.75)),
    )
    return FootObstacle(detection=det, hazard_level=level, in_footpath=True, predicted_collision_time_s=distance)


def test_warnings_sorted_and_low_excluded():
    obs = [
        _ob("bench", 1.8, HazardLevel.MEDIUM),
        _ob("cup", 2.5, HazardLevel.LOW),
        _ob("person", 0.6, HazardLevel.CRITICAL),
        _ob("chair", 1.1, HazardLevel.HIGH),
    ]
    warnings = build_warnings(obs, RelativePosition.LEFT)
    assert [w.object for w in warnings] == ["person", "chair", "bench"]
    assert [w.priority for w in warnings] == [1, 2, 3]
    assert warnings[0].message == "person 0.6m center. Move left"
    assert warnings[2].message == "bench 1.8m center"
    assert len(build_warnings(obs, include_low=True)) == 4


def test_rate_limiter_windows():
    limiter = AlertRateLimiter({"critical": 500, "high": 1000})
    assert limiter.allow("critical", 0)
    assert not limiter.allow("critical", 400)
    assert limiter.allow("critical", 500)
    assert limiter.allow("high", 500)
    assert not limiter.allow("high", 1400)
    assert limiter.cooldown("stairs") == 2000.0
    limiter.reset()
    assert limiter.allow("high", 1400)


def test_one_warning_per_level_per_window():
    limiter = AlertRateLimiter({"critical": 500, "high": 1000})
    warnings = build_warnings(
        [
            _ob("person", 0.4, HazardLevel.CRITICAL),
            _ob("dog", 0.6, HazardLevel.CRITICAL),
            _ob("chair", 1.1, HazardLevel.HIGH),
        ]
    )
    sent = select_for_dispatch(warnings, limiter, 0)
    assert [w.object for w in sent] == ["person", "chair"]
    assert select_for_dispatch(warnings, limiter, 200) == []
    assert [w.object for w in select_for_dispatch(warnings, limiter, 600)] == ["person"]
