import threading

from hazardsense.core.schema import GovernorCfg
from hazardsense.runtime.governor import FrameRateGovernor


def test_frames_inside_interval_are_dropped():
    gov = FrameRateGovernor(GovernorCfg(target_fps=15), 0.25)
    assert gov.try_begin(0)
    gov.finish(10)
    assert not gov.try_begin(30)
    assert gov.dropped_frames == 1
    assert gov.try_begin(70)
    gov.finish(10)
    assert gov.frames_processed == 2


def test_frame_in_flight_blocks_the_next():
    gov = FrameRateGovernor(GovernorCfg(), 0.25)
    assert gov.try_begin(0)
    assert not gov.try_begin(500)
    assert gov.dropped_frames == 1
    gov.finish(20)
    assert gov.try_begin(500)


def test_slow_frames_raise_threshold_up_to_ceiling():
    gov = FrameRateGovernor(GovernorCfg(), 0.25)
    for i in range(40):
        assert gov.try_begin(i * 1000)
        gov.finish(200)
    assert abs(gov.score_threshold - 0.6) < 1e-9


def test_fast_frames_lower_threshold_to_floor_only():
    gov = FrameRateGovernor(GovernorCfg(), 0.5)
    for i in range(40):
        gov.try_begin(i * 1000)
        gov.finish(10)
    assert abs(gov.score_threshold - 0.3) < 1e-9

    low = FrameRateGovernor(GovernorCfg(), 0.25)
    low.try_begin(0)
    low.finish(10)
    assert low.score_threshold == 0.25


def test_fixed_threshold_when_not_adaptive():
    gov = FrameRateGovernor(GovernorCfg(adaptive_threshold=False), 0.4)
    gov.try_begin(0)
    gov.finish(500)
    assert gov.score_threshold == 0.4


def test_target_fps_is_clamped():
    gov = FrameRateGovernor(GovernorCfg(), 0.25)
    gov.set_target_fps(100)
    assert gov.target_fps == 30
    gov.set_target_fps(1)
    assert gov.target_fps == 5
    assert gov.min_interval_ms == 200


def test_secondary_frames_and_metrics():
    gov = FrameRateGovernor(GovernorCfg(secondary_every_n=2), 0.25)
    assert [gov.is_secondary_frame(i) for i in range(4)] == [True, False, True, False]
    gov.try_begin(0)
    gov.finish(40)
    m = gov.metrics()
    assert m["frames_processed"] == 1
    assert m["avg_latency_ms"] == 40.0
    assert m["last_fps"] == 25.0


def test_concurrent_begin_admits_one_frame():
    gov = FrameRateGovernor(GovernorCfg(), 0.25)
    barrier = threading.Barrier(8)
    results = []

    def _claim():
        barrier.wait()
        results.append(gov.try_begin(0))

    threads = [threading.Thread(target=_claim) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
    assert gov.dropped_frames == 7
