from dataclasses import dataclass

from hazardsense.core.pipeline.base import PipelineRunner, StageContext
from hazardsense.core.schema import PipelineConfig
from hazardsense.core.types import DepthZone, DepthZones, Frame, HazardLevel, RelativePosition
from hazardsense.runtime.alerts import RecordingDispatcher
from hazardsense.runtime.pipeline import HazardPipeline, run_stream


class ScriptedDetector:
    def __init__(self, script=None, error=None):
        self.script = script or {}
        self.error = error
        self.calls = 0

    def detect(self, frame, width, height):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.script.get(frame.index, [])


class BrokenDepth:
    def estimate(self, frame, detections):
        raise RuntimeError("depth model unavailable")


class ListSource:
    def __init__(self, frames):
        self.frames = list(frames)

    def next_frame(self):
        return self.frames.pop(0) if self.frames else None


CAR = {"class": "car", "score": 0.85, "bbox": [100, 150, 200, 300]}
# ~0.6 m away, centered, bottom of the frame.
CUP = {"class": "cup", "score": 0.9, "bbox": [205, 380, 70, 69]}


def _frame(i, t_ms):
    return Frame(index=i, width=480, height=480, timestamp_ms=t_ms)


def test_car_ahead_end_to_end():
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [CAR]}))
    res = pipe.submit(_frame(0, 0))
    assert res is not None and res.errors == []
    assert len(res.detections) == 1
    d = res.detections[0]
    assert 2.0 < d.distance < 6.0
    assert d.position.relative == RelativePosition.CENTER
    assert d.hazard.level == HazardLevel.CRITICAL
    assert d.track_id == 1


def test_track_id_survives_across_submits():
    moved = dict(CAR, bbox=[104, 150, 200, 300])
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [CAR], 1: [moved]}))
    a = pipe.submit(_frame(0, 0))
    b = pipe.submit(_frame(1, 100))
    assert a.detections[0].track_id == b.detections[0].track_id


def test_dropped_frame_leaves_state_alone():
    det = ScriptedDetector({0: [CAR], 1: [CAR]})
    pipe = HazardPipeline(PipelineConfig(), det)
    assert pipe.submit(_frame(0, 0)) is not None
    history = len(pipe.state.footpath.history)
    assert pipe.submit(_frame(1, 10)) is None
    assert det.calls == 1
    assert len(pipe.state.footpath.history) == history
    assert pipe.governor.dropped_frames == 1


def test_detector_failure_gives_empty_frame():
    events = []
    det = ScriptedDetector(error=RuntimeError("camera gone"))
    pipe = HazardPipeline(PipelineConfig(), det, log=lambda e, p: events.append(e))
    res = pipe.submit(_frame(0, 0))
    assert res is not None
    assert res.detections == [] and res.warnings == [] and res.errors == []
    assert "detector_error" in events


def test_malformed_detections_are_skipped():
    bad = {"class": "car", "score": "bad", "bbox": [0, 0, 1, 1]}
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [bad, CAR]}))
    res = pipe.submit(_frame(0, 0))
    assert [d.label for d in res.detections] == ["car"]


def test_failing_stage_yields_partial_result():
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [CUP]}), depth=BrokenDepth())
    res = pipe.submit(_frame(0, 0))
    assert res is not None
    assert [name for name, _ in res.errors] == ["depth"]
    assert len(res.obstacles) == 1
    assert res.obstacles[0].hazard_level == HazardLevel.CRITICAL
    assert res.warnings[0].priority == 1


def test_alerts_are_rate_limited_and_only_on_secondary_frames():
    script = {i: [CUP] for i in range(5)}
    rec = RecordingDispatcher()
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector(script), dispatcher=rec)
    for i, t in enumerate([0, 100, 200, 600, 700]):
        res = pipe.submit(_frame(i, t))
        assert res.warnings and res.warnings[0].hazard_level == HazardLevel.CRITICAL
    # Secondary frames are 0, 2 and 4; frame 2 is inside the 500 ms window.
    assert rec.count("warning") == 2
    assert rec.events[0]["level"] == "critical"


def test_depth_zones_escalate_obstacles():
    class CloseDepth:
        def estimate(self, frame, detections):
            return DepthZones(critical=DepthZone(has_objects=True, min_distance=1.8))

    person = {"class": "person", "score": 0.9, "bbox": [10, 100, 60, 350]}
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [person]}), depth=CloseDepth())
    res = pipe.submit(_frame(0, 0))
    assert res.obstacles[0].hazard_level == HazardLevel.CRITICAL


def test_stop_clears_state_and_rejects_frames():
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({0: [CAR], 5: [CAR]}))
    pipe.submit(_frame(0, 0))
    assert len(pipe.tracks) == 1
    pipe.stop()
    assert pipe.stopped
    assert len(pipe.tracks) == 0
    assert len(pipe.state.footpath.history) == 0
    assert pipe.submit(_frame(1, 1000)) is None

    pipe.start()
    res = pipe.submit(_frame(5, 2000))
    assert res.detections[0].track_id == 2


def test_run_stream_counts_processed_frames():
    frames = [_frame(i, i * 33) for i in range(7)]
    seen = []
    pipe = HazardPipeline(PipelineConfig(), ScriptedDetector({i: [CAR] for i in range(7)}))
    n = run_stream(ListSource(frames), pipe, on_result=seen.append)
    # 15 fps needs 66.7 ms between frames: 0, 99 and 198 ms pass.
    assert n == len(seen) == 3
    assert [r.frame_index for r in seen] == [0, 3, 6]
    assert pipe.governor.dropped_frames == 4


class StoppingDetector:
    """Stops the pipeline while the detector call is in progress."""

    def __init__(self):
        self.pipeline = None

    def detect(self, frame, width, height):
        self.pipeline.stop()
        return [CUP]


def test_stop_during_detection_ends_the_frame():
    det = StoppingDetector()
    rec = RecordingDispatcher()
    events = []
    pipe = HazardPipeline(PipelineConfig(), det, dispatcher=rec, log=lambda e, p: events.append(e))
    det.pipeline = pipe
    assert pipe.submit(_frame(0, 0)) is None
    assert len(pipe.tracks) == 0
    assert len(pipe.state.footpath.history) == 0
    assert rec.events == []
    assert "stages_skipped" in events
    assert not pipe.governor.in_flight


def test_runner_skips_remaining_stages_when_told_to():
    @dataclass
    class Mark:
        name: str

        def run(self, ctx):
            ctx.state.setdefault("ran", []).append(self.name)

    gate = {"open": True}

    @dataclass
    class Close:
        name: str = "close"

        def run(self, ctx):
            gate["open"] = False

    runner = PipelineRunner(
        stages=[Mark("a"), Close(), Mark("b")],
        trace=False,
        should_continue=lambda: gate["open"],
    )
    ctx = runner.run(StageContext(cfg=None))
    assert ctx.state["ran"] == ["a"]
