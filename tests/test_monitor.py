import json
import sys

from hazardsense.app import cli
from hazardsense.core.io import ReplayFrameSource
from hazardsense.core.schema import RunConfig
from hazardsense.monitor.pipeline import MonitorPipeline

FRAMES = [
    {"frame": 0, "t_ms": 0, "width": 480, "height": 480,
     "detections": [{"class": "car", "score": 0.85, "bbox": [100, 150, 200, 300]}]},
    {"frame": 1, "t_ms": 30, "width": 480, "height": 480,
     "detections": [{"class": "car", "score": 0.85, "bbox": [102, 150, 200, 300]}]},
    {"frame": 2, "t_ms": 100, "width": 480, "height": 480, "detections": []},
    {"frame": 3, "t_ms": 200, "width": 480, "height": 480,
     "detections": [{"class": "cup", "score": 0.9, "bbox": [205, 380, 70, 69]}]},
]


def _write_replay(path):
    lines = [json.dumps(f) for f in FRAMES]
    lines.insert(2, "not json")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_replay_source_skips_bad_lines(tmp_path):
    src = ReplayFrameSource(_write_replay(tmp_path / "replay.jsonl"))
    frames = []
    while True:
        f = src.next_frame()
        if f is None:
            break
        frames.append(f)
    assert [f.index for f in frames] == [0, 1, 2, 3]
    assert frames[2].timestamp_ms == 100.0
    assert frames[0].image[0]["class"] == "car"


def test_monitor_run_writes_summary(tmp_path):
    replay = _write_replay(tmp_path / "replay.jsonl")
    cfg = RunConfig.model_validate(
        {
            "run_id": "test",
            "source": {"type": "replay", "path": str(replay)},
            "export": {"out_dir": str(tmp_path / "runs")},
        }
    )
    root = MonitorPipeline(echo=False).run(cfg)
    assert root.name == "replay__test"
    summary = json.loads((root / "run.json").read_text(encoding="utf-8"))
    assert summary["status"] == "completed"
    assert summary["processed_frames"] == 3
    assert summary["metrics"]["dropped_frames"] == 1
    assert summary["hazard_levels"]["critical"] >= 1
    events = [json.loads(line)["event"] for line in (root / "monitor.log.jsonl").read_text().splitlines()]
    assert events[0] == "run_start"
    assert "alert_warning" in events
    assert events[-1] == "run_done"


def test_cli_run_and_bad_config(tmp_path, monkeypatch, capsys):
    replay = _write_replay(tmp_path / "replay.jsonl")
    out = tmp_path / "out"
    monkeypatch.setattr(
        sys, "argv", ["hazardsense", "run", "--replay", str(replay), "--out-dir", str(out), "--quiet"]
    )
    assert cli.main() == 0
    assert "OK:" in capsys.readouterr().out
    assert list(out.glob("replay__*/run.json"))

    monkeypatch.setattr(sys, "argv", ["hazardsense", "run", "--replay", str(replay), "--target-fps", "90"])
    assert cli.main() == 2

    monkeypatch.setattr(sys, "argv", ["hazardsense", "config", "--config", str(tmp_path / "nope.yaml")])
    assert cli.main() == 2
