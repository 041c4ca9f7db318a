"""Integration tests for trace replay, export and the CLI."""

import json
import os

import cv2
import numpy as np
import pytest


SQUARE_CLICKS = [[20, 20], [40, 20], [40, 40], [20, 40], [21, 21]]


def _write_script(temp_dir, data, name="script.json"):
    path = os.path.join(temp_dir, name)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    return path


class TestRunTrace:
    """Tests that replay whole scripts through run_trace."""

    def test_closed_trace_exports_selection(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})
        out_dir = os.path.join(temp_dir, "output")

        document = run_trace(synthetic_input_file, script, out_dir)

        assert document.boundary.closed
        assert len(document.boundary.segments) == 4
        assert document.events_processed == 5
        for name in ["trace.json", "overlay.png", "mask.png", "cutout.png"]:
            assert os.path.exists(os.path.join(out_dir, name)), f"Missing {name}"

        mask = cv2.imread(os.path.join(out_dir, "mask.png"), cv2.IMREAD_GRAYSCALE)
        assert mask.shape == (60, 60)
        assert mask[30, 30] == 255
        assert mask[5, 5] == 0

        min_x, min_y, max_x, max_y = document.selection_bbox
        assert abs(min_x - 15) <= 2 and abs(min_y - 15) <= 2
        assert abs(max_x - 45) <= 2 and abs(max_y - 45) <= 2

    def test_trace_json_round_trips(self, temp_dir, synthetic_input_file):
        from livewire.models import TraceDocument
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})
        out_dir = os.path.join(temp_dir, "output")
        document = run_trace(synthetic_input_file, script, out_dir)

        with open(os.path.join(out_dir, "trace.json"), "r", encoding="utf-8") as f:
            loaded = TraceDocument.model_validate(json.load(f))

        assert loaded.doc_id == document.doc_id
        assert loaded.boundary.polyline() == document.boundary.polyline()

    def test_open_trace_has_no_selection(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS[:3]})
        out_dir = os.path.join(temp_dir, "output")

        document = run_trace(synthetic_input_file, script, out_dir)

        assert not document.boundary.closed
        assert document.selection_bbox is None
        assert os.path.exists(os.path.join(out_dir, "overlay.png"))
        assert not os.path.exists(os.path.join(out_dir, "mask.png"))

    def test_auto_freeze_events(self, temp_dir, synthetic_input_file):
        from livewire.config import LiveWireConfig
        from livewire.pipeline import run_trace

        config = LiveWireConfig()
        config.session.auto_freeze = True
        events = [
            {"kind": "click", "x": 20, "y": 20},
            {"kind": "move", "x": 40, "y": 20},
            {"kind": "wait", "wait_ms": 1200},
            {"kind": "move", "x": 40, "y": 40},
            {"kind": "wait", "wait_ms": 1200},
        ]
        script = _write_script(temp_dir, {"events": events})

        document = run_trace(synthetic_input_file, script, os.path.join(temp_dir, "out"), config=config)

        reasons = [segment.reason.value for segment in document.boundary.segments]
        assert reasons == ["stability", "stability"]

    def test_reset_event_discards_boundary(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        events = [{"kind": "click", "x": x, "y": y} for x, y in SQUARE_CLICKS]
        events.append({"kind": "reset"})
        script = _write_script(temp_dir, {"events": events})

        document = run_trace(synthetic_input_file, script, os.path.join(temp_dir, "out"))

        assert document.boundary.segments == []
        assert document.events_processed == 6

    def test_debug_artifacts(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})
        out_dir = os.path.join(temp_dir, "output")

        run_trace(synthetic_input_file, script, out_dir, debug=True)

        features_dir = os.path.join(out_dir, "debug", "features")
        assert os.path.isdir(features_dir)
        assert os.path.exists(os.path.join(features_dir, "05_cost.png"))

    def test_deterministic(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})

        doc1 = run_trace(synthetic_input_file, script, os.path.join(temp_dir, "run1"))
        doc2 = run_trace(synthetic_input_file, script, os.path.join(temp_dir, "run2"))

        assert doc1.doc_id == doc2.doc_id
        assert [s.segment_id for s in doc1.boundary.segments] == [s.segment_id for s in doc2.boundary.segments]

    def test_missing_image_rejected(self, temp_dir):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})

        with pytest.raises(ValueError):
            run_trace(os.path.join(temp_dir, "nope.png"), script, temp_dir)

    def test_malformed_script_rejected(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import run_trace

        script = _write_script(temp_dir, {"events": [{"kind": "teleport"}]})

        with pytest.raises(ValueError):
            run_trace(synthetic_input_file, script, temp_dir)


class TestCostMap:
    def test_cost_map_written(self, temp_dir, synthetic_input_file):
        from livewire.pipeline import export_cost_map

        out_path = os.path.join(temp_dir, "cost.png")
        visual = export_cost_map(synthetic_input_file, out_path)

        saved = cv2.imread(out_path, cv2.IMREAD_GRAYSCALE)
        assert saved.shape == (60, 60)
        assert np.array_equal(saved, visual)
        assert saved[0, 0] == 255


class TestCli:
    def test_run_closed_exit_code(self, temp_dir, synthetic_input_file):
        from livewire.cli import main

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})
        out_dir = os.path.join(temp_dir, "cli_out")

        assert main(["run", "-i", synthetic_input_file, "-s", script, "-o", out_dir]) == 0
        assert os.path.exists(os.path.join(out_dir, "cutout.png"))

    def test_run_open_exit_code(self, temp_dir, synthetic_input_file):
        from livewire.cli import main

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS[:2]})

        assert main(["run", "-i", synthetic_input_file, "-s", script, "-o", temp_dir]) == 2

    def test_degenerate_closure_lists_no_cutout(self, temp_dir, synthetic_input_file, capsys):
        from livewire.cli import main

        script = _write_script(temp_dir, {"clicks": [[20, 20], [21, 21]]})
        out_dir = os.path.join(temp_dir, "cli_out")

        assert main(["run", "-i", synthetic_input_file, "-s", script, "-o", out_dir]) == 0
        out = capsys.readouterr().out
        assert "mask.png" in out
        assert "cutout.png" not in out
        assert not os.path.exists(os.path.join(out_dir, "cutout.png"))

    def test_run_failure_exit_code(self, temp_dir, capsys):
        from livewire.cli import main

        script = _write_script(temp_dir, {"clicks": SQUARE_CLICKS})

        assert main(["run", "-i", os.path.join(temp_dir, "missing.png"), "-s", script, "-o", temp_dir]) == 1
        assert "Error" in capsys.readouterr().err

    def test_init_config_round_trip(self, temp_dir):
        from livewire.cli import main
        from livewire.config import load_config

        path = os.path.join(temp_dir, "config.yaml")

        assert main(["init-config", "-o", path]) == 0
        config = load_config(path)
        assert config.session.closure_threshold == 10.0
        assert config.cost.laplacian_weight == pytest.approx(0.43)

    def test_cost_map_command(self, temp_dir, synthetic_input_file):
        from livewire.cli import main

        out_path = os.path.join(temp_dir, "cost.png")

        assert main(["cost-map", "-i", synthetic_input_file, "-o", out_path]) == 0
        assert os.path.exists(out_path)
