"""
Tests for the command-line interface.
"""

import json

import cv2
import numpy as np
import pytest

from yolact_toolbox.cli.config import parse_args
from yolact_toolbox.cli.infer import load_outputs, main
from yolact_toolbox.process import YOLACT_TENSOR_BINDINGS


@pytest.fixture
def saved_frame(tmp_path, feed, make_raw_outputs, anchor_index):
    """An input image and the raw outputs of a frame with one detection, on disk."""
    feed.confidence[anchor_index(4, 2, 2), 1] = 0.85
    feed.prototypes[...] = 0.1
    feed.mask_coefficients[...] = 1.0
    raw = make_raw_outputs(feed, YOLACT_TENSOR_BINDINGS)

    outputs_path = tmp_path / "outputs.npz"
    np.savez(outputs_path, **raw)
    image_path = tmp_path / "frame.png"
    cv2.imwrite(str(image_path), np.full((120, 160, 3), 30, dtype=np.uint8))
    return outputs_path, image_path


class TestParseArgs:
    """Test cases for argument parsing."""

    def test_render_defaults(self):
        args = parse_args(["render", "-o", "out.npz", "-i", "frame.jpg"])
        assert args.command == "render"
        assert args.outputs == "out.npz"
        assert args.image == "frame.jpg"
        assert args.output == "output.jpg"
        assert args.score_threshold == 0.5
        assert args.batch_index == 0

    def test_requires_outputs(self):
        with pytest.raises(SystemExit):
            parse_args(["render", "-i", "frame.jpg"])


class TestRender:
    """Test cases for the render command."""

    def test_load_outputs(self, saved_frame):
        outputs_path, _ = saved_frame
        raw = load_outputs(str(outputs_path))
        assert set(raw) == set(YOLACT_TENSOR_BINDINGS)

    def test_render(self, tmp_path, saved_frame):
        outputs_path, image_path = saved_frame
        output_path = tmp_path / "rendered" / "frame.png"
        json_path = tmp_path / "detections.json"
        prototypes_dir = tmp_path / "prototypes"

        code = main(
            [
                "render",
                "-o", str(outputs_path),
                "-i", str(image_path),
                "--output", str(output_path),
                "--json", str(json_path),
                "--dump-prototypes", str(prototypes_dir),
            ]
        )

        assert code == 0
        rendered = cv2.imread(str(output_path))
        assert rendered.shape == (120, 160, 3)
        assert np.any(rendered != 30)

        detections = json.loads(json_path.read_text())
        assert len(detections) == 1
        assert detections[0]["class_name"] == "person"
        assert detections[0]["score"] == pytest.approx(0.85)
        assert len(list(prototypes_dir.iterdir())) == 32

    def test_dump_prototype_tables(self, tmp_path, saved_frame):
        outputs_path, image_path = saved_frame
        tables_dir = tmp_path / "tables"

        code = main(
            [
                "render",
                "-o", str(outputs_path),
                "-i", str(image_path),
                "--output", str(tmp_path / "out.png"),
                "--dump-prototypes-csv", str(tables_dir),
            ]
        )

        assert code == 0
        assert len(list(tables_dir.glob("proto_data_*.csv"))) == 32
        table = np.loadtxt(tables_dir / "proto_data_0.csv", delimiter=",")
        assert table.shape == (138, 138)
        np.testing.assert_allclose(table, 0.1, atol=1e-6)

    def test_missing_image(self, tmp_path, saved_frame):
        outputs_path, _ = saved_frame
        code = main(
            ["render", "-o", str(outputs_path), "-i", str(tmp_path / "missing.png"),
             "--output", str(tmp_path / "out.png")]
        )
        assert code == 1

    def test_malformed_outputs(self, tmp_path, saved_frame):
        _, image_path = saved_frame
        bad_path = tmp_path / "bad.npz"
        np.savez(bad_path, proto=np.zeros((1, 138, 138, 32), dtype=np.float32))
        code = main(
            ["render", "-o", str(bad_path), "-i", str(image_path),
             "--output", str(tmp_path / "out.png")]
        )
        assert code == 1

    def test_no_command(self):
        assert main([]) == 2
