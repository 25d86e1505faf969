"""
End-to-end tests for the frame engine.
"""

import numpy as np
import pytest

from yolact_toolbox import FrameResult, YolactEngine
from yolact_toolbox.process import (
    InvalidConfigError,
    MalformedFeedError,
    PostprocessConfig,
    YolactResult,
    get_color,
)


@pytest.fixture
def engine(bindings):
    return YolactEngine(bindings=bindings)


@pytest.fixture
def frame_outputs(feed, bindings, make_raw_outputs, anchor_index):
    """Raw outputs with one class-5 detection at 0.9 over the central cell."""
    feed.confidence[anchor_index(4, 2, 2), 5] = 0.9
    return make_raw_outputs(feed, bindings)


@pytest.fixture
def image():
    return np.full((138, 138, 3), 50, dtype=np.uint8)


class TestYolactEngine:
    """Test cases for YolactEngine."""

    def test_run(self, engine, image, frame_outputs):
        frame = engine.run(image, frame_outputs)

        assert isinstance(frame, FrameResult)
        assert isinstance(frame.results, YolactResult)
        assert [d.label for d in frame.results.detections] == [5]
        assert frame.results.detections[0].score == pytest.approx(0.9)
        # Zero prototypes give sigmoid(0) = 0.5, which is not composited
        np.testing.assert_array_equal(frame.image[69, 69], [50, 50, 50])
        assert np.any(np.all(frame.image == get_color(5), axis=-1))

    def test_run_with_infer(self, bindings, image, frame_outputs):
        calls = []

        def infer(frame):
            calls.append(frame.shape)
            return frame_outputs

        engine = YolactEngine(bindings=bindings, infer=infer)
        frame = engine.run(image)

        assert calls == [(138, 138, 3)]
        assert len(frame.results) == 1
        assert engine.exec_timer.count == 1

    def test_requires_outputs(self, engine, image):
        with pytest.raises(ValueError):
            engine.run(image)

    def test_timers(self, engine, image, frame_outputs):
        engine.run(image, frame_outputs)
        engine.run(image, frame_outputs)

        assert engine.post_timer.count == 2
        assert engine.overlay_timer.count == 2
        assert engine.exec_timer.count == 0
        engine.log_stats()

    def test_masks(self, engine, image, frame_outputs):
        frame = engine.run(image, frame_outputs)
        masks = engine.masks(frame.results, image.shape[:2])
        assert masks.shape == (1, 138, 138)

    def test_invalid_score_threshold(self, engine, image, frame_outputs):
        with pytest.raises(InvalidConfigError):
            engine.run(image, frame_outputs, score_threshold=-0.5)

    def test_malformed_outputs(self, engine, image, frame_outputs):
        frame_outputs["loc_3"] = frame_outputs["loc_3"][:, :4]
        with pytest.raises(MalformedFeedError):
            engine.run(image, frame_outputs)

    def test_unknown_tensor_reported(self, engine, image, frame_outputs):
        frame_outputs["extra"] = np.zeros((1, 3), dtype=np.float32)
        frame = engine.run(image, frame_outputs)
        assert [e.tensor_name for e in frame.results.unknown_tensors] == ["extra"]

    def test_frames_are_independent(self, engine, image, frame_outputs, feed, bindings, make_raw_outputs):
        engine.run(image, frame_outputs)
        feed.confidence[...] = 0.0
        frame = engine.run(image, make_raw_outputs(feed, bindings))
        assert len(frame.results) == 0
        np.testing.assert_array_equal(frame.image, image)

    def test_custom_config(self, bindings, image, frame_outputs):
        engine = YolactEngine(
            postprocess_config=PostprocessConfig(conf_threshold=0.95), bindings=bindings
        )
        frame = engine.run(image, frame_outputs)
        assert len(frame.results) == 0

    def test_unknown_callback(self):
        with pytest.raises(ValueError):
            YolactEngine(callback_name="retinanet")
