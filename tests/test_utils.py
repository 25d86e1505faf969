"""
Unit tests for configuration, logging, timing and the callback registry.
"""

import json
import logging

import pytest
import yaml

from yolact_toolbox.inference import CALLBACK_REGISTRY, CallbackRegistry, CallbackType
from yolact_toolbox.inference.core import empty_callback
from yolact_toolbox.process import InvalidConfigError, PostprocessConfig, COCO_CLASSES
from yolact_toolbox.utils import Config, Timer, get_logger, load_config, setup_logger


class TestPostprocessConfig:
    """Test cases for PostprocessConfig."""

    def test_defaults(self):
        config = PostprocessConfig()
        assert config.num_classes == 81
        assert config.conf_threshold == 0.6
        assert config.nms_iou_threshold == 0.2
        assert config.nms_top_k == 200
        assert config.keep_top_k == 15
        assert config.class_names == list(COCO_CLASSES)
        assert config.class_names[0] == "background"

    def test_generated_class_names(self):
        config = PostprocessConfig(num_classes=3)
        assert config.class_names == ["class_0", "class_1", "class_2"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"conf_threshold": 1.5},
            {"nms_iou_threshold": -0.1},
            {"keep_top_k": 0},
            {"num_classes": 1},
            {"anchor_scales": (24, 48)},
            {"class_names": ["a", "b"]},
            {"variance_size": 0.0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidConfigError):
            PostprocessConfig(**kwargs)

    def test_from_dict_ignores_unknown(self):
        config = PostprocessConfig.from_dict({"keep_top_k": 5, "model": "yolact.xmodel"})
        assert config.keep_top_k == 5

    def test_from_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump({"postprocess": {"conf_threshold": 0.3, "feature_map_sizes": [69, 35, 18, 9, 5]}})
        )
        config = PostprocessConfig.from_file(str(path))
        assert config.conf_threshold == 0.3
        assert config.feature_map_sizes == (69, 35, 18, 9, 5)

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"nms_top_k": 50}))
        assert PostprocessConfig.from_file(str(path)).nms_top_k == 50


class TestLoadConfig:
    """Test cases for load_config and Config."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("a = 1")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_config_object(self):
        config = Config({"image": "frame.jpg", "batch_index": 1})
        assert config.image == "frame.jpg"
        assert config["batch_index"] == 1
        assert config.score_threshold == 0.5
        assert config.get("missing", 3) == 3
        config["output"] = "out.jpg"
        assert config.output == "out.jpg"


class TestLogging:
    """Test cases for the logging helpers."""

    def test_setup_logger_reused(self):
        logger = setup_logger("yolact_toolbox.tests.reuse", level="WARNING")
        again = setup_logger("yolact_toolbox.tests.reuse", level="DEBUG")
        assert logger is again
        assert again.level == logging.DEBUG
        assert get_logger("yolact_toolbox.tests.reuse") is logger

    def test_log_file(self, tmp_path):
        logger = setup_logger(
            "yolact_toolbox.tests.file", log_file="test.log", log_dir=str(tmp_path), console=False
        )
        logger.info("written")
        for handler in logger.handlers:
            handler.flush()
        assert "written" in (tmp_path / "test.log").read_text()


class TestTimer:
    """Test cases for Timer."""

    def test_context_manager(self):
        timer = Timer("block")
        with timer:
            pass
        with timer:
            pass
        assert timer.count == 2
        assert timer.avg_secs() >= 0.0
        assert "block" in timer.report()

    def test_decorator(self):
        timer = Timer("func")

        @timer
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert timer.count == 1
        timer.reset()
        assert timer.count == 0
        assert timer.avg_secs() == 0.0


class TestCallbackRegistry:
    """Test cases for CallbackRegistry."""

    def test_builtin_registrations(self):
        assert CALLBACK_REGISTRY.has_callback("yolact", CallbackType.POST_PROCESSOR)
        assert CALLBACK_REGISTRY.has_callback("yolact", CallbackType.VISUALIZER)

    def test_register_decorator(self):
        registry = CallbackRegistry()

        @registry.registryPostProcessor("a", "b")
        def postprocess(outputs):
            return outputs

        assert registry.getPostProcessor("a") is postprocess
        assert registry.getPostProcessor("b") is postprocess
        assert registry.has_callback("a", CallbackType.POST_PROCESSOR)
        assert not registry.has_callback("a", CallbackType.VISUALIZER)

    def test_default_callback(self):
        registry = CallbackRegistry()
        assert registry.getVisualizer("missing") is empty_callback

    def test_invalid_registration(self):
        registry = CallbackRegistry()
        with pytest.raises(ValueError):
            registry.register("post_processor", "a")
        with pytest.raises(TypeError):
            registry.register(CallbackType.VISUALIZER, "a")(42)
        with pytest.raises(TypeError):
            registry.registryPostProcessor(["a", "b"])
        with pytest.raises(ValueError):
            registry.registryVisualizer()
