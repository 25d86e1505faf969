"""
Shared fixtures for the YOLACT postprocessing tests.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add the parent directory to the path to import yolact_toolbox
sys.path.append(str(Path(__file__).parent.parent))

from yolact_toolbox.process import (
    PostprocessConfig,
    YOLACT_LAYOUT,
    FeedBuffers,
    TensorRole,
    YolactPostprocessor,
    generic_bindings,
)


@pytest.fixture
def layout():
    return YOLACT_LAYOUT


@pytest.fixture
def config():
    return PostprocessConfig()


@pytest.fixture
def feed(config, layout):
    """Zero-filled flat buffers sized for the reference model."""
    return FeedBuffers.allocate(
        layout.num_anchors,
        config.num_classes,
        config.mask_channels,
        config.prototype_size,
    )


@pytest.fixture
def bindings(layout):
    return generic_bindings(layout.num_levels)


@pytest.fixture
def postprocessor(config, bindings):
    return YolactPostprocessor(config, bindings=bindings)


@pytest.fixture
def anchor_index(layout):
    """Flat anchor index of (level, row, column, aspect ratio slot)."""

    def _index(level, row, col, ratio=0):
        size = layout.feature_map_sizes[level]
        cell = row * size + col
        return layout.level_offsets[level] + cell * layout.anchors_per_cell + ratio

    return _index


@pytest.fixture
def make_raw_outputs(layout):
    """Split flat buffers into per-level raw outputs shaped [1, f, f, A * C]."""

    def _make(feed, bindings, batch=1):
        outputs = {}
        for name, binding in bindings.items():
            if binding.role is TensorRole.PROTOTYPES:
                data = feed.prototypes[None]
            else:
                source = {
                    TensorRole.LOCATION: feed.location,
                    TensorRole.CONFIDENCE: feed.confidence,
                    TensorRole.MASK_COEFFICIENTS: feed.mask_coefficients,
                }[binding.role]
                size = layout.feature_map_sizes[binding.level]
                band = source[layout.level_slice(binding.level)]
                data = band.reshape(1, size, size, -1)
            outputs[name] = np.repeat(data, batch, axis=0).copy()
        return outputs

    return _make
