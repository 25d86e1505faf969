"""
YOLACT Output Postprocessing Module

This module turns raw YOLACT network outputs into detections and overlays:
anchor generation, tensor feed assembly, box decoding, classwise NMS with a
global top-K re-rank, mask synthesis from the prototype basis, and rendering.
"""

from .base import (
    BasePostprocessor,
    PostprocessConfig,
    Detection,
    YolactResult,
    COCO_CLASSES,
    non_max_suppression,
    box_iou,
    center_to_corner,
    validate_score_threshold,
)
from .exceptions import (
    PostprocessError,
    InvalidConfigError,
    MalformedFeedError,
    CacheInvariantError,
    UnknownTensorEvent,
)
from .postprocessor import (
    AnchorLayout,
    AnchorTable,
    YOLACT_LAYOUT,
    YOLACT_LEVEL_OFFSETS,
    TensorRole,
    TensorBinding,
    FeedBuffers,
    TensorFeedAssembler,
    YOLACT_TENSOR_BINDINGS,
    generic_bindings,
    BoxDecoder,
    FrameCache,
    MaskSynthesizer,
    YolactPostprocessor,
)
from .visualization import (
    YolactVisualization,
    VisualizationConfig,
    YOLACT_COLORS,
    get_color,
    prototype_images,
)


def create_postprocessor(config: PostprocessConfig = None, **kwargs) -> BasePostprocessor:
    """
    Create a YOLACT postprocessor.

    Args:
        config: Postprocessing configuration
        **kwargs: Forwarded to YolactPostprocessor (e.g. bindings)

    Returns:
        Postprocessor instance
    """
    return YolactPostprocessor(config or PostprocessConfig(), **kwargs)


__all__ = [
    # Postprocessing
    "BasePostprocessor",
    "PostprocessConfig",
    "Detection",
    "YolactResult",
    "COCO_CLASSES",
    "YolactPostprocessor",
    "create_postprocessor",
    # Pipeline stages
    "AnchorLayout",
    "AnchorTable",
    "YOLACT_LAYOUT",
    "YOLACT_LEVEL_OFFSETS",
    "TensorRole",
    "TensorBinding",
    "FeedBuffers",
    "TensorFeedAssembler",
    "YOLACT_TENSOR_BINDINGS",
    "generic_bindings",
    "BoxDecoder",
    "FrameCache",
    "MaskSynthesizer",
    # Visualization
    "YolactVisualization",
    "VisualizationConfig",
    "YOLACT_COLORS",
    "get_color",
    "prototype_images",
    # Utility functions
    "non_max_suppression",
    "box_iou",
    "center_to_corner",
    "validate_score_threshold",
    # Exceptions
    "PostprocessError",
    "InvalidConfigError",
    "MalformedFeedError",
    "CacheInvariantError",
    "UnknownTensorEvent",
]
