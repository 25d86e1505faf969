from .anchors import AnchorLayout, AnchorTable, YOLACT_LAYOUT, YOLACT_LEVEL_OFFSETS
from .feed import (
    TensorRole,
    TensorBinding,
    FeedBuffers,
    TensorFeedAssembler,
    YOLACT_TENSOR_BINDINGS,
    generic_bindings,
)
from .decoder import BoxDecoder, FrameCache
from .masks import MaskSynthesizer
from .postprocessor_seg import YolactPostprocessor

__all__ = [
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
    "YolactPostprocessor",
]
