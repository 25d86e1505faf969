"""
Postprocessing toolbox for YOLACT instance segmentation models.

This package provides tools for:
1. Turning raw per-level YOLACT outputs into detections
2. Synthesizing instance masks from the prototype basis
3. Rendering masks, boxes and labels onto images
"""

from .__version__ import version as __version__
from .process import *
from .inference import CALLBACK_REGISTRY, CallbackRegistry, CallbackType
from .inference.pipeline import YolactEngine, FrameResult

__all__ = [
    "process",
    "inference",
    "utils",
    "YolactEngine",
    "FrameResult",
    "CALLBACK_REGISTRY",
]
