"""
Frame pipeline: raw network outputs -> detections -> rendered overlay.

Running the network is left to the caller, either by passing the raw outputs
of a frame directly or by supplying an ``infer`` callable.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .core import CALLBACK_REGISTRY, CallbackType
from ..process import (
    PostprocessConfig,
    VisualizationConfig,
    YolactResult,
    MaskSynthesizer,
    TensorBinding,
    validate_score_threshold,
)
from ..utils.timer import Timer

logger = logging.getLogger(__name__)


@dataclass
class FrameResult:
    """Output of one processed frame."""

    image: np.ndarray  # BGR image with overlays
    results: YolactResult


class YolactEngine:
    """
    Orchestrates postprocessing and rendering of single frames.

    Components are resolved by name from ``CALLBACK_REGISTRY``. The anchor
    table and feed buffers live as long as the engine; everything else is
    scoped to one call of :meth:`run`.
    """

    def __init__(
        self,
        callback_name: str = "yolact",
        postprocess_config: Optional[PostprocessConfig] = None,
        visualization_config: Optional[VisualizationConfig] = None,
        bindings: Optional[Dict[str, TensorBinding]] = None,
        infer: Optional[Callable[[np.ndarray], Dict[str, np.ndarray]]] = None,
    ):
        for callback_type in (CallbackType.POST_PROCESSOR, CallbackType.VISUALIZER):
            if not CALLBACK_REGISTRY.has_callback(callback_name, callback_type):
                raise ValueError(
                    f"No {callback_type.value} registered under '{callback_name}'"
                )

        self.postprocess_config = postprocess_config or PostprocessConfig()
        self.visualization_config = visualization_config or VisualizationConfig(
            mask_alpha=self.postprocess_config.mask_alpha,
            mask_threshold=self.postprocess_config.mask_threshold,
        )

        postprocessor_cls = CALLBACK_REGISTRY.getPostProcessor(callback_name)
        visualizer_cls = CALLBACK_REGISTRY.getVisualizer(callback_name)
        self.postprocessor = postprocessor_cls(self.postprocess_config, bindings=bindings)
        self.visualizer = visualizer_cls(
            self.visualization_config, class_names=self.postprocess_config.class_names
        )
        self.synthesizer = MaskSynthesizer(
            mask_threshold=self.postprocess_config.mask_threshold,
            mask_alpha=self.postprocess_config.mask_alpha,
        )
        self.infer = infer

        self.exec_timer = Timer("Graph execution")
        self.post_timer = Timer("Post-processing")
        self.overlay_timer = Timer("Graphic overlay")

    def run(
        self,
        image: np.ndarray,
        raw_outputs: Optional[Dict[str, np.ndarray]] = None,
        score_threshold: float = 0.5,
        batch_index: int = 0,
    ) -> FrameResult:
        """
        Process one frame.

        Args:
            image: BGR uint8 input image
            raw_outputs: Network outputs for this frame; if None, ``infer`` is
                called with ``image``
            score_threshold: Minimum score of rendered detections, in [0, 1]
            batch_index: Image of the output batch to process

        Returns:
            FrameResult with the rendered image and the structured results
        """
        score_threshold = validate_score_threshold(score_threshold)

        if raw_outputs is None:
            if self.infer is None:
                raise ValueError("raw_outputs is required when no infer callable is set")
            with self.exec_timer:
                raw_outputs = self.infer(image)

        with self.post_timer:
            results = self.postprocessor(raw_outputs, batch_index)

        with self.overlay_timer:
            output = self.visualizer(image, results, score_threshold)

        logger.debug(f"Frame produced {len(results)} detections")
        return FrameResult(image=output, results=results)

    def masks(
        self,
        results: YolactResult,
        image_shape: Tuple[int, int],
        score_threshold: float = 0.5,
    ) -> np.ndarray:
        """Full-resolution instance masks of the detections scoring at least ``score_threshold``."""
        masks, _ = self.synthesizer.synthesize_all(
            results.prototypes, results.detections, image_shape, score_threshold
        )
        return masks

    def log_stats(self) -> None:
        for timer in (self.exec_timer, self.post_timer, self.overlay_timer):
            if timer.count:
                logger.info(timer.report())
