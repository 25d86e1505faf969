"""
YOLACT Segmentation Postprocessor

This module implements postprocessing for YOLACT instance segmentation models.
It decodes anchor offsets, runs classwise non-maximum suppression followed by a
global top-K re-rank, and emits detections carrying the mask coefficients used
later to synthesize instance masks from the shared prototype basis.
"""

import numpy as np
from typing import Dict, List, Optional, Tuple
import logging

from ..base import (
    BasePostprocessor,
    PostprocessConfig,
    Detection,
    YolactResult,
    non_max_suppression,
)
from ..exceptions import MalformedFeedError
from .anchors import AnchorLayout, AnchorTable, YOLACT_LEVEL_OFFSETS
from .decoder import BoxDecoder, FrameCache
from .feed import FeedBuffers, TensorBinding, TensorFeedAssembler
from yolact_toolbox.inference.core import CALLBACK_REGISTRY

logger = logging.getLogger(__name__)


def select_class_candidates(
    class_scores: np.ndarray, conf_threshold: float, top_k: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pick the top-K anchors of one class above the confidence threshold.

    Args:
        class_scores: Scores of one class for every anchor, shape (num_anchors,)
        conf_threshold: Scores must be strictly greater than this value
        top_k: Maximum number of candidates kept

    Returns:
        Tuple of (scores, anchor indices), descending by score; equal scores
        keep ascending anchor order
    """
    indices = np.nonzero(class_scores > conf_threshold)[0]
    if indices.size == 0:
        return np.zeros(0, dtype=class_scores.dtype), indices

    scores = class_scores[indices]
    order = np.argsort(-scores, kind="stable")[:top_k]
    return scores[order], indices[order]


def keep_top_k(
    per_class: Dict[int, np.ndarray], confidence: np.ndarray, keep: int
) -> Dict[int, np.ndarray]:
    """
    Re-rank the survivors of all classes together and keep the best ``keep``.

    Args:
        per_class: Surviving anchor indices for each class label
        confidence: Flat confidences with shape (num_anchors, num_classes)
        keep: Maximum total number of detections

    Returns:
        Per-class anchor indices rebuilt from the truncated global ranking
    """
    total = sum(len(indices) for indices in per_class.values())
    if keep <= 0 or total <= keep:
        return per_class

    labels = []
    anchors = []
    for label in sorted(per_class):
        labels.extend([label] * len(per_class[label]))
        anchors.extend(per_class[label].tolist())
    labels = np.array(labels, dtype=np.int64)
    anchors = np.array(anchors, dtype=np.int64)
    scores = confidence[anchors, labels]

    order = np.argsort(-scores, kind="stable")[:keep]

    ranked: Dict[int, List[int]] = {}
    for position in order:
        ranked.setdefault(int(labels[position]), []).append(int(anchors[position]))

    logger.debug(f"Global re-rank kept {keep} of {total} detections")
    return {label: np.array(ranked[label], dtype=np.int64) for label in ranked}


@CALLBACK_REGISTRY.registryPostProcessor("yolact")
class YolactPostprocessor(BasePostprocessor):
    """
    Postprocessor for YOLACT instance segmentation models.

    The anchor table is built once at construction. Each call to
    :meth:`postprocess` assembles the flat feed, runs :meth:`detect` with a
    fresh frame cache and returns the detections with the prototype basis.
    """

    def __init__(
        self,
        config: Optional[PostprocessConfig] = None,
        bindings: Optional[Dict[str, TensorBinding]] = None,
    ):
        """
        Initialize the YOLACT postprocessor.

        Args:
            config: Postprocessing configuration. If None, default config is used.
            bindings: Output tensor name table. If None, the reference model's
                tensor names are used.
        """
        super().__init__(config)

        self.layout = AnchorLayout.from_config(self.config)
        if self.layout == AnchorLayout():
            self.layout.validate(YOLACT_LEVEL_OFFSETS)

        self.anchors = AnchorTable(self.layout)
        self.decoder = BoxDecoder(
            self.anchors,
            variance_center=self.config.variance_center,
            variance_size=self.config.variance_size,
        )
        self.assembler = TensorFeedAssembler.from_config(
            self.config, self.layout, bindings=bindings
        )

        logger.info(
            f"Initialized YolactPostprocessor with {self.config.num_classes} classes "
            f"and {len(self.anchors)} anchors"
        )

    def postprocess(
        self,
        raw_outputs: Dict[str, np.ndarray],
        batch_index: int = 0,
    ) -> YolactResult:
        """
        Postprocess raw YOLACT outputs of one image.

        Args:
            raw_outputs: Output buffers keyed by tensor name
            batch_index: Image of the batch to process

        Returns:
            YolactResult with the detections, the prototype basis and the
            unknown tensors that were skipped

        Raises:
            MalformedFeedError: If an output buffer does not match the layout
        """
        feed, unknown = self.assembler.assemble(raw_outputs, batch_index)
        detections = self.detect(feed)
        return YolactResult(
            detections=detections,
            prototypes=feed.prototypes.copy(),
            unknown_tensors=unknown,
        )

    def detect(
        self, feed: FeedBuffers, cache: Optional[FrameCache] = None
    ) -> List[Detection]:
        """
        Run classwise suppression and the global re-rank over a flat feed.

        Args:
            feed: Flat anchor-indexed arrays of one frame
            cache: Frame cache to populate; a new one is created if None

        Returns:
            Detections ordered by class label, then by rank within the class
        """
        if feed.num_anchors != len(self.anchors):
            raise MalformedFeedError(
                f"Feed has {feed.num_anchors} anchors, table has {len(self.anchors)}",
                expected_shape=(len(self.anchors), 4),
                actual_shape=feed.location.shape,
            )

        if cache is None:
            cache = FrameCache()

        per_class = {}
        # Skip the background class by starting at 1 instead of 0
        for label in range(1, self.config.num_classes):
            kept = self._suppress_class(feed, cache, label)
            if kept.size:
                per_class[label] = kept

        per_class = keep_top_k(per_class, feed.confidence, self.config.keep_top_k)

        detections = []
        for label in sorted(per_class):
            for index in per_class[label].tolist():
                box = cache.box(index)
                detections.append(
                    Detection(
                        label=label,
                        score=float(feed.confidence[index, label]),
                        box=np.array(
                            [
                                box[0] - 0.5 * box[2],
                                box[1] - 0.5 * box[3],
                                box[2],
                                box[3],
                            ],
                            dtype=np.float32,
                        ),
                        mask_coefficients=cache.coefficients(index),
                        anchor_index=index,
                    )
                )

        logger.debug(
            f"Decoded {len(cache)} anchors, emitted {len(detections)} detections"
        )
        return detections

    def _suppress_class(
        self, feed: FeedBuffers, cache: FrameCache, label: int
    ) -> np.ndarray:
        scores, indices = select_class_candidates(
            feed.confidence[:, label], self.config.conf_threshold, self.config.nms_top_k
        )
        if indices.size == 0:
            return indices

        self.decoder.decode_into(
            cache, indices, feed.location, feed.mask_coefficients
        )
        boxes = np.stack([cache.box(index) for index in indices.tolist()])

        keep = non_max_suppression(
            boxes,
            scores,
            iou_threshold=self.config.nms_iou_threshold,
            score_threshold=self.config.nms_conf_threshold,
        )
        return indices[keep]
