"""
Instance mask synthesis from the YOLACT prototype basis.

Each detection's mask is a sigmoid of the linear combination of the shared
prototype channels with the detection's coefficients, resized to the image and
hard-cropped to the detection box.
"""

import logging
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from ..base import Detection, validate_score_threshold

logger = logging.getLogger(__name__)


def _sigmoid(x: np.ndarray) -> np.ndarray:
    """
    Apply sigmoid activation function.

    Args:
        x: Input array

    Returns:
        Sigmoid activated array
    """
    return 1 / (1 + np.exp(-np.clip(x, -250, 250)))


def box_to_rect(box: np.ndarray, image_shape: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """
    Pixel rectangle of a normalized top-left box, clamped to the image.

    Args:
        box: Box with shape (4,) - [x, y, w, h], normalized
        image_shape: Image shape (height, width)

    Returns:
        Tuple of (x1, y1, x2, y2) pixel bounds, end exclusive
    """
    height, width = image_shape
    x1 = int(min(max(box[0] * width, 0.0), width))
    y1 = int(min(max(box[1] * height, 0.0), height))
    rect_w = int(min(max(box[2] * width, 0.0), width))
    rect_h = int(min(max(box[3] * height, 0.0), height))
    return x1, y1, min(x1 + rect_w, width), min(y1 + rect_h, height)


class MaskSynthesizer:
    """
    Builds per-detection instance masks and blends them onto images.
    """

    def __init__(self, mask_threshold: float = 0.5, mask_alpha: float = 0.45):
        self.mask_threshold = mask_threshold
        self.mask_alpha = mask_alpha

    def low_resolution_mask(
        self, prototypes: np.ndarray, coefficients: np.ndarray
    ) -> np.ndarray:
        """
        Args:
            prototypes: Prototype basis with shape (P, P, C)
            coefficients: Mask coefficients with shape (C,)

        Returns:
            Mask with shape (P, P), values in (0, 1)
        """
        mh, mw, c = prototypes.shape
        if coefficients.shape != (c,):
            raise ValueError(
                f"Expected {c} mask coefficients, got shape {coefficients.shape}"
            )
        logits = prototypes.reshape(-1, c) @ coefficients.astype(np.float32)
        return _sigmoid(logits).reshape(mh, mw).astype(np.float32)

    def synthesize(
        self,
        prototypes: np.ndarray,
        detection: Detection,
        image_shape: Tuple[int, int],
    ) -> np.ndarray:
        """
        Full-resolution mask of one detection, zero outside its box.

        Args:
            prototypes: Prototype basis with shape (P, P, C)
            detection: Detection to build the mask for
            image_shape: Output image shape (height, width)

        Returns:
            Float32 mask with shape (height, width)
        """
        height, width = image_shape
        mask = self.low_resolution_mask(prototypes, detection.mask_coefficients)
        mask = cv2.resize(mask, (width, height), interpolation=cv2.INTER_LINEAR)

        x1, y1, x2, y2 = box_to_rect(detection.box, image_shape)
        cropped = np.zeros_like(mask)
        cropped[y1:y2, x1:x2] = mask[y1:y2, x1:x2]
        return cropped

    def synthesize_all(
        self,
        prototypes: np.ndarray,
        detections: Sequence[Detection],
        image_shape: Tuple[int, int],
        score_threshold: float = 0.0,
    ) -> Tuple[np.ndarray, List[int]]:
        """
        Masks of every detection scoring at least ``score_threshold``.

        Returns:
            Tuple of (masks with shape (N, height, width), indices of the
            detections the masks belong to)
        """
        score_threshold = validate_score_threshold(score_threshold)
        height, width = image_shape

        selected = [
            i for i, det in enumerate(detections) if det.score >= score_threshold
        ]
        if not selected:
            return np.zeros((0, height, width), dtype=np.float32), selected

        masks = np.stack(
            [self.synthesize(prototypes, detections[i], image_shape) for i in selected]
        )
        logger.debug(f"Synthesized {len(selected)} masks at {width}x{height}")
        return masks, selected

    def composite(
        self,
        image: np.ndarray,
        mask: np.ndarray,
        color: Tuple[int, int, int],
    ) -> np.ndarray:
        """
        Blend ``color`` into ``image`` in place where ``mask`` exceeds the threshold.

        ``out = image * alpha + color * (1 - alpha)``, truncated to uint8.

        Args:
            image: BGR uint8 image with shape (H, W, 3), modified in place
            mask: Float mask with shape (H, W)
            color: BGR color

        Returns:
            The same image
        """
        region = mask > self.mask_threshold
        if not np.any(region):
            return image

        blend = image[region].astype(np.float64) * self.mask_alpha
        blend += np.asarray(color, dtype=np.float64) * (1.0 - self.mask_alpha)
        image[region] = np.clip(blend, 0, 255).astype(np.uint8)
        return image
