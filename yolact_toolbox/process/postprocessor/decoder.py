"""
Bounding-box decoding against anchors, with a per-frame decode cache.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable

import numpy as np

from ..base import center_to_corner
from ..exceptions import CacheInvariantError
from .anchors import AnchorTable

logger = logging.getLogger(__name__)


@dataclass
class FrameCache:
    """
    Decoded boxes and mask coefficients of the anchors touched in one frame.

    Owned by a single postprocessing call; an anchor referenced by several
    classes is decoded once.
    """

    boxes: Dict[int, np.ndarray] = field(default_factory=dict)
    mask_coefficients: Dict[int, np.ndarray] = field(default_factory=dict)

    def __contains__(self, index: int) -> bool:
        return index in self.boxes

    def __len__(self) -> int:
        return len(self.boxes)

    def missing(self, indices: Iterable[int]) -> np.ndarray:
        """Indices not decoded yet, in input order, without duplicates."""
        seen = set()
        result = []
        for index in indices:
            index = int(index)
            if index not in self.boxes and index not in seen:
                seen.add(index)
                result.append(index)
        return np.array(result, dtype=np.int64)

    def box(self, index: int) -> np.ndarray:
        try:
            return self.boxes[index]
        except KeyError:
            raise CacheInvariantError(
                f"Anchor {index} was never decoded in this frame", anchor_index=index
            ) from None

    def coefficients(self, index: int) -> np.ndarray:
        try:
            return self.mask_coefficients[index]
        except KeyError:
            raise CacheInvariantError(
                f"Mask coefficients of anchor {index} were never cached in this frame",
                anchor_index=index,
            ) from None

    def clear(self) -> None:
        self.boxes.clear()
        self.mask_coefficients.clear()


class BoxDecoder:
    """
    Decodes SSD-style center/size offsets into clamped, normalized boxes.

    Clamping is applied to the corners, then center and size are re-derived,
    so a box extending past the image keeps its visible part only.
    """

    def __init__(
        self,
        anchors: AnchorTable,
        variance_center: float = 0.1,
        variance_size: float = 0.2,
    ):
        self.anchors = anchors
        self.variance_center = variance_center
        self.variance_size = variance_size

    def decode(self, indices: np.ndarray, offsets: np.ndarray) -> np.ndarray:
        """
        Decode offsets for the given anchors.

        Args:
            indices: Anchor indices with shape (N,)
            offsets: Raw offsets with shape (N, 4) - [dx, dy, dw, dh]

        Returns:
            Boxes with shape (N, 4) - [cx, cy, w, h], float32, inside [0, 1]
        """
        priors = self.anchors.boxes[np.asarray(indices, dtype=np.int64)].astype(np.float64)
        offsets = np.asarray(offsets, dtype=np.float64).reshape(-1, 4)

        boxes = np.empty((len(priors), 4), dtype=np.float64)
        boxes[:, :2] = priors[:, :2] + offsets[:, :2] * self.variance_center * priors[:, 2:]
        # exp overflow saturates to inf, which the corner clamp absorbs
        with np.errstate(over="ignore"):
            boxes[:, 2:] = priors[:, 2:] * np.exp(offsets[:, 2:] * self.variance_size)

        x_min, y_min, x_max, y_max = np.clip(center_to_corner(boxes), 0.0, 1.0).T

        boxes[:, 0] = 0.5 * (x_min + x_max)
        boxes[:, 1] = 0.5 * (y_min + y_max)
        boxes[:, 2] = (x_max - boxes[:, 0]) * 2.0
        boxes[:, 3] = (y_max - boxes[:, 1]) * 2.0
        return boxes.astype(np.float32)

    def decode_into(
        self,
        cache: FrameCache,
        indices: np.ndarray,
        location: np.ndarray,
        mask_coefficients: np.ndarray,
    ) -> int:
        """
        Decode and cache the anchors of ``indices`` that are not cached yet.

        Args:
            cache: Frame cache to populate
            indices: Anchor indices needed by the caller
            location: Flat offsets with shape (num_anchors, 4)
            mask_coefficients: Flat coefficients with shape (num_anchors, C)

        Returns:
            Number of anchors newly decoded
        """
        todo = cache.missing(indices)
        if todo.size == 0:
            return 0

        boxes = self.decode(todo, location[todo])
        coefficients = np.array(mask_coefficients[todo], dtype=np.float32, copy=True)
        for row, index in enumerate(todo.tolist()):
            cache.boxes[index] = boxes[row]
            cache.mask_coefficients[index] = coefficients[row]

        return int(todo.size)
