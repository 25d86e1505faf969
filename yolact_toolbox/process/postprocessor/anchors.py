"""
Anchor (prior box) generation for YOLACT.

The anchor index space is partitioned by feature-map level. ``AnchorLayout``
owns that partitioning and is shared by the anchor table and the tensor feed
assembler, so the two can never disagree on where a level's band starts.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from ..base import PostprocessConfig
from ..exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

# Cumulative anchor counts of the reference model, one entry per level boundary
YOLACT_LEVEL_OFFSETS = (0, 14283, 17958, 18930, 19173, 19248)


@dataclass(frozen=True)
class AnchorLayout:
    """
    Level partitioning of the anchor index space.

    Anchors are ordered by level (largest feature map first), then row, then
    column, then aspect ratio. Raw network outputs use the same ordering.
    """

    feature_map_sizes: Tuple[int, ...] = (69, 35, 18, 9, 5)
    scales: Tuple[int, ...] = (24, 48, 96, 192, 384)
    aspect_ratios: Tuple[float, ...] = (1.0, 0.5, 2.0)
    max_size: int = 550

    def __post_init__(self):
        if len(self.feature_map_sizes) != len(self.scales):
            raise InvalidConfigError(
                "feature_map_sizes and scales must have the same length",
                "scales",
                self.scales,
            )
        if any(size <= 0 for size in self.feature_map_sizes):
            raise InvalidConfigError(
                f"feature_map_sizes must be positive, got {self.feature_map_sizes}",
                "feature_map_sizes",
                self.feature_map_sizes,
            )

    @classmethod
    def from_config(cls, config: PostprocessConfig) -> "AnchorLayout":
        return cls(
            feature_map_sizes=tuple(config.feature_map_sizes),
            scales=tuple(config.anchor_scales),
            aspect_ratios=tuple(config.aspect_ratios),
            max_size=config.max_size,
        )

    @property
    def num_levels(self) -> int:
        return len(self.feature_map_sizes)

    @property
    def anchors_per_cell(self) -> int:
        return len(self.aspect_ratios)

    def level_size(self, level: int) -> int:
        """Number of anchors in one level."""
        return self.feature_map_sizes[level] ** 2 * self.anchors_per_cell

    @property
    def level_offsets(self) -> Tuple[int, ...]:
        """Cumulative anchor counts; entry ``k`` is where level ``k`` starts."""
        offsets = [0]
        for level in range(self.num_levels):
            offsets.append(offsets[-1] + self.level_size(level))
        return tuple(offsets)

    @property
    def num_anchors(self) -> int:
        return self.level_offsets[-1]

    def level_slice(self, level: int) -> slice:
        if not (0 <= level < self.num_levels):
            raise IndexError(f"level {level} out of range [0, {self.num_levels})")
        offsets = self.level_offsets
        return slice(offsets[level], offsets[level + 1])

    def validate(self, expected_offsets: Optional[Sequence[int]] = None) -> None:
        """
        Check the level boundaries against the ones the model was trained with.

        Raises:
            InvalidConfigError: If the boundaries differ
        """
        if expected_offsets is None:
            return
        if tuple(expected_offsets) != self.level_offsets:
            raise InvalidConfigError(
                f"anchor level offsets {self.level_offsets} do not match "
                f"expected {tuple(expected_offsets)}",
                "level_offsets",
                self.level_offsets,
            )


YOLACT_LAYOUT = AnchorLayout()


class AnchorTable:
    """
    Immutable table of anchor boxes in normalized center-size form.

    Attributes:
        layout: Level partitioning the table was generated from
        boxes: Read-only float32 array with shape (num_anchors, 4) - [x, y, w, h]
    """

    def __init__(self, layout: AnchorLayout = YOLACT_LAYOUT):
        self.layout = layout
        self.boxes = self._generate(layout)
        self.boxes.setflags(write=False)

        if len(self.boxes) != layout.num_anchors:
            raise InvalidConfigError(
                f"generated {len(self.boxes)} anchors, layout expects {layout.num_anchors}"
            )

        logger.debug(f"Generated {len(self.boxes)} anchors over {layout.num_levels} levels")

    @staticmethod
    def _generate(layout: AnchorLayout) -> np.ndarray:
        levels = []
        ratios = np.asarray(layout.aspect_ratios, dtype=np.float32)
        for fmap_size, scale in zip(layout.feature_map_sizes, layout.scales):
            inv_size = np.float32(1.0) / np.float32(fmap_size)
            centers = (np.arange(fmap_size, dtype=np.float32) + np.float32(0.5)) * inv_size
            # rows (y) outer, columns (x) inner
            grid_y, grid_x = np.meshgrid(centers, centers, indexing="ij")
            sizes = np.float32(scale) * ratios / np.float32(layout.max_size)

            num_cells = fmap_size * fmap_size
            level = np.empty((num_cells, len(ratios), 4), dtype=np.float32)
            level[:, :, 0] = grid_x.reshape(-1, 1)
            level[:, :, 1] = grid_y.reshape(-1, 1)
            level[:, :, 2] = sizes
            level[:, :, 3] = sizes
            levels.append(level.reshape(-1, 4))

        return np.concatenate(levels, axis=0)

    def __len__(self) -> int:
        return len(self.boxes)

    def __getitem__(self, index) -> np.ndarray:
        return self.boxes[index]

    def level_of(self, index: int) -> int:
        """Feature-map level an anchor index belongs to."""
        offsets = self.layout.level_offsets
        if not (0 <= index < offsets[-1]):
            raise IndexError(f"anchor index {index} out of range [0, {offsets[-1]})")
        return int(np.searchsorted(offsets, index, side="right") - 1)
