"""
Tensor feed assembly for YOLACT.

The network emits one buffer per feature-map level for each per-anchor tensor
(box offsets, class confidences, mask coefficients) plus one prototype mask
basis shared by the whole image. This module copies those buffers into flat,
anchor-indexed arrays laid out like the anchor table.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..base import PostprocessConfig
from ..exceptions import InvalidConfigError, MalformedFeedError, UnknownTensorEvent
from .anchors import AnchorLayout

logger = logging.getLogger(__name__)


class TensorRole(Enum):
    """Kind of data a raw output buffer carries."""

    LOCATION = "location"
    CONFIDENCE = "confidence"
    MASK_COEFFICIENTS = "mask_coefficients"
    PROTOTYPES = "prototypes"


@dataclass(frozen=True)
class TensorBinding:
    """Role and feature-map level of a named output buffer (level unused for prototypes)."""

    role: TensorRole
    level: Optional[int] = None


# Output tensor names of the compiled reference model
YOLACT_TENSOR_BINDINGS: Dict[str, TensorBinding] = {
    "Yolact__Yolact_13058_fix_": TensorBinding(TensorRole.PROTOTYPES),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_0__13127_fix_": TensorBinding(TensorRole.LOCATION, 0),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_1__13263_fix_": TensorBinding(TensorRole.LOCATION, 1),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_2__13399_fix_": TensorBinding(TensorRole.LOCATION, 2),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_3__13535_fix_": TensorBinding(TensorRole.LOCATION, 3),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_4__13671_fix_": TensorBinding(TensorRole.LOCATION, 4),
    "Yolact__Yolact_13749": TensorBinding(TensorRole.CONFIDENCE, 0),
    "Yolact__Yolact_13752": TensorBinding(TensorRole.CONFIDENCE, 1),
    "Yolact__Yolact_13755": TensorBinding(TensorRole.CONFIDENCE, 2),
    "Yolact__Yolact_13758": TensorBinding(TensorRole.CONFIDENCE, 3),
    "Yolact__Yolact_13761": TensorBinding(TensorRole.CONFIDENCE, 4),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_0__13198": TensorBinding(TensorRole.MASK_COEFFICIENTS, 0),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_1__13334": TensorBinding(TensorRole.MASK_COEFFICIENTS, 1),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_2__13470": TensorBinding(TensorRole.MASK_COEFFICIENTS, 2),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_3__13606": TensorBinding(TensorRole.MASK_COEFFICIENTS, 3),
    "Yolact__Yolact_PredictionModule_prediction_layers__ModuleList_4__13742": TensorBinding(TensorRole.MASK_COEFFICIENTS, 4),
}


def generic_bindings(num_levels: int) -> Dict[str, TensorBinding]:
    """
    Bindings for exports that name their outputs ``loc_<k>``, ``conf_<k>``,
    ``mask_<k>`` and ``proto``.
    """
    bindings = {"proto": TensorBinding(TensorRole.PROTOTYPES)}
    for level in range(num_levels):
        bindings[f"loc_{level}"] = TensorBinding(TensorRole.LOCATION, level)
        bindings[f"conf_{level}"] = TensorBinding(TensorRole.CONFIDENCE, level)
        bindings[f"mask_{level}"] = TensorBinding(TensorRole.MASK_COEFFICIENTS, level)
    return bindings


@dataclass
class FeedBuffers:
    """
    Flat, anchor-indexed arrays for one frame.

    Attributes:
        location: Shape (num_anchors, 4) - center/size offsets
        confidence: Shape (num_anchors, num_classes)
        mask_coefficients: Shape (num_anchors, mask_channels)
        prototypes: Shape (P, P, mask_channels)
    """

    location: np.ndarray
    confidence: np.ndarray
    mask_coefficients: np.ndarray
    prototypes: np.ndarray

    @classmethod
    def allocate(
        cls, num_anchors: int, num_classes: int, mask_channels: int, prototype_size: int
    ) -> "FeedBuffers":
        return cls(
            location=np.zeros((num_anchors, 4), dtype=np.float32),
            confidence=np.zeros((num_anchors, num_classes), dtype=np.float32),
            mask_coefficients=np.zeros((num_anchors, mask_channels), dtype=np.float32),
            prototypes=np.zeros(
                (prototype_size, prototype_size, mask_channels), dtype=np.float32
            ),
        )

    @property
    def num_anchors(self) -> int:
        return len(self.location)


class TensorFeedAssembler:
    """
    Copies named per-level output buffers into preallocated flat arrays.

    The name -> (role, level) table is injected at construction; the assembler
    itself never hardcodes model tensor names. Buffers are allocated once and
    overwritten by every call to :meth:`assemble`.
    """

    def __init__(
        self,
        layout: AnchorLayout,
        bindings: Optional[Dict[str, TensorBinding]] = None,
        num_classes: int = 81,
        mask_channels: int = 32,
        prototype_size: int = 138,
    ):
        self.layout = layout
        self.bindings = dict(YOLACT_TENSOR_BINDINGS if bindings is None else bindings)
        self.num_classes = num_classes
        self.mask_channels = mask_channels
        self.prototype_size = prototype_size

        self._validate_bindings()

        self.buffers = FeedBuffers.allocate(
            layout.num_anchors, num_classes, mask_channels, prototype_size
        )
        self._targets = {
            TensorRole.LOCATION: self.buffers.location,
            TensorRole.CONFIDENCE: self.buffers.confidence,
            TensorRole.MASK_COEFFICIENTS: self.buffers.mask_coefficients,
        }

    @classmethod
    def from_config(
        cls,
        config: PostprocessConfig,
        layout: AnchorLayout,
        bindings: Optional[Dict[str, TensorBinding]] = None,
    ) -> "TensorFeedAssembler":
        return cls(
            layout,
            bindings=bindings,
            num_classes=config.num_classes,
            mask_channels=config.mask_channels,
            prototype_size=config.prototype_size,
        )

    def _validate_bindings(self) -> None:
        """Every (role, level) must be bound exactly once."""
        seen = {}
        for name, binding in self.bindings.items():
            if binding.role is TensorRole.PROTOTYPES:
                key = (binding.role, None)
            else:
                if binding.level is None or not (0 <= binding.level < self.layout.num_levels):
                    raise InvalidConfigError(
                        f"Binding for '{name}' has invalid level {binding.level}"
                    )
                key = (binding.role, binding.level)
            if key in seen:
                raise InvalidConfigError(
                    f"Tensors '{seen[key]}' and '{name}' are both bound to {key}"
                )
            seen[key] = name

        expected = {(TensorRole.PROTOTYPES, None)}
        for role in (TensorRole.LOCATION, TensorRole.CONFIDENCE, TensorRole.MASK_COEFFICIENTS):
            expected.update((role, level) for level in range(self.layout.num_levels))
        missing = expected - set(seen)
        if missing:
            raise InvalidConfigError(f"Bindings are missing for {sorted(missing, key=str)}")

    def channels(self, role: TensorRole) -> int:
        if role is TensorRole.LOCATION:
            return 4
        if role is TensorRole.CONFIDENCE:
            return self.num_classes
        return self.mask_channels

    def assemble(
        self, raw_outputs: Dict[str, np.ndarray], batch_index: int = 0
    ) -> Tuple[FeedBuffers, List[UnknownTensorEvent]]:
        """
        Fill the flat arrays from one image of the raw output batch.

        Args:
            raw_outputs: Output buffers keyed by tensor name, each shaped
                [batch, ..., channels]
            batch_index: Image of the batch to copy

        Returns:
            Tuple of (feed buffers, unknown tensor events)

        Raises:
            MalformedFeedError: If a buffer disagrees with the anchor layout or
                a bound tensor is missing
        """
        unknown = []
        filled = set()

        for name, data in raw_outputs.items():
            binding = self.bindings.get(name)
            if binding is None:
                event = UnknownTensorEvent(name, tuple(np.shape(data)))
                logger.warning(f"Ignoring unknown output tensor '{name}' with shape {event.shape}")
                unknown.append(event)
                continue

            image = self._select_batch(name, np.asarray(data), batch_index)
            if binding.role is TensorRole.PROTOTYPES:
                self._fill_prototypes(name, image)
            else:
                self._fill_level(name, binding, image)
            filled.add(name)

        missing = [name for name in self.bindings if name not in filled]
        if missing:
            raise MalformedFeedError(
                f"Missing {len(missing)} bound output tensor(s): {missing}",
                tensor_name=missing[0],
            )

        logger.debug(f"Assembled feed for batch slot {batch_index} from {len(filled)} tensors")
        return self.buffers, unknown

    def _select_batch(self, name: str, data: np.ndarray, batch_index: int) -> np.ndarray:
        if data.ndim < 2:
            raise MalformedFeedError(
                f"Tensor '{name}' must have a batch and a channel axis",
                tensor_name=name,
                actual_shape=data.shape,
            )
        if not (0 <= batch_index < data.shape[0]):
            raise MalformedFeedError(
                f"Batch index {batch_index} out of range for tensor '{name}'",
                tensor_name=name,
                actual_shape=data.shape,
            )
        return data[batch_index]

    def _fill_level(self, name: str, binding: TensorBinding, image: np.ndarray) -> None:
        channels = self.channels(binding.role)
        band = self.layout.level_slice(binding.level)
        expected = (band.stop - band.start, channels)
        size = self.layout.feature_map_sizes[binding.level]
        # Anchor-major rows, or a channel-last feature map
        accepted = (expected, (size, size, self.layout.anchors_per_cell * channels))

        if image.shape not in accepted:
            raise MalformedFeedError(
                f"Tensor '{name}' does not match {binding.role.value} level {binding.level}",
                tensor_name=name,
                expected_shape=expected,
                actual_shape=image.shape,
            )

        self._targets[binding.role][band] = image.reshape(expected)

    def _fill_prototypes(self, name: str, image: np.ndarray) -> None:
        expected = self.buffers.prototypes.shape
        if image.shape != expected:
            raise MalformedFeedError(
                f"Prototype tensor '{name}' has the wrong shape",
                tensor_name=name,
                expected_shape=expected,
                actual_shape=image.shape,
            )
        self.buffers.prototypes[...] = image
