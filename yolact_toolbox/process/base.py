from abc import ABC, abstractmethod
import numpy as np
from typing import Dict, Any, List, Tuple, Optional
from dataclasses import dataclass, field, fields

from .exceptions import InvalidConfigError, UnknownTensorEvent
from ..utils.config import load_config


# COCO dataset classes, background first
COCO_CLASSES = (
    "background",
    "person",
    "bicycle",
    "car",
    "motorcycle",
    "airplane",
    "bus",
    "train",
    "truck",
    "boat",
    "traffic light",
    "fire hydrant",
    "stop sign",
    "parking meter",
    "bench",
    "bird",
    "cat",
    "dog",
    "horse",
    "sheep",
    "cow",
    "elephant",
    "bear",
    "zebra",
    "giraffe",
    "backpack",
    "umbrella",
    "handbag",
    "tie",
    "suitcase",
    "frisbee",
    "skis",
    "snowboard",
    "sports ball",
    "kite",
    "baseball bat",
    "baseball glove",
    "skateboard",
    "surfboard",
    "tennis racket",
    "bottle",
    "wine glass",
    "cup",
    "fork",
    "knife",
    "spoon",
    "bowl",
    "banana",
    "apple",
    "sandwich",
    "orange",
    "broccoli",
    "carrot",
    "hot dog",
    "pizza",
    "donut",
    "cake",
    "chair",
    "couch",
    "potted plant",
    "bed",
    "dining table",
    "toilet",
    "tv",
    "laptop",
    "mouse",
    "remote",
    "keyboard",
    "cell phone",
    "microwave",
    "oven",
    "toaster",
    "sink",
    "refrigerator",
    "book",
    "clock",
    "vase",
    "scissors",
    "teddy bear",
    "hair drier",
    "toothbrush",
)


@dataclass
class PostprocessConfig:
    """
    Configuration class for YOLACT postprocessing.

    Defaults reproduce the geometry and thresholds the reference model was
    trained with; changing the anchor fields breaks the anchor/offset pairing.
    """

    # Anchor geometry
    feature_map_sizes: Tuple[int, ...] = (69, 35, 18, 9, 5)
    anchor_scales: Tuple[int, ...] = (24, 48, 96, 192, 384)
    aspect_ratios: Tuple[float, ...] = (1.0, 0.5, 2.0)
    max_size: int = 550

    # Model outputs
    num_classes: int = 81  # including background at index 0
    mask_channels: int = 32
    prototype_size: int = 138

    # Box decoding
    variance_center: float = 0.1
    variance_size: float = 0.2

    # Candidate selection and NMS
    conf_threshold: float = 0.6
    nms_conf_threshold: float = 0.6
    nms_iou_threshold: float = 0.2
    nms_top_k: int = 200
    keep_top_k: int = 15

    # Mask synthesis
    mask_threshold: float = 0.5
    mask_alpha: float = 0.45

    class_names: Optional[List[str]] = None

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        self.feature_map_sizes = tuple(self.feature_map_sizes)
        self.anchor_scales = tuple(self.anchor_scales)
        self.aspect_ratios = tuple(self.aspect_ratios)
        self._validate_parameters()
        self._set_default_names()

    def _validate_parameters(self):
        """Validate all configuration parameters."""
        for name in (
            "conf_threshold",
            "nms_conf_threshold",
            "nms_iou_threshold",
            "mask_threshold",
            "mask_alpha",
        ):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise InvalidConfigError(
                    f"{name} must be between 0 and 1, got {value}", name, value
                )

        for name in (
            "num_classes",
            "mask_channels",
            "prototype_size",
            "nms_top_k",
            "keep_top_k",
            "max_size",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise InvalidConfigError(
                    f"{name} must be positive, got {value}", name, value
                )

        if self.num_classes < 2:
            raise InvalidConfigError(
                "num_classes must include background and at least one class",
                "num_classes",
                self.num_classes,
            )

        if len(self.feature_map_sizes) != len(self.anchor_scales):
            raise InvalidConfigError(
                f"feature_map_sizes ({len(self.feature_map_sizes)}) and "
                f"anchor_scales ({len(self.anchor_scales)}) must have the same length",
                "anchor_scales",
                self.anchor_scales,
            )

        if not self.aspect_ratios:
            raise InvalidConfigError("aspect_ratios must not be empty", "aspect_ratios")

        if self.variance_center <= 0 or self.variance_size <= 0:
            raise InvalidConfigError(
                "variances must be positive",
                "variance_center",
                (self.variance_center, self.variance_size),
            )

    def _set_default_names(self):
        """Set default class names if not provided."""
        if self.class_names is None:
            if self.num_classes == len(COCO_CLASSES):
                self.class_names = list(COCO_CLASSES)
            else:
                self.class_names = [f"class_{i}" for i in range(self.num_classes)]
        elif len(self.class_names) != self.num_classes:
            raise InvalidConfigError(
                f"Length of class_names ({len(self.class_names)}) must match "
                f"num_classes ({self.num_classes})",
                "class_names",
            )

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PostprocessConfig":
        """Build a config from a mapping, ignoring keys that are not fields."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (config or {}).items() if k in known})

    @classmethod
    def from_file(cls, path: str) -> "PostprocessConfig":
        """Build a config from a YAML or JSON file."""
        config = load_config(path) or {}
        return cls.from_dict(config.get("postprocess", config))


@dataclass
class Detection:
    """
    Final detection produced by the suppression engine.
    """

    label: int
    score: float
    box: np.ndarray  # Shape: (4,) - [x, y, w, h], top-left corner, normalized
    mask_coefficients: np.ndarray  # Shape: (mask_channels,)
    anchor_index: int = -1

    def to_dict(self, class_names: Optional[List[str]] = None) -> Dict[str, Any]:
        result = {
            "label": int(self.label),
            "score": float(self.score),
            "box": [float(v) for v in self.box],
            "anchor_index": int(self.anchor_index),
        }
        if class_names is not None:
            result["class_name"] = class_names[self.label]
        return result


@dataclass
class YolactResult:
    """
    Result structure for one postprocessed frame.
    """

    detections: List[Detection]
    prototypes: np.ndarray  # Shape: (P, P, mask_channels)
    unknown_tensors: List[UnknownTensorEvent] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.detections)

    @property
    def scores(self) -> np.ndarray:
        return np.array([d.score for d in self.detections], dtype=np.float32)

    @property
    def labels(self) -> np.ndarray:
        return np.array([d.label for d in self.detections], dtype=np.int64)

    @property
    def boxes(self) -> np.ndarray:
        if not self.detections:
            return np.zeros((0, 4), dtype=np.float32)
        return np.stack([d.box for d in self.detections]).astype(np.float32)


class BasePostprocessor(ABC):
    """
    Abstract base class for all postprocessors.

    Postprocessors are responsible for converting raw model outputs
    into structured, usable results.
    """

    def __init__(self, config: Optional[PostprocessConfig] = None):
        """
        Initialize the postprocessor with configuration.

        Args:
            config: Postprocessing configuration
        """
        self.config = config or PostprocessConfig()

    @abstractmethod
    def postprocess(
        self,
        raw_outputs: Dict[str, np.ndarray],
        batch_index: int = 0,
    ) -> Any:
        """
        Postprocess raw model outputs into structured results.

        Args:
            raw_outputs: Dictionary of raw model outputs
            batch_index: Image of the batch to process

        Returns:
            Structured postprocessing results
        """
        pass

    def __call__(
        self,
        raw_outputs: Dict[str, np.ndarray],
        batch_index: int = 0,
    ) -> Any:
        return self.postprocess(raw_outputs, batch_index)


def validate_score_threshold(score_threshold: float) -> float:
    """
    Reject a caller-supplied score threshold outside [0, 1].

    Raises:
        InvalidConfigError: If the threshold is not a number in [0, 1]
    """
    try:
        value = float(score_threshold)
    except (TypeError, ValueError):
        raise InvalidConfigError(
            f"score_threshold must be a number, got {score_threshold!r}",
            "score_threshold",
            score_threshold,
        ) from None
    if not (0.0 <= value <= 1.0):
        raise InvalidConfigError(
            f"score_threshold must be between 0 and 1, got {score_threshold}",
            "score_threshold",
            score_threshold,
        )
    return value


def center_to_corner(boxes: np.ndarray) -> np.ndarray:
    """
    Convert boxes from center-size to corner form.

    Args:
        boxes: Boxes with shape (N, 4) - [cx, cy, w, h]

    Returns:
        Boxes with shape (N, 4) - [x1, y1, x2, y2]
    """
    corners = np.empty_like(boxes)
    corners[:, 0] = boxes[:, 0] - boxes[:, 2] / 2  # x1
    corners[:, 1] = boxes[:, 1] - boxes[:, 3] / 2  # y1
    corners[:, 2] = boxes[:, 0] + boxes[:, 2] / 2  # x2
    corners[:, 3] = boxes[:, 1] + boxes[:, 3] / 2  # y2
    return corners


def box_iou(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """
    IoU between one center-size box and an array of center-size boxes.

    Disjoint boxes and zero-area unions give an IoU of 0.

    Args:
        box: Box with shape (4,) - [cx, cy, w, h]
        others: Boxes with shape (N, 4) - [cx, cy, w, h]

    Returns:
        IoU values with shape (N,)
    """
    box = np.asarray(box)
    x1, y1, x2, y2 = center_to_corner(box.reshape(1, 4))[0]
    corners = center_to_corner(others)

    overlap_w = np.minimum(x2, corners[:, 2]) - np.maximum(x1, corners[:, 0])
    overlap_h = np.minimum(y2, corners[:, 3]) - np.maximum(y1, corners[:, 1])

    intersection = np.where(
        (overlap_w < 0) | (overlap_h < 0), 0.0, overlap_w * overlap_h
    )
    union = box[2] * box[3] + others[:, 2] * others[:, 3] - intersection

    iou = np.zeros(len(others), dtype=np.float64)
    valid = union > 0
    iou[valid] = intersection[valid] / union[valid]
    return iou


def non_max_suppression(
    boxes: np.ndarray,
    scores: np.ndarray,
    iou_threshold: float = 0.2,
    score_threshold: float = 0.6,
) -> np.ndarray:
    """
    Greedy Non-Maximum Suppression over center-size boxes.

    Candidates are visited in descending score order; equal scores keep their
    input order. A candidate is suppressed when its IoU with an accepted box
    is strictly greater than ``iou_threshold``. Candidates scoring below
    ``score_threshold`` are never accepted.

    Args:
        boxes: Array of boxes with shape (N, 4) - [cx, cy, w, h]
        scores: Array of confidence scores with shape (N,)
        iou_threshold: IoU threshold for suppression
        score_threshold: Minimum score of an accepted box

    Returns:
        Indices of kept boxes, in descending score order
    """
    if len(scores) == 0:
        return np.array([], dtype=np.int64)

    order = np.argsort(-scores, kind="stable")
    order = order[scores[order] >= score_threshold]

    keep = []
    while order.size > 0:
        current = order[0]
        keep.append(current)

        remaining = order[1:]
        if remaining.size == 0:
            break

        iou = box_iou(boxes[current], boxes[remaining])
        order = remaining[iou <= iou_threshold]

    return np.array(keep, dtype=np.int64)
