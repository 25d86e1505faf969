"""
Visualization Module for YOLACT Results

This module renders instance segmentation results onto images:
- Alpha-blended instance masks synthesized from the prototype basis
- One-pixel bounding boxes in a per-class color
- Filled label boxes with class name and confidence score
- Prototype channel previews for debugging
"""

import numpy as np
import cv2
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

from ..base import COCO_CLASSES, Detection, YolactResult, validate_score_threshold
from ..exceptions import InvalidConfigError
from ..postprocessor.masks import MaskSynthesizer
from yolact_toolbox.inference.core import CALLBACK_REGISTRY


logger = logging.getLogger(__name__)


# BGR palette, indexed by (label * 5) % 19
YOLACT_COLORS = (
    (54, 67, 244),
    (99, 30, 233),
    (176, 39, 156),
    (183, 58, 103),
    (181, 81, 63),
    (243, 150, 33),
    (244, 169, 3),
    (212, 188, 0),
    (136, 150, 0),
    (80, 175, 76),
    (74, 195, 139),
    (57, 220, 205),
    (59, 235, 255),
    (7, 193, 255),
    (0, 152, 255),
    (34, 87, 255),
    (72, 85, 72),
    (158, 158, 158),
    (139, 125, 96),
)


def get_color(label: int, palette: Sequence[Tuple[int, int, int]] = YOLACT_COLORS) -> Tuple[int, int, int]:
    """
    Color of a class label.

    Args:
        label: Class label
        palette: Ordered BGR palette

    Returns:
        BGR color tuple
    """
    return tuple(palette[(label * 5) % len(palette)])


def format_label(class_name: str, score: float) -> str:
    """Label text; the score is biased up by 0.005 before two-decimal formatting."""
    return f"{class_name}: {score + 0.005:.2f}"


@dataclass
class VisualizationConfig:
    """
    Configuration class for visualization settings.
    """

    draw_mask: bool = True
    draw_bbox: bool = True
    draw_text: bool = True

    mask_alpha: float = 0.45
    mask_threshold: float = 0.5

    bbox_thickness: int = 1

    font_face: int = cv2.FONT_HERSHEY_DUPLEX
    font_scale: float = 0.6
    font_thickness: int = 1
    font_color: Tuple[int, int, int] = (255, 255, 255)
    label_padding: int = 8

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        self._validate_parameters()

    def _validate_parameters(self):
        """Validate all configuration parameters."""
        if not (0.0 <= self.mask_alpha <= 1.0):
            raise InvalidConfigError(
                f"mask_alpha must be between 0 and 1, got {self.mask_alpha}",
                "mask_alpha",
                self.mask_alpha,
            )

        if not (0.0 <= self.mask_threshold <= 1.0):
            raise InvalidConfigError(
                f"mask_threshold must be between 0 and 1, got {self.mask_threshold}",
                "mask_threshold",
                self.mask_threshold,
            )

        if self.font_scale <= 0:
            raise InvalidConfigError(
                f"font_scale must be positive, got {self.font_scale}",
                "font_scale",
                self.font_scale,
            )

        if self.font_thickness <= 0:
            raise InvalidConfigError(
                f"font_thickness must be positive, got {self.font_thickness}",
                "font_thickness",
                self.font_thickness,
            )

        if self.bbox_thickness <= 0:
            raise InvalidConfigError(
                f"bbox_thickness must be positive, got {self.bbox_thickness}",
                "bbox_thickness",
                self.bbox_thickness,
            )


@CALLBACK_REGISTRY.registryVisualizer("yolact")
class YolactVisualization:
    """
    Overlay renderer for YOLACT instance segmentation results.

    Masks are blended in detection order so later detections win where they
    overlap; boxes and labels are drawn in reverse order so the first
    detections end up on top.
    """

    def __init__(
        self,
        config: Optional[VisualizationConfig] = None,
        class_names: Optional[Sequence[str]] = None,
        palette: Sequence[Tuple[int, int, int]] = YOLACT_COLORS,
    ):
        self.config = config or VisualizationConfig()
        self.class_names = list(class_names) if class_names is not None else list(COCO_CLASSES)
        self.palette = list(palette)
        self.synthesizer = MaskSynthesizer(
            mask_threshold=self.config.mask_threshold,
            mask_alpha=self.config.mask_alpha,
        )

        logger.info(f"Initialized {self.__class__.__name__} visualization system")

    def __call__(
        self, image: np.ndarray, results: YolactResult, score_threshold: float = 0.5
    ) -> np.ndarray:
        return self.visualize(image, results, score_threshold)

    def visualize(
        self, image: np.ndarray, results: YolactResult, score_threshold: float = 0.5
    ) -> np.ndarray:
        """
        Draw masks, boxes and labels onto a copy of ``image``.

        Args:
            image: BGR uint8 image with shape (H, W, 3)
            results: Postprocessed frame
            score_threshold: Detections scoring below this value are not drawn

        Returns:
            New image with the overlays

        Raises:
            InvalidConfigError: If score_threshold is outside [0, 1]
        """
        score_threshold = validate_score_threshold(score_threshold)
        self._validate_image(image)

        output = image.copy()
        if self.config.draw_mask:
            self.draw_masks(output, results.detections, results.prototypes, score_threshold)
        if self.config.draw_bbox or self.config.draw_text:
            self.draw_boxes(output, results.detections, score_threshold)
        return output

    def _validate_image(self, image: np.ndarray) -> None:
        """
        Validate input image format.

        Raises:
            TypeError: If image is not numpy array
            ValueError: If image format is not supported
        """
        if not isinstance(image, np.ndarray):
            raise TypeError(f"Image must be numpy array, got {type(image)}")

        if len(image.shape) != 3 or image.shape[2] != 3 or image.dtype != np.uint8:
            raise ValueError(
                f"Image must be uint8 with shape (H, W, 3), got {image.dtype} {image.shape}"
            )

    def _get_color(self, label: int) -> Tuple[int, int, int]:
        return get_color(label, self.palette)

    def _get_class_name(self, label: int) -> str:
        if 0 <= label < len(self.class_names):
            return self.class_names[label]
        return f"class_{label}"

    def draw_masks(
        self,
        image: np.ndarray,
        detections: List[Detection],
        prototypes: np.ndarray,
        score_threshold: float,
    ) -> np.ndarray:
        """Blend each detection's mask into ``image`` in place, in detection order."""
        image_shape = image.shape[:2]
        for det in detections:
            if det.score < score_threshold:
                continue
            mask = self.synthesizer.synthesize(prototypes, det, image_shape)
            self.synthesizer.composite(image, mask, self._get_color(det.label))
        return image

    def draw_boxes(
        self, image: np.ndarray, detections: List[Detection], score_threshold: float
    ) -> np.ndarray:
        """Draw boxes and labels into ``image`` in place, last detection first."""
        height, width = image.shape[:2]

        for det in reversed(detections):
            if det.score < score_threshold:
                continue

            x, y, w, h = (float(v) for v in det.box)
            xmin = int(min(max(x * width, 0.0), width))
            ymin = int(min(max(y * height, 0.0), height))
            xmax = int(min(max(xmin + w * width, 0.0), width))
            ymax = int(min(max(ymin + h * height, 0.0), height))

            color = self._get_color(det.label)
            if self.config.draw_bbox:
                cv2.rectangle(
                    image,
                    (xmin, ymin),
                    (xmax, ymax),
                    color,
                    self.config.bbox_thickness,
                    cv2.LINE_8,
                )

            if self.config.draw_text:
                label = format_label(self._get_class_name(det.label), det.score)
                self._draw_label(image, label, (xmin, ymin), color)

        return image

    def _draw_label(
        self,
        image: np.ndarray,
        text: str,
        position: Tuple[int, int],
        color: Tuple[int, int, int],
    ) -> None:
        """
        Draw text on a filled background of the box color, above ``position``.

        Args:
            image: Image to draw on
            text: Text to draw
            position: Top-left corner (x, y) of the box
            color: Background color
        """
        height, width = image.shape[:2]
        x, y = position
        (text_width, text_height), _ = cv2.getTextSize(
            text, self.config.font_face, self.config.font_scale, self.config.font_thickness
        )
        padding = self.config.label_padding

        bg_y = min(max(y - text_height - padding, 0), height)
        bg_w = min(max(text_width + 2, 0), width)
        bg_h = min(max(text_height + padding, 0), height)
        image[bg_y : bg_y + bg_h, x : x + bg_w] = color

        cv2.putText(
            image,
            text,
            (x, bg_y + text_height),
            self.config.font_face,
            self.config.font_scale,
            self.config.font_color,
            self.config.font_thickness,
            cv2.LINE_AA,
        )


def prototype_images(prototypes: np.ndarray, size: int = 550) -> List[np.ndarray]:
    """
    Render each prototype channel as a JET color-mapped BGR image.

    Each channel is scaled by its own maximum; non-positive channels render
    as all zeros before color mapping.

    Args:
        prototypes: Prototype basis with shape (P, P, C)
        size: Side of the output images

    Returns:
        List of C uint8 images with shape (size, size, 3)
    """
    images = []
    for c in range(prototypes.shape[-1]):
        channel = prototypes[:, :, c].astype(np.float32)
        max_val = float(channel.max())
        if max_val > 0:
            scaled = np.clip(channel / max_val * 255, 0, 255)
        else:
            scaled = np.zeros_like(channel)
        color_img = cv2.applyColorMap(scaled.astype(np.uint8), cv2.COLORMAP_JET)
        images.append(cv2.resize(color_img, (size, size)))
    return images
