"""
Command-line interface for rendering YOLACT outputs.
"""

import os
import sys
import json
from typing import Any, AnyStr, Dict, List, Optional

import cv2
import numpy as np

from yolact_toolbox.cli.config import parse_args
from yolact_toolbox.inference.pipeline import YolactEngine, FrameResult
from yolact_toolbox.process import PostprocessConfig, PostprocessError, prototype_images
from yolact_toolbox.utils.config import Config
from yolact_toolbox.utils.logging import setup_logger

logger = setup_logger("yolact_toolbox")


def load_outputs(path: str) -> Dict[str, np.ndarray]:
    """
    Load raw network outputs saved with ``np.savez``.

    Args:
        path: Path to the .npz file

    Returns:
        Output buffers keyed by tensor name
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Outputs file not found: {path}")
    with np.load(path) as data:
        return {name: data[name] for name in data.files}


def load_image(path: str) -> np.ndarray:
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return image


class Render:
    def __init__(self, **kwargs) -> None:
        self.config = Config(kwargs)
        if self.config.config:
            self.postprocess_config = PostprocessConfig.from_file(self.config.config)
            logger.info(f"Loaded postprocess config from {self.config.config}")
        else:
            self.postprocess_config = PostprocessConfig()
        self.engine = YolactEngine(postprocess_config=self.postprocess_config)

    def run(self) -> FrameResult:
        image = load_image(self.config.image)
        raw_outputs = load_outputs(self.config.outputs)
        logger.debug(f"Loaded {len(raw_outputs)} output tensors from {self.config.outputs}")

        frame = self.engine.run(
            image,
            raw_outputs,
            score_threshold=self.config.score_threshold,
            batch_index=self.config.batch_index,
        )
        for event in frame.results.unknown_tensors:
            logger.debug(f"Skipped tensor {event.tensor_name} {event.shape}")

        self.save_image(frame.image, self.config.output)
        if self.config.json:
            self.save_json(frame, self.config.json)
        if self.config.dump_prototypes:
            self.save_prototypes(frame.results.prototypes, self.config.dump_prototypes)
        if self.config.dump_prototypes_csv:
            self.save_prototypes_csv(frame.results.prototypes, self.config.dump_prototypes_csv)

        logger.info(
            f"Rendered {len(frame.results)} detections to {self.config.output}"
        )
        self.engine.log_stats()
        return frame

    def save_image(self, image: np.ndarray, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not cv2.imwrite(path, image):
            raise IOError(f"Failed to write image: {path}")

    def save_json(self, frame: FrameResult, path: str) -> None:
        class_names = self.postprocess_config.class_names
        payload = [det.to_dict(class_names) for det in frame.results.detections]
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        logger.info(f"Saved detections to {path}")

    def save_prototypes(self, prototypes: np.ndarray, directory: str) -> List[str]:
        os.makedirs(directory, exist_ok=True)
        paths = []
        for c, image in enumerate(prototype_images(prototypes)):
            path = os.path.join(directory, f"prototype_{c:02d}.jpg")
            self.save_image(image, path)
            paths.append(path)
        logger.info(f"Saved {len(paths)} prototype images to {directory}")
        return paths

    def save_prototypes_csv(self, prototypes: np.ndarray, directory: str) -> List[str]:
        """Write each prototype channel as a comma-separated table, one row per mask row."""
        os.makedirs(directory, exist_ok=True)
        paths = []
        for c in range(prototypes.shape[-1]):
            path = os.path.join(directory, f"proto_data_{c}.csv")
            np.savetxt(path, prototypes[:, :, c], fmt="%f", delimiter=", ")
            paths.append(path)
        logger.info(f"Saved {len(paths)} prototype tables to {directory}")
        return paths

    @classmethod
    def load_from_config(cls, config: Dict[AnyStr, Any]):
        return cls(**config)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the YOLACT toolbox CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)
    if args.command is None:
        logger.error("No command given, see --help")
        return 2

    setup_logger("yolact_toolbox", level=args.log_level)

    try:
        Render(**vars(args)).run()
    except (FileNotFoundError, ValueError, IOError, PostprocessError) as e:
        logger.error(f"Render failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
