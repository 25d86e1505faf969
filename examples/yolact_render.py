"""
Render a frame from YOLACT outputs exported with generic tensor names.

The outputs file is an .npz holding ``loc_<k>``, ``conf_<k>``, ``mask_<k>``
(one per feature-map level) and ``proto``.
"""

import sys

import cv2
import numpy as np

from yolact_toolbox import YolactEngine
from yolact_toolbox.process import YOLACT_LAYOUT, generic_bindings
from yolact_toolbox.utils.logging import setup_logger

logger = setup_logger("yolact_render")


def main():
    if len(sys.argv) != 4:
        print("usage: yolact_render.py <outputs.npz> <image> <output image>")
        return 2

    outputs_path, image_path, output_path = sys.argv[1:]
    with np.load(outputs_path) as data:
        raw_outputs = {name: data[name] for name in data.files}
    image = cv2.imread(image_path)

    engine = YolactEngine(bindings=generic_bindings(YOLACT_LAYOUT.num_levels))
    frame = engine.run(image, raw_outputs, score_threshold=0.5)

    for det in frame.results.detections:
        name = engine.postprocess_config.class_names[det.label]
        logger.info(f"{name}: {det.score:.2f} box={det.box.round(3).tolist()}")

    cv2.imwrite(output_path, frame.image)
    engine.log_stats()
    return 0


if __name__ == "__main__":
    sys.exit(main())
