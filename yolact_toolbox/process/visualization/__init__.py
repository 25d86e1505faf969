from .visualization import (
    YolactVisualization,
    VisualizationConfig,
    YOLACT_COLORS,
    get_color,
    prototype_images,
)

__all__ = [
    "YolactVisualization",
    "VisualizationConfig",
    "YOLACT_COLORS",
    "get_color",
    "prototype_images",
]
