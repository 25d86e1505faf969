from .logging import setup_logger, get_logger
from .config import Config, load_config
from .timer import Timer

__all__ = ["setup_logger", "get_logger", "Config", "load_config", "Timer"]
