import os
import json
from typing import Dict, Any, AnyStr

import yaml


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configuration dictionary.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    ext = os.path.splitext(config_path)[1].lower()
    with open(config_path, "r") as f:
        if ext in [".yaml", ".yml"]:
            return yaml.safe_load(f)
        elif ext == ".json":
            return json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {ext}")


class Config:
    command: AnyStr = None
    outputs: AnyStr = None
    image: AnyStr = None
    output: AnyStr = None
    config: AnyStr = None
    json: AnyStr = None
    score_threshold: float = 0.5
    batch_index: int = 0
    dump_prototypes: AnyStr = None
    dump_prototypes_csv: AnyStr = None
    log_level: AnyStr = "INFO"

    def __init__(self, config: Dict[AnyStr, Any]):
        if config is not None:
            self.update(config)

    def update(self, config: Dict[AnyStr, Any]):
        self.__dict__.update(config)

    def get(self, key: AnyStr, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __getitem__(self, key: AnyStr) -> Any:
        return self.__dict__[key]

    def __setitem__(self, key: AnyStr, value: Any):
        self.__dict__[key] = value

    def __delitem__(self, key: AnyStr):
        del self.__dict__[key]

    def __str__(self) -> str:
        """
        Return a string representation of the Config object.

        Returns:
            A string representation of the Config object.
        """
        result = ""
        for key, value in self.__dict__.items():
            result += f"{key.center(20)}: {value}\n"
        return result

    def __repr__(self) -> str:
        return repr(self.__dict__)
