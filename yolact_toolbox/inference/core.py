from typing import Any, Callable, Dict, Type, Union
from enum import Enum
import logging


logger = logging.getLogger(__name__)


class CallbackType(Enum):
    """Pipeline stages that can be looked up by name"""

    POST_PROCESSOR = "post_processor"
    VISUALIZER = "visualizer"


def empty_callback(args) -> Any:
    """Stand-in for an unregistered stage; passes its input through"""
    return args


class CallbackRegistry:
    """
    Name -> class table for the postprocessor and visualizer of a model family.

    Example:
        @CALLBACK_REGISTRY.registryPostProcessor("yolact", "yolact_resnet50")
        class YolactPostprocessor:
            ...

        postprocessor_cls = CALLBACK_REGISTRY.getPostProcessor("yolact")
    """

    def __init__(self):
        self._callbacks: Dict[CallbackType, Dict[str, Union[Callable, Type]]] = {
            callback_type: {} for callback_type in CallbackType
        }

    def register(self, callback_type: CallbackType, *names: str) -> Callable:
        """
        Decorator storing the decorated class or function under every name.

        Raises:
            ValueError: If callback_type is not a CallbackType or no name is given
            TypeError: If a name is not a string or the target is not callable
        """
        if not isinstance(callback_type, CallbackType):
            raise ValueError(f"Invalid callback type: {callback_type}")
        if not names:
            raise ValueError("At least one name must be provided")
        for name in names:
            if not isinstance(name, str):
                raise TypeError(f"Callback names must be strings, got {type(name)}")

        def decorator(target: Union[Callable, Type]) -> Union[Callable, Type]:
            if not callable(target):
                raise TypeError(f"Cannot register non-callable {type(target)}")
            table = self._callbacks[callback_type]
            for name in names:
                if name in table:
                    logger.warning(f"Replacing {callback_type.value} '{name}'")
                table[name] = target
            logger.debug(f"Registered {callback_type.value} under {list(names)}")
            return target

        return decorator

    def get_callback(self, name: str, callback_type: CallbackType) -> Union[Callable, Type]:
        """Registered entry for name, or empty_callback when there is none."""
        return self._callbacks[callback_type].get(name, empty_callback)

    def has_callback(self, name: str, callback_type: CallbackType) -> bool:
        return name in self._callbacks[callback_type]

    def registryPostProcessor(self, *names: str) -> Callable:
        return self.register(CallbackType.POST_PROCESSOR, *names)

    def registryVisualizer(self, *names: str) -> Callable:
        return self.register(CallbackType.VISUALIZER, *names)

    def getPostProcessor(self, name: str) -> Callable:
        return self.get_callback(name, CallbackType.POST_PROCESSOR)

    def getVisualizer(self, name: str) -> Callable:
        return self.get_callback(name, CallbackType.VISUALIZER)


# Global registry instance
CALLBACK_REGISTRY = CallbackRegistry()
