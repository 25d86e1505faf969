from .core import CALLBACK_REGISTRY, CallbackRegistry, CallbackType

__all__ = ["CALLBACK_REGISTRY", "CallbackRegistry", "CallbackType"]
