"""
Exception classes for the postprocessing module.

This module defines custom exceptions used throughout the YOLACT postprocessing
pipeline to provide clear error messages and proper error handling.
"""

from dataclasses import dataclass
from typing import Optional, Any, Tuple


class PostprocessError(Exception):
    """
    Base exception class for postprocessing errors.

    This is the parent class for all postprocessing-related exceptions,
    providing a common interface for error handling.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize the postprocessing error.

        Args:
            message (str): Human-readable error message
            details (Optional[dict]): Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message}. Details: {self.details}"
        return self.message


class InvalidConfigError(PostprocessError):
    """
    Exception raised when a configuration value or call parameter is invalid.
    """

    def __init__(
        self,
        message: str,
        config_field: Optional[str] = None,
        provided_value: Optional[Any] = None,
    ):
        """
        Initialize the invalid configuration error.

        Args:
            message (str): Human-readable error message
            config_field (Optional[str]): Name of the invalid configuration field
            provided_value (Optional[Any]): The invalid value that was provided
        """
        details = {}
        if config_field:
            details["config_field"] = config_field
        if provided_value is not None:
            details["provided_value"] = provided_value

        super().__init__(message, details)
        self.config_field = config_field
        self.provided_value = provided_value


class MalformedFeedError(PostprocessError):
    """
    Exception raised when a raw output buffer does not match the anchor layout.

    The frame is failed instead of truncating or overflowing the flat arrays.
    """

    def __init__(
        self,
        message: str,
        tensor_name: Optional[str] = None,
        expected_shape: Optional[tuple] = None,
        actual_shape: Optional[tuple] = None,
    ):
        details = {}
        if tensor_name:
            details["tensor_name"] = tensor_name
        if expected_shape is not None:
            details["expected_shape"] = expected_shape
        if actual_shape is not None:
            details["actual_shape"] = actual_shape

        super().__init__(message, details)
        self.tensor_name = tensor_name
        self.expected_shape = expected_shape
        self.actual_shape = actual_shape


class CacheInvariantError(PostprocessError):
    """
    Raised when a detection refers to an anchor that was never decoded.

    This is a programming error, not a recoverable condition.
    """

    def __init__(self, message: str, anchor_index: Optional[int] = None):
        details = {}
        if anchor_index is not None:
            details["anchor_index"] = anchor_index

        super().__init__(message, details)
        self.anchor_index = anchor_index


@dataclass(frozen=True)
class UnknownTensorEvent:
    """A raw output buffer whose name is not in the binding table."""

    tensor_name: str
    shape: Tuple[int, ...]
