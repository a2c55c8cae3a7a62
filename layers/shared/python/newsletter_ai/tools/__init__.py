"""Tool descriptors, validation and dispatch for model-driven actions."""

from __future__ import annotations

from .registry import DuplicateToolError, PreparedCall, ToolRegistry, ToolSignature, ToolSpec
from .validation import ArgumentValidator, ValidationResult, validate_arguments

__all__ = [
    "ArgumentValidator",
    "DuplicateToolError",
    "PreparedCall",
    "ToolRegistry",
    "ToolSignature",
    "ToolSpec",
    "ValidationResult",
    "validate_arguments",
]
