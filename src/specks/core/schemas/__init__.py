"""Bundled JSON Schema validation."""
from __future__ import annotations

from .validation import SchemaValidationError, iter_validation_errors, load_schema, validate_payload

__all__ = ["SchemaValidationError", "iter_validation_errors", "load_schema", "validate_payload"]
