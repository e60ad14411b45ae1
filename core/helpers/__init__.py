"""Shared helper utilities for record parsing."""

from .validation import finite_float, optional_bool, optional_float, parse_timestamp

__all__ = [
    "finite_float",
    "optional_bool",
    "optional_float",
    "parse_timestamp",
]
