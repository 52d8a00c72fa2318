"""Name and identifier normalization for Red Flags."""

from .names import (
    MAX_SUFFIX_PASSES,
    ORG_SUFFIXES,
    normalize_name,
    clean_ein,
    is_valid_ein,
)

__all__ = [
    "MAX_SUFFIX_PASSES",
    "ORG_SUFFIXES",
    "normalize_name",
    "clean_ein",
    "is_valid_ein",
]
