"""Utility modules for refswap."""

from refswap.utils.numbers import (
    ONLY_ZEROS,
    is_effectively_zero,
    percent_less,
    to_non_divisible_number,
    to_readable_number,
)

__all__ = [
    "ONLY_ZEROS",
    "is_effectively_zero",
    "percent_less",
    "to_non_divisible_number",
    "to_readable_number",
]
