"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type and shape
constraints before an instance escapes its constructor.
"""

from __future__ import annotations

import re
from typing import Any

from .constants import EVENT_KIND_MAX


_HEX64 = re.compile(r"[0-9a-f]{64}")
_HEX128 = re.compile(r"[0-9a-f]{128}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_kind(value: Any, name: str) -> None:
    """Raise if *value* is not an ``int`` in the event kind range 0..EVENT_KIND_MAX."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if not 0 <= value <= EVENT_KIND_MAX:
        raise ValueError(f"{name} must be between 0 and {EVENT_KIND_MAX}, got {value}")


def validate_str(value: Any, name: str) -> None:
    """Raise ``TypeError`` if *value* is not a ``str``."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str``."""
    validate_str(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def validate_hex64(value: Any, name: str) -> None:
    """Raise if *value* is not 64 lowercase hex characters (ids, pubkeys)."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if not _HEX64.fullmatch(value):
        raise ValueError(f"{name} must be 64 lowercase hex characters")


def validate_hex128(value: Any, name: str) -> None:
    """Raise if *value* is not 128 lowercase hex characters (signatures)."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if not _HEX128.fullmatch(value):
        raise ValueError(f"{name} must be 128 lowercase hex characters")


def freeze_tags(value: Any, name: str) -> tuple[tuple[str, ...], ...]:
    """Convert a sequence of string sequences into nested tuples.

    Raises:
        TypeError: If *value* is not a list/tuple of lists/tuples of ``str``.
    """
    if not isinstance(value, list | tuple):
        raise TypeError(f"{name} must be a list of lists, got {type(value).__name__}")
    frozen: list[tuple[str, ...]] = []
    for i, tag in enumerate(value):
        if not isinstance(tag, list | tuple):
            raise TypeError(f"{name}[{i}] must be a list, got {type(tag).__name__}")
        for item in tag:
            validate_str(item, f"{name}[{i}]")
        frozen.append(tuple(tag))
    return tuple(frozen)
