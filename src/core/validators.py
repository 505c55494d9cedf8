"""
FireChain - Input Validators
Shared checks for command inputs.
"""

from typing import Any

from src.core.exceptions import NotFoundError, ValidationError


def require_text(name: str, value: Any) -> str:
    """Return the stripped text, or raise ValidationError if empty."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be non-empty text", {name: value})
    return value.strip()


def require_actor(name: str, value: Any) -> str:
    """Actor identities are opaque non-empty strings."""
    return require_text(name, value)


def require_amount(name: str, value: Any) -> int:
    """Amounts are positive integers in the smallest token unit."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer amount", {name: value})
    if value <= 0:
        raise ValidationError(f"{name} must be positive", {name: value})
    return value


def require_record_id(kind: str, value: Any) -> int:
    """Ids are positive integers; anything else can never have been assigned."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{kind} id must be an integer", {"id": value})
    if value <= 0:
        raise NotFoundError(f"{kind} {value} not found", {"id": value})
    return value
