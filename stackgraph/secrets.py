"""Secret-marked values.

A ``Secret`` never renders its payload through ``repr``, ``str`` or format
strings. Callers that genuinely need the payload (writing a kubeconfig file,
``outputs --show-secrets``) must call ``reveal()`` explicitly.
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")

MASK = "[SECRET]"


class Secret(Generic[T]):
    """Opaque wrapper around a sensitive value."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        self._value = value

    def reveal(self) -> T:
        """Return the wrapped value."""
        return self._value

    def __repr__(self) -> str:
        return f"Secret({MASK})"

    def __str__(self) -> str:
        return MASK

    def __format__(self, format_spec: str) -> str:
        return MASK

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return NotImplemented
        return bool(self._value == other._value)

    def __hash__(self) -> int:
        return hash((Secret, self._value))

    def __bool__(self) -> bool:
        return bool(self._value)


def mask(value: object) -> object:
    """Return ``MASK`` for secret values, the value unchanged otherwise."""
    if isinstance(value, Secret):
        return MASK
    return value
