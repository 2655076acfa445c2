"""
Exception types raised by the richjson codec.

Every error derives from RichJSONError, which is itself a ValueError so that
callers catching ValueError around a serialize/deserialize call keep working.

Serialization errors:
    UnsupportedTypeError: a value matches no registered kind.
    CircularReferenceError: a cycle was found with reference tracking off.
    MaxDepthExceededError / MaxNodesExceededError: configured limits hit.

Deserialization errors:
    UnknownTypeTagError: the annotation names a kind this registry lacks.
    InvalidPathError: an annotation path is malformed or absent from the payload.
    UnresolvedReferenceError: a cyclic reference passes through a value that
        can only be built after its children (tuple, custom kind, ...).
"""

from __future__ import annotations

from typing import Any


def _describe_path(path: str) -> str:
    return "<root>" if path == "" else repr(path)


class RichJSONError(ValueError):
    """Base class for all codec errors."""


# =============================================================================
# Serialization
# =============================================================================


class SerializationError(RichJSONError):
    """Raised when a value graph cannot be turned into a payload."""


class UnsupportedTypeError(SerializationError):
    """Raised when a value matches no registry entry and is not plain JSON."""

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value_type = type(value)
        qualname = f"{self.value_type.__module__}.{self.value_type.__qualname__}"
        super().__init__(
            f"Unsupported type {qualname} at path {_describe_path(path)}.\n"
            f"\n"
            f"Register it before serializing, for example:\n"
            f"  richjson.register_class({self.value_type.__name__})\n"
            f"or\n"
            f"  richjson.register_custom(name, is_applicable, serialize, deserialize)"
        )


class CircularReferenceError(SerializationError):
    """Raised on a cycle when reference tracking is disabled."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Circular reference detected at path {_describe_path(path)} "
            f"while reference tracking is disabled.\n"
            f"Enable CodecConfig.track_references to serialize cyclic graphs."
        )


class MaxDepthExceededError(SerializationError):
    """Raised when nesting exceeds CodecConfig.max_depth."""

    def __init__(self, path: str, max_depth: int):
        self.path = path
        self.max_depth = max_depth
        super().__init__(
            f"Maximum nesting depth {max_depth} exceeded at path {_describe_path(path)}"
        )


class MaxNodesExceededError(SerializationError):
    """Raised when a walk visits more than CodecConfig.max_nodes values."""

    def __init__(self, path: str, max_nodes: int):
        self.path = path
        self.max_nodes = max_nodes
        super().__init__(
            f"Maximum node count {max_nodes} exceeded at path {_describe_path(path)}"
        )


# =============================================================================
# Deserialization
# =============================================================================


class DeserializationError(RichJSONError):
    """Raised when a payload and annotation cannot be turned back into values."""


class UnknownTypeTagError(DeserializationError):
    """Raised when an annotation names a kind the registry does not know."""

    def __init__(self, tag: list[str], available: list[str] | None = None):
        self.tag = list(tag)
        message = f"Unknown type tag {self.tag!r}."
        if available:
            message += f" Available kinds: {available}"
        if self.tag and self.tag[0] in ("custom", "class", "symbol"):
            message += (
                f"\nThe payload was produced by a process that registered "
                f"{self.tag[0]} {self.tag[-1]!r}; register it here before deserializing."
            )
        super().__init__(message)


class InvalidPathError(DeserializationError):
    """Raised for malformed annotation paths or paths missing from the payload."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid path {_describe_path(path)}: {reason}")


class UnresolvedReferenceError(DeserializationError):
    """Raised when a cyclic reference cannot be re-linked."""

    def __init__(self, path: str, target: str):
        self.path = path
        self.target = target
        super().__init__(
            f"Reference at path {_describe_path(path)} points to "
            f"{_describe_path(target)}, which is still being built and is "
            f"consumed by a value that can only be created after its contents.\n"
            f"Cycles must pass through a mutable container (list, dict, set) "
            f"or a registered class instance."
        )
