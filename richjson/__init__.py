"""
richjson - lossless JSON for rich Python values.

This library turns Python values into a plain JSON payload plus a small
annotation describing how to undo the conversion, preserving:

- UNDEFINED, big integers, NaN/Infinity/-0.0
- datetimes, compiled regular expressions, pydantic URLs
- sets, frozensets, tuples and dicts with non-str keys
- exceptions
- shared references and cycles (object identity)
- user-registered custom kinds, classes and symbols

Values made only of JSON types serialize to exactly {"json": value}, so
richjson output stays readable by any JSON consumer.

Basic Usage:
    >>> from richjson import serialize, deserialize, stringify, parse
    >>> from datetime import datetime
    >>>
    >>> envelope = serialize({"when": datetime(2024, 1, 1), "tags": {"a"}})
    >>> envelope.payload
    {'when': '2024-01-01T00:00:00', 'tags': ['a']}
    >>> envelope.meta.values
    {'when': ['Date'], 'tags': ['set']}
    >>>
    >>> deserialize(envelope.payload, envelope.meta)
    {'when': datetime.datetime(2024, 1, 1, 0, 0), 'tags': {'a'}}
    >>>
    >>> # Or go through JSON text directly
    >>> text = stringify([1, 2, 3])
    >>> text
    '{"json":[1,2,3]}'
    >>> parse(text)
    [1, 2, 3]

Shared references:
    >>> shared = {"x": 1}
    >>> result = parse(stringify({"a": shared, "b": shared}))
    >>> result["a"] is result["b"]
    True

To add support for new types:
    >>> from decimal import Decimal
    >>> from richjson import register_custom, register_class, register_symbol
    >>>
    >>> register_custom(
    ...     "decimal",
    ...     lambda v: isinstance(v, Decimal),
    ...     lambda v: str(v),
    ...     lambda s: Decimal(s),
    ... )
    >>> register_class(Point)          # instances rebuilt from their __dict__
    >>> register_symbol(Color.RED)     # enum members and sentinels

Registrations are process-wide and a later registration under the same name
replaces an earlier one. For isolated settings, use a Codec with its own
TypeRegistry:
    >>> from richjson import Codec, TypeRegistry
    >>> from richjson.config import CodecConfig
    >>>
    >>> codec = Codec(TypeRegistry(), CodecConfig(max_depth=20))
    >>> codec.parse(codec.stringify(value))
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from richjson.annotations import AnnotationBuilder, Envelope, Meta
from richjson.config import DEFAULT_CONFIG, CodecConfig
from richjson.errors import (
    CircularReferenceError,
    DeserializationError,
    InvalidPathError,
    MaxDepthExceededError,
    MaxNodesExceededError,
    RichJSONError,
    SerializationError,
    UnknownTypeTagError,
    UnresolvedReferenceError,
    UnsupportedTypeError,
)
from richjson.kinds import UNDEFINED, Undefined
from richjson.paths import decode_path, encode_path
from richjson.reconstruct import Reconstructor
from richjson.registry import (
    TypeRegistry,
    allow_error_props,
    default_registry,
    register_class,
    register_custom,
    register_symbol,
)
from richjson.walker import Walker


class Codec:
    """
    A registry and a config bound together.

    The module-level functions use a Codec over `default_registry` and
    `DEFAULT_CONFIG`; create your own to isolate registrations or limits.

    Attributes:
        registry: TypeRegistry consulted in both directions.
        config: CodecConfig applied to every call.
    """

    def __init__(
        self,
        registry: Optional[TypeRegistry] = None,
        config: Optional[CodecConfig] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.config = config if config is not None else DEFAULT_CONFIG

    def serialize(self, value: Any) -> Envelope:
        """
        Convert a value into a JSON payload and its annotation.

        Raises:
            UnsupportedTypeError: If some value matches no registered kind.
            CircularReferenceError: On a cycle with track_references off.
            MaxDepthExceededError, MaxNodesExceededError: On limit overrun.
        """
        payload, meta = Walker(self.registry, self.config).walk(value)
        return Envelope(payload=payload, meta=meta)

    def deserialize(self, payload: Any, annotation: Union[Meta, dict, None] = None) -> Any:
        """
        Rebuild a value from a payload and its annotation.

        Args:
            payload: The JSON payload (the "json" member of the envelope).
            annotation: The Meta from serialize(), its wire-form dict, or
                None for plain JSON.

        Raises:
            UnknownTypeTagError: If a type tag is not registered here.
            InvalidPathError: If an annotation path is malformed or missing
                from the payload.
            UnresolvedReferenceError: If a cycle cannot be re-linked.
            pydantic.ValidationError: If the annotation dict is malformed.
        """
        if annotation is not None and not isinstance(annotation, Meta):
            annotation = Meta.model_validate(annotation)
        return Reconstructor(self.registry, self.config, annotation).rebuild(payload)

    def stringify(self, value: Any) -> str:
        """serialize() then encode the envelope as JSON text."""
        return self.serialize(value).dump_json()

    def parse(self, text: Union[str, bytes]) -> Any:
        """Decode JSON text produced by stringify() and deserialize it."""
        envelope = Envelope.model_validate(json.loads(text))
        return self.deserialize(envelope.payload, envelope.meta)


def serialize(
    value: Any,
    *,
    registry: Optional[TypeRegistry] = None,
    config: Optional[CodecConfig] = None,
) -> Envelope:
    """
    Serialize a value to an Envelope.

    The Envelope's payload is plain JSON data and its meta holds the
    annotation (None when the value is plain JSON already). Use
    Envelope.dump_json() or stringify() for text.

    Example:
        >>> envelope = serialize({"n": float("nan")})
        >>> envelope.payload, envelope.meta.values
        ({'n': 'NaN'}, {'n': ['number']})
    """
    return Codec(registry, config).serialize(value)


def deserialize(
    payload: Any,
    annotation: Union[Meta, dict, None] = None,
    *,
    registry: Optional[TypeRegistry] = None,
    config: Optional[CodecConfig] = None,
) -> Any:
    """
    Deserialize a payload and annotation back to the original value.

    Example:
        >>> envelope = serialize([{1, 2}])
        >>> deserialize(envelope.payload, envelope.meta)
        [{1, 2}]
        >>> deserialize({"a": [1]})
        {'a': [1]}
    """
    return Codec(registry, config).deserialize(payload, annotation)


def stringify(
    value: Any,
    *,
    registry: Optional[TypeRegistry] = None,
    config: Optional[CodecConfig] = None,
) -> str:
    """Serialize a value straight to JSON text: {"json": ..., "meta": ...}."""
    return Codec(registry, config).stringify(value)


def parse(
    text: Union[str, bytes],
    *,
    registry: Optional[TypeRegistry] = None,
    config: Optional[CodecConfig] = None,
) -> Any:
    """Inverse of stringify()."""
    return Codec(registry, config).parse(text)


__all__ = [
    # Core API
    "serialize",
    "deserialize",
    "stringify",
    "parse",
    "Codec",
    "Envelope",
    "Meta",
    # Registration
    "TypeRegistry",
    "default_registry",
    "register_custom",
    "register_class",
    "register_symbol",
    "allow_error_props",
    # Values
    "UNDEFINED",
    "Undefined",
    # Configuration
    "CodecConfig",
    "DEFAULT_CONFIG",
    # Paths
    "encode_path",
    "decode_path",
    "AnnotationBuilder",
    # Errors
    "RichJSONError",
    "SerializationError",
    "DeserializationError",
    "UnsupportedTypeError",
    "CircularReferenceError",
    "MaxDepthExceededError",
    "MaxNodesExceededError",
    "UnknownTypeTagError",
    "InvalidPathError",
    "UnresolvedReferenceError",
]
