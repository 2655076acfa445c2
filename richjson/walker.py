"""
Forward walk: value graph -> JSON payload + annotation.

The Walker visits a value depth-first. At each node it:

1. asks the registry for an applicable kind
2. for values with identity (containers, objects), checks the
   ReferenceTracker; a repeat becomes a referentialEqualities entry with a
   null placeholder in the payload and is not walked again
3. applies the kind's forward transform and records its tag at the current
   path, then walks the children of the transformed payload
4. otherwise copies plain dicts and lists, walking their children, and
   passes JSON primitives through unchanged

Anything else is an UnsupportedTypeError naming the path.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from richjson.annotations import AnnotationBuilder, Meta
from richjson.config import CodecConfig
from richjson.errors import (
    CircularReferenceError,
    MaxDepthExceededError,
    MaxNodesExceededError,
    SerializationError,
    UnsupportedTypeError,
)
from richjson.kinds import ValueKind
from richjson.paths import ROOT, join_path
from richjson.references import ReferenceTracker
from richjson.registry import TypeRegistry

JSON_PRIMITIVES = (str, bool, int, float, type(None))


def is_json_literal(value: Any) -> bool:
    """True for values JSON text carries exactly as-is."""
    # Subclasses (IntEnum members, str enums) would come back as their base
    # type, so only the exact types count.
    if type(value) is float:
        return math.isfinite(value)
    return type(value) in JSON_PRIMITIVES


class Walker:
    """
    Serializes one value graph.

    A Walker holds the per-call state (reference table, annotation entries,
    node count) and must not be reused across calls.

    Example:
        >>> payload, meta = Walker(registry, config).walk({"a": {1, 2}})
        >>> payload
        {'a': [1, 2]}
        >>> meta.values
        {'a': ['set']}
    """

    def __init__(self, registry: TypeRegistry, config: CodecConfig):
        self.registry = registry
        self.config = config
        self.tracker = ReferenceTracker()
        self.annotations = AnnotationBuilder()
        self._nodes = 0

    def walk(self, value: Any) -> tuple[Any, Optional[Meta]]:
        payload = self._walk(value, ROOT, 0)
        return payload, self.annotations.build()

    def _walk(self, value: Any, path: str, depth: int) -> Any:
        if depth > self.config.max_depth:
            raise MaxDepthExceededError(path, self.config.max_depth)
        self._nodes += 1
        if self.config.max_nodes is not None and self._nodes > self.config.max_nodes:
            raise MaxNodesExceededError(path, self.config.max_nodes)

        kind = self.registry.find(value)

        # Primitives are compared by value; a custom kind matching strs must
        # not merge equal strings into references.
        if kind is not None:
            tracked = kind.tracks_identity and not isinstance(value, JSON_PRIMITIVES)
        else:
            tracked = type(value) in (dict, list)

        if not tracked:
            return self._transform(value, kind, path, depth)

        first_path = self.tracker.seen(value)
        if first_path is not None:
            if not self.config.track_references:
                raise CircularReferenceError(path)
            self.annotations.add_reference(path, first_path)
            return None

        self.tracker.record(value, path)
        result = self._transform(value, kind, path, depth)
        if not self.config.track_references:
            # Only ancestors stay in the table: shared sub-graphs are written
            # again and only a true cycle is reported.
            self.tracker.forget(value)
        return result

    def _transform(self, value: Any, kind: Optional[ValueKind], path: str, depth: int) -> Any:
        if kind is not None:
            self.annotations.add_value(path, kind.annotation())
            return self._walk_payload(kind.forward(value), kind, path, depth)

        if type(value) is dict:
            return {
                key: self._walk(item, join_path(path, key), depth + 1)
                for key, item in value.items()
            }

        if type(value) is list:
            return [
                self._walk(item, join_path(path, index), depth + 1)
                for index, item in enumerate(value)
            ]

        if is_json_literal(value):
            return value

        raise UnsupportedTypeError(path, value)

    def _walk_payload(self, payload: Any, kind: ValueKind, path: str, depth: int) -> Any:
        """Walk the children of a forward-transformed payload."""
        if isinstance(payload, list):
            return [
                self._walk(item, join_path(path, index), depth + 1)
                for index, item in enumerate(payload)
            ]

        if isinstance(payload, dict):
            result = {}
            for key, item in payload.items():
                if not isinstance(key, str):
                    raise SerializationError(
                        f"{kind!r} produced a non-str key {key!r} at path {path!r}; "
                        f"forward transforms must return JSON-compatible values"
                    )
                result[key] = self._walk(item, join_path(path, key), depth + 1)
            return result

        if is_json_literal(payload):
            return payload

        raise SerializationError(
            f"{kind!r} produced {type(payload).__name__} at path {path!r}; "
            f"forward transforms must return JSON-compatible values"
        )
