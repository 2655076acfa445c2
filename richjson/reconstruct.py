"""
Inverse walk: JSON payload + annotation -> value graph.

The Reconstructor walks the payload depth-first in the same order the Walker
produced it. At each path it:

1. if the path is listed in referentialEqualities, returns the object built
   at the canonical path (or a placeholder patched in later)
2. if the path has a type tag, rebuilds the payload's children and applies
   the kind's inverse transform
3. otherwise rebuilds lists and dicts structurally and returns primitives
   as they are

Mutable containers are registered under their path before their children
are rebuilt, so a child can refer back to any list, dict, set, map or
registered-class instance above it. Immutable values (tuple, frozenset,
Error, custom kinds) only exist once their children do; a reference to one of
those from inside itself can be patched into a mutable slot afterwards, but
not into the value's own payload.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from richjson.annotations import Meta
from richjson.config import CodecConfig
from richjson.errors import (
    DeserializationError,
    InvalidPathError,
    MaxDepthExceededError,
    MaxNodesExceededError,
    UnresolvedReferenceError,
)
from richjson.kinds import ContainerKind
from richjson.paths import ROOT, decode_path, join_path
from richjson.references import Placeholder, ReferenceResolver, ResolveHook
from richjson.registry import TypeRegistry
from richjson.walker import is_json_literal

logger = logging.getLogger(__name__)


class Reconstructor:
    """
    Deserializes one payload.

    Annotation paths are validated up front; after the walk, every annotated
    path must have been visited and every reference resolved.

    Args:
        registry: Registry used to resolve type tags.
        config: Depth and size limits.
        meta: The annotation, or None for plain JSON.
    """

    def __init__(self, registry: TypeRegistry, config: CodecConfig, meta: Optional[Meta]):
        self.registry = registry
        self.config = config
        self._values: dict[str, list[str]] = dict(meta.values or {}) if meta else {}

        references: dict[str, str] = {}
        equalities = (meta.referential_equalities or {}) if meta else {}
        for target, sources in equalities.items():
            decode_path(target)
            for source in sources:
                decode_path(source)
                if source == target:
                    raise InvalidPathError(source, "a path cannot refer to itself")
                references[source] = target
        for path in self._values:
            decode_path(path)

        # A hand-written chain (c -> b -> a) is followed to its end so every
        # reference points at a path that is built, not at another reference.
        for source in references:
            target = references[source]
            chain = {source}
            while target in references:
                if target in chain:
                    raise InvalidPathError(source, "reference chain loops back on itself")
                chain.add(target)
                target = references[target]
            references[source] = target

        self._resolver = ReferenceResolver(references)
        self._annotated = set(self._values) | set(references)
        self._visited: set[str] = set()
        self._nodes = 0

    def rebuild(self, payload: Any) -> Any:
        result = self._rebuild(payload, ROOT, 0)

        missing = [path for path in self._annotated if path not in self._visited]
        if missing:
            raise InvalidPathError(sorted(missing)[0], "annotated path does not exist in the payload")

        pending = self._resolver.pending()
        if pending:
            raise InvalidPathError(pending[0], "referenced path was never built")

        if self._resolver.deferred:
            logger.debug("Patched %d deferred references", self._resolver.deferred)
        return result

    def _rebuild(self, node: Any, path: str, depth: int) -> Any:
        if depth > self.config.max_depth:
            raise MaxDepthExceededError(path, self.config.max_depth)
        self._nodes += 1
        if self.config.max_nodes is not None and self._nodes > self.config.max_nodes:
            raise MaxNodesExceededError(path, self.config.max_nodes)

        target = self._resolver.target(path)
        if target is not None:
            self._visited.add(path)
            value = self._resolver.resolve(target)
            if not isinstance(value, Placeholder):
                self._resolver.materialize(path, value)
            return value

        tag = self._values.get(path)
        if tag is None:
            return self._rebuild_plain(node, path, depth, register=True)

        self._visited.add(path)
        kind = self.registry.lookup(tag)

        if isinstance(kind, ContainerKind):
            shell = kind.create(node)
            self._resolver.materialize(path, shell)
            kind.fill(
                shell,
                node,
                lambda child, *keys, on_resolve=None: self._child(
                    child, path, keys, depth, on_resolve
                ),
            )
            return shell

        # The raw payload is only input to the inverse transform, so it is
        # not registered and a placeholder inside it cannot be patched.
        raw = self._rebuild_plain(node, path, depth, register=False)
        value = kind.inverse(raw)
        self._resolver.materialize(path, value)
        return value

    def _rebuild_plain(self, node: Any, path: str, depth: int, register: bool) -> Any:
        if isinstance(node, list):
            result: list = []
            if register:
                self._resolver.materialize(path, result)

            for index, item in enumerate(node):

                def set_item(placeholder, value, index=index):
                    result[index] = value

                result.append(
                    self._child(item, path, (index,), depth, set_item if register else None)
                )
            return result

        if isinstance(node, dict):
            result_dict: dict = {}
            if register:
                self._resolver.materialize(path, result_dict)
            for key, item in node.items():

                def set_value(placeholder, value, key=key):
                    result_dict[key] = value

                result_dict[key] = self._child(
                    item, path, (key,), depth, set_value if register else None
                )
            return result_dict

        if is_json_literal(node):
            return node

        raise DeserializationError(
            f"Unexpected {type(node).__name__} in payload at path {path!r}; "
            f"payloads must contain only JSON values"
        )

    def _child(
        self,
        node: Any,
        parent: str,
        keys: tuple,
        depth: int,
        on_resolve: Optional[ResolveHook],
    ) -> Any:
        path = parent
        for key in keys:
            path = join_path(path, key)

        value = self._rebuild(node, path, depth + len(keys))
        if isinstance(value, Placeholder):
            if on_resolve is None:
                raise UnresolvedReferenceError(path, value.target)
            self._resolver.defer(value, on_resolve)
        return value
