"""
Identity tracking for shared and cyclic references.

ReferenceTracker is used while serializing: it maps id(obj) to the path at
which obj was first seen. ReferenceResolver is used while deserializing: it
maps canonical paths to the values rebuilt there and hands out those same
objects at every path recorded as referentially equal.

Both are created per call and discarded afterwards.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

# on_resolve(placeholder, value)
ResolveHook = Callable[[Any, Any], None]


class ReferenceTracker:
    """
    Maps object identity to the first path it was seen at.

    Objects are keyed by id(), never by value: two equal but distinct lists
    are two separate nodes.
    """

    def __init__(self):
        self._paths: dict[int, str] = {}
        # Keep references to every recorded object to prevent id() reuse.
        # Forward transforms create temporaries (e.g. [key, value] pairs for
        # maps) which would otherwise be freed mid-walk, letting a new object
        # inherit an id() that is still in the table.
        self._refs: list = []

    def seen(self, value: Any) -> Optional[str]:
        return self._paths.get(id(value))

    def record(self, value: Any, path: str) -> None:
        self._refs.append(value)
        self._paths[id(value)] = path

    def forget(self, value: Any) -> None:
        """Drop value from the table, used when only ancestors are tracked."""
        self._paths.pop(id(value), None)


class Placeholder:
    """Stands in for a referenced value that has not been built yet."""

    __slots__ = ("target",)

    def __init__(self, target: str):
        self.target = target

    def __repr__(self) -> str:
        return f"<Placeholder for {self.target!r}>"


class ReferenceResolver:
    """
    Rebuild-side counterpart of ReferenceTracker.

    Args:
        references: Mapping from every referring path to its canonical path,
            as read from referentialEqualities.

    A reference whose canonical path is already built resolves to that very
    object. Otherwise resolve() returns a Placeholder; the caller installs it
    and registers a hook with defer(), and the hook runs as soon as the
    canonical path is materialized.
    """

    def __init__(self, references: dict[str, str]):
        self._references = references
        self._canonical = set(references.values())
        self._values: dict[str, Any] = {}
        self._waiting: dict[str, list[tuple[Placeholder, ResolveHook]]] = {}
        self.deferred = 0

    def target(self, path: str) -> Optional[str]:
        """Canonical path that `path` refers to, if it is a reference."""
        return self._references.get(path)

    def materialize(self, path: str, value: Any) -> None:
        """Record the value built at path and patch anything waiting for it."""
        if path not in self._canonical:
            return
        self._values[path] = value
        for placeholder, hook in self._waiting.pop(path, ()):
            hook(placeholder, value)

    def resolve(self, target: str) -> Any:
        if target in self._values:
            return self._values[target]
        return Placeholder(target)

    def defer(self, placeholder: Placeholder, hook: ResolveHook) -> None:
        self.deferred += 1
        self._waiting.setdefault(placeholder.target, []).append((placeholder, hook))

    def pending(self) -> list[str]:
        """Canonical paths that were referenced but never built."""
        return list(self._waiting)
