"""
Type registry and registration API.

The registry decides which ValueKind handles a value during serialization and
maps annotation tags back to kinds during deserialization. Detection order:

1. custom kinds registered with priority=True, most recent first
2. built-in kinds, in the fixed order of BUILTIN_KINDS
3. custom kinds, most recent first
4. registered classes (exact type match)
5. registered symbols (identity match)

Values matching none of these fall through to plain dict/list/primitive
handling in the walker.

Registering a second custom kind, class or symbol under an existing name
REPLACES the earlier one. This is the override mechanism (application code
can replace a library default) and is not reported as an error, so make
sure two libraries do not claim the same name with different transforms.

The module-level functions operate on `default_registry`, the process-wide
instance. Register everything before serializing: the registry is read
without locking, and mutating it while another thread walks a value is not
supported.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Iterable, Optional

from richjson.errors import UnknownTypeTagError
from richjson.kinds import (
    BigIntKind,
    ClassKind,
    CustomKind,
    DateKind,
    ErrorKind,
    FrozenSetKind,
    MapKind,
    NumberKind,
    RegExpKind,
    SetKind,
    SymbolKind,
    TupleKind,
    UndefinedKind,
    URLKind,
    ValueKind,
    builtin_exception,
)

logger = logging.getLogger(__name__)


# Built-in kinds, most specific first. ErrorKind needs the registry and is
# constructed per instance.
BUILTIN_KINDS: tuple[type[ValueKind], ...] = (
    UndefinedKind,
    BigIntKind,
    NumberKind,
    DateKind,
    RegExpKind,
    SetKind,
    FrozenSetKind,
    MapKind,
    ErrorKind,
    URLKind,
    TupleKind,
)


class TypeRegistry:
    """
    Ordered catalogue of value kinds.

    Tests and libraries that need isolation should create their own
    TypeRegistry and pass it to serialize()/deserialize() or to a Codec.

    Example:
        >>> registry = TypeRegistry()
        >>> registry.register_custom(
        ...     "decimal",
        ...     lambda v: isinstance(v, Decimal),
        ...     str,
        ...     Decimal,
        ... )
        >>> registry.register_class(Point)
        >>> registry.register_symbol(Color.RED)
    """

    def __init__(self):
        self._builtins: list[ValueKind] = [
            kind(self) if kind is ErrorKind else kind() for kind in BUILTIN_KINDS
        ]
        self._builtin_tags: dict[str, ValueKind] = {kind.tag: kind for kind in self._builtins}

        # Most recently registered first.
        self._priority_custom: list[CustomKind] = []
        self._custom: list[CustomKind] = []
        self._custom_by_name: dict[str, CustomKind] = {}

        self._classes_by_type: dict[type, ClassKind] = {}
        self._classes_by_name: dict[str, ClassKind] = {}

        self._symbols_by_id: dict[int, SymbolKind] = {}
        self._symbols_by_name: dict[str, SymbolKind] = {}

        self.error_props: list[str] = []

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_custom(
        self,
        name: str,
        is_applicable: Callable[[Any], bool],
        serialize: Callable[[Any], Any],
        deserialize: Callable[[Any], Any],
        *,
        priority: bool = False,
    ) -> CustomKind:
        """
        Register a custom kind.

        Args:
            name: Unique name written into annotations as ["custom", name].
                Reusing a name replaces the earlier registration.
            is_applicable: Predicate selecting the values this kind handles.
            serialize: Converts a value into a JSON-compatible payload.
            deserialize: Inverse of serialize.
            priority: If True, the kind is consulted before the built-in
                kinds, so it can take over e.g. a datetime subclass.

        Returns:
            The registered CustomKind.
        """
        previous = self._custom_by_name.pop(name, None)
        if previous is not None:
            logger.debug("Custom kind %r replaces an earlier registration", name)
            for tier in (self._priority_custom, self._custom):
                if previous in tier:
                    tier.remove(previous)

        kind = CustomKind(name, is_applicable, serialize, deserialize)
        self._custom_by_name[name] = kind
        (self._priority_custom if priority else self._custom).insert(0, kind)
        logger.debug("Registered custom kind %r (priority=%s)", name, priority)
        return kind

    def register_class(
        self,
        cls: type,
        name: Optional[str] = None,
        *,
        allow_props: Optional[Iterable[str]] = None,
    ) -> ClassKind:
        """
        Register a class so its instances serialize as ["class", name].

        Args:
            cls: The class. Only exact instances match, not subclasses.
            name: Name written into annotations. Defaults to cls.__name__.
            allow_props: If given, only these state keys are serialized.

        Returns:
            The registered ClassKind.
        """
        name = name or cls.__name__
        previous = self._classes_by_name.pop(name, None)
        if previous is not None:
            logger.debug("Class name %r replaces %r", name, previous.cls)
            self._classes_by_type.pop(previous.cls, None)
        stale = self._classes_by_type.pop(cls, None)
        if stale is not None:
            self._classes_by_name.pop(stale.name, None)

        kind = ClassKind(cls, name, frozenset(allow_props) if allow_props is not None else None)
        self._classes_by_type[cls] = kind
        self._classes_by_name[name] = kind
        logger.debug("Registered class %s.%s as %r", cls.__module__, cls.__qualname__, name)
        return kind

    def register_symbol(self, value: Any, name: Optional[str] = None) -> SymbolKind:
        """
        Register a singleton value (enum member, sentinel object).

        Args:
            value: The singleton. Matched by identity.
            name: Name written into annotations and used as the payload.
                Defaults to value.name for enum members.

        Returns:
            The registered SymbolKind.
        """
        if name is None:
            if not isinstance(value, enum.Enum):
                raise ValueError(f"A name is required to register symbol {value!r}")
            name = value.name

        previous = self._symbols_by_name.pop(name, None)
        if previous is not None:
            logger.debug("Symbol name %r replaces %r", name, previous.value)
            self._symbols_by_id.pop(id(previous.value), None)
        stale = self._symbols_by_id.pop(id(value), None)
        if stale is not None:
            self._symbols_by_name.pop(stale.name, None)

        kind = SymbolKind(value, name)
        self._symbols_by_id[id(value)] = kind
        self._symbols_by_name[name] = kind
        logger.debug("Registered symbol %r as %r", value, name)
        return kind

    def allow_error_props(self, *props: str) -> None:
        """Carry these exception attributes in Error payloads."""
        for prop in props:
            if prop not in self.error_props:
                self.error_props.append(prop)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find(self, value: Any) -> Optional[ValueKind]:
        """Return the first kind applicable to value, or None."""
        for kind in self._priority_custom:
            if kind.is_applicable(value):
                return kind
        for kind in self._builtins:
            if kind.is_applicable(value):
                return kind
        for kind in self._custom:
            if kind.is_applicable(value):
                return kind

        kind = self._classes_by_type.get(type(value))
        if kind is not None:
            return kind
        return self._symbols_by_id.get(id(value))

    def lookup(self, tag: list[str]) -> ValueKind:
        """
        Resolve an annotation tag to its kind.

        Raises:
            UnknownTypeTagError: If the tag is malformed or not registered.
        """
        if isinstance(tag, (list, tuple)):
            if len(tag) == 1 and tag[0] in self._builtin_tags:
                return self._builtin_tags[tag[0]]
            if len(tag) == 2:
                family, name = tag
                table = {
                    "custom": self._custom_by_name,
                    "class": self._classes_by_name,
                    "symbol": self._symbols_by_name,
                }.get(family)
                if table is not None and name in table:
                    return table[name]
        raise UnknownTypeTagError(list(tag) if isinstance(tag, (list, tuple)) else [tag], self.names())

    def names(self) -> list[str]:
        """All tags this registry can resolve, for error messages."""
        return (
            list(self._builtin_tags)
            + [f"custom:{name}" for name in self._custom_by_name]
            + [f"class:{name}" for name in self._classes_by_name]
            + [f"symbol:{name}" for name in self._symbols_by_name]
        )

    def class_name(self, cls: type) -> str:
        """Registered name of cls, falling back to its __name__."""
        kind = self._classes_by_type.get(cls)
        return kind.name if kind is not None else cls.__name__

    def error_class(self, name: str) -> type[BaseException]:
        """Exception class for an Error payload name."""
        kind = self._classes_by_name.get(name)
        if kind is not None and issubclass(kind.cls, BaseException):
            return kind.cls
        return builtin_exception(name) or Exception


# =============================================================================
# Process-wide Registry
# =============================================================================

default_registry = TypeRegistry()


def register_custom(
    name: str,
    is_applicable: Callable[[Any], bool],
    serialize: Callable[[Any], Any],
    deserialize: Callable[[Any], Any],
    *,
    priority: bool = False,
) -> CustomKind:
    """
    Register a custom kind on the default registry.

    Example:
        >>> from decimal import Decimal
        >>> register_custom(
        ...     "decimal",
        ...     lambda v: isinstance(v, Decimal),
        ...     lambda v: str(v),
        ...     lambda s: Decimal(s),
        ... )
    """
    return default_registry.register_custom(
        name, is_applicable, serialize, deserialize, priority=priority
    )


def register_class(
    cls: type,
    name: Optional[str] = None,
    *,
    allow_props: Optional[Iterable[str]] = None,
) -> ClassKind:
    """Register a class on the default registry."""
    return default_registry.register_class(cls, name, allow_props=allow_props)


def register_symbol(value: Any, name: Optional[str] = None) -> SymbolKind:
    """Register a singleton value on the default registry."""
    return default_registry.register_symbol(value, name)


def allow_error_props(*props: str) -> None:
    """
    Carry these exception attributes in Error payloads on the default registry.

    Example:
        >>> allow_error_props("code", "status")
    """
    default_registry.allow_error_props(*props)
