"""
Value kind definitions for the richjson codec.

Each ValueKind subclass handles one kind of Python value that plain JSON
cannot carry:

- UndefinedKind: the UNDEFINED marker
- BigIntKind: ints outside the IEEE-754 safe integer range
- NumberKind: NaN, +inf, -inf and -0.0
- DateKind: datetime.datetime
- RegExpKind: compiled re.Pattern objects
- SetKind, FrozenSetKind: unordered unique collections
- MapKind: dicts with at least one non-str key
- ErrorKind: exception instances
- URLKind: pydantic AnyUrl
- TupleKind: tuples
- CustomKind, ClassKind, SymbolKind: user registrations

Each kind provides:
- is_applicable(): detection predicate consulted by the registry
- forward(): converts a value into a JSON-compatible payload, possibly a
  container whose children are walked again
- inverse(): rebuilds the value from its reconstructed payload

Container kinds (SetKind, MapKind, ClassKind) build an empty shell first and
fill it afterwards, so a child may refer back to the shell while it is being
populated.

Apart from ErrorKind, built-in kinds match exact types. A subclass (an OrderedDict, a namedtuple, a
datetime subclass) would come back as its base type, so it matches nothing
until it is registered.
"""

from __future__ import annotations

import builtins
import math
import re
from datetime import datetime
from typing import Any, Callable, ClassVar, Optional, TYPE_CHECKING

from pydantic import AnyUrl

from richjson.errors import DeserializationError, SerializationError
from richjson.references import Placeholder

if TYPE_CHECKING:
    from richjson.registry import TypeRegistry


# =============================================================================
# Undefined Marker
# =============================================================================


class Undefined:
    """
    Marker for an absent value.

    Unlike None, which serializes to JSON null, UNDEFINED round-trips as
    itself, so a dict entry holding it keeps its key.
    """

    _instance: ClassVar[Optional["Undefined"]] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return "UNDEFINED"


UNDEFINED = Undefined()


# =============================================================================
# Base Classes
# =============================================================================

# Largest integer a double can hold exactly; JSON readers outside Python
# silently round anything larger.
MAX_SAFE_INTEGER = 2**53 - 1

# Callback used by container kinds to rebuild one child payload. It takes the
# child node, the child's key(s) relative to the container, and an optional
# on_resolve(placeholder, value) hook. When the child is a reference to a
# value still being built, the builder returns a placeholder and calls the
# hook once the real value exists; without a hook such a reference is an
# error.
ChildBuilder = Callable[..., Any]


class ValueKind:
    """
    Abstract base class for all value kinds.

    Subclasses set `tag` and implement is_applicable(), forward() and
    inverse(). `tracks_identity` marks kinds whose values are objects with
    identity worth preserving; scalar kinds leave it False.
    """

    tag: ClassVar[str]
    tracks_identity: ClassVar[bool] = False

    def annotation(self) -> list[str]:
        """The type tag written into the annotation for this kind."""
        return [self.tag]

    def is_applicable(self, value: Any) -> bool:
        raise NotImplementedError

    def forward(self, value: Any) -> Any:
        raise NotImplementedError

    def inverse(self, payload: Any) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.annotation()!r}>"


class ContainerKind(ValueKind):
    """
    A kind rebuilt in two steps: create() returns an empty shell which is
    registered under its path, then fill() rebuilds the children into it.
    """

    tracks_identity = True

    def create(self, payload: Any) -> Any:
        raise NotImplementedError

    def fill(self, shell: Any, payload: Any, child: ChildBuilder) -> None:
        raise NotImplementedError


def _expect(payload: Any, expected: type, kind: str) -> None:
    if not isinstance(payload, expected):
        raise DeserializationError(
            f"{kind} payload must be {expected.__name__}, got {type(payload).__name__}"
        )


# =============================================================================
# Scalar Kinds
# =============================================================================


class UndefinedKind(ValueKind):
    tag = "undefined"

    def is_applicable(self, value):
        return value is UNDEFINED

    def forward(self, value):
        return None

    def inverse(self, payload):
        return UNDEFINED


class BigIntKind(ValueKind):
    """
    Integers beyond +/-(2**53 - 1).

    Python ints are already arbitrary precision, but other JSON readers are
    not; these are carried as decimal strings.
    """

    tag = "bigint"

    def is_applicable(self, value):
        return type(value) is int and abs(value) > MAX_SAFE_INTEGER

    def forward(self, value):
        return str(int(value))

    def inverse(self, payload):
        _expect(payload, str, "bigint")
        try:
            return int(payload)
        except ValueError as e:
            raise DeserializationError(f"Malformed bigint payload {payload!r}") from e


class NumberKind(ValueKind):
    """Floats with no JSON spelling: NaN, the infinities and negative zero."""

    tag = "number"

    _SPELLINGS: ClassVar[dict[str, float]] = {
        "NaN": math.nan,
        "Infinity": math.inf,
        "-Infinity": -math.inf,
        "-0": -0.0,
    }

    def is_applicable(self, value):
        if type(value) is not float:
            return False
        if math.isnan(value) or math.isinf(value):
            return True
        return value == 0.0 and math.copysign(1.0, value) < 0

    def forward(self, value):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return "-0"

    def inverse(self, payload):
        if not isinstance(payload, str) or payload not in self._SPELLINGS:
            raise DeserializationError(f"Unknown special number {payload!r}")
        return self._SPELLINGS[payload]


class DateKind(ValueKind):
    """
    datetime.datetime values, carried as ISO 8601 strings.

    Naive datetimes stay naive and aware ones keep their UTC offset. A
    trailing "Z" is accepted on input.
    """

    tag = "Date"

    def is_applicable(self, value):
        return type(value) is datetime

    def forward(self, value):
        return value.isoformat()

    def inverse(self, payload):
        _expect(payload, str, "Date")
        if payload.endswith("Z"):
            payload = payload[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(payload)
        except ValueError as e:
            raise DeserializationError(f"Malformed Date payload {payload!r}") from e


class RegExpKind(ValueKind):
    """
    Compiled str patterns, carried as "/source/flags".

    Flag letters: a (ASCII), i (IGNORECASE), m (MULTILINE), s (DOTALL),
    x (VERBOSE). Unicode matching is the default for str patterns and is
    not written out.
    """

    tag = "regexp"

    _FLAGS: ClassVar[tuple[tuple[str, re.RegexFlag], ...]] = (
        ("a", re.ASCII),
        ("i", re.IGNORECASE),
        ("m", re.MULTILINE),
        ("s", re.DOTALL),
        ("x", re.VERBOSE),
    )

    def is_applicable(self, value):
        return isinstance(value, re.Pattern) and isinstance(value.pattern, str)

    def forward(self, value):
        flags = "".join(letter for letter, flag in self._FLAGS if value.flags & flag)
        return f"/{value.pattern}/{flags}"

    def inverse(self, payload):
        _expect(payload, str, "regexp")
        end = payload.rfind("/")
        if not payload.startswith("/") or end <= 0:
            raise DeserializationError(f"Malformed regexp payload {payload!r}")

        flags = 0
        lookup = dict(self._FLAGS)
        for letter in payload[end + 1:]:
            if letter not in lookup:
                raise DeserializationError(f"Unknown regexp flag {letter!r}")
            flags |= lookup[letter]
        try:
            return re.compile(payload[1:end], flags)
        except re.error as e:
            raise DeserializationError(f"Invalid regexp payload {payload!r}: {e}") from e


class URLKind(ValueKind):
    """
    pydantic AnyUrl values, carried as their string form.

    Only AnyUrl itself matches. Subclasses such as HttpUrl validate and
    compare differently, so they need their own custom kind.
    """

    tag = "URL"

    def is_applicable(self, value):
        return type(value) is AnyUrl

    def forward(self, value):
        return str(value)

    def inverse(self, payload):
        _expect(payload, str, "URL")
        try:
            return AnyUrl(payload)
        except ValueError as e:
            raise DeserializationError(f"Malformed URL payload {payload!r}") from e


# =============================================================================
# Collection Kinds
# =============================================================================


class SetKind(ContainerKind):
    """
    set values, carried as a list of their elements.

    Elements are walked in iteration order; the rebuilt set is registered
    before its elements so references to it from inside resolve directly.
    """

    tag = "set"

    def is_applicable(self, value):
        return type(value) is set

    def forward(self, value):
        return list(value)

    def create(self, payload):
        _expect(payload, list, "set")
        return set()

    def fill(self, shell, payload, child):
        def resolve(placeholder, value):
            shell.discard(placeholder)
            shell.add(value)

        for index, node in enumerate(payload):
            shell.add(child(node, index, on_resolve=resolve))


class FrozenSetKind(ValueKind):
    tag = "frozenset"
    tracks_identity = True

    def is_applicable(self, value):
        return type(value) is frozenset

    def forward(self, value):
        return list(value)

    def inverse(self, payload):
        _expect(payload, list, "frozenset")
        return frozenset(payload)


class TupleKind(ValueKind):
    """
    tuple values, carried as lists.

    Tuples are immutable, so they are created only after all their elements
    have been rebuilt.
    """

    tag = "tuple"
    tracks_identity = True

    def is_applicable(self, value):
        return type(value) is tuple

    def forward(self, value):
        return list(value)

    def inverse(self, payload):
        _expect(payload, list, "tuple")
        return tuple(payload)


class MapKind(ContainerKind):
    """
    dicts with any non-str key, carried as a list of [key, value] pairs.

    dicts whose keys are all str are plain JSON objects and never reach
    this kind. Values may refer back to a map still being filled; keys may
    not, since an unfinished key has no stable hash.
    """

    tag = "map"

    def is_applicable(self, value):
        return type(value) is dict and any(type(key) is not str for key in value)

    def forward(self, value):
        return [[key, item] for key, item in value.items()]

    def create(self, payload):
        _expect(payload, list, "map")
        return {}

    def fill(self, shell, payload, child):
        for index, pair in enumerate(payload):
            if not isinstance(pair, list) or len(pair) != 2:
                raise DeserializationError(
                    f"map entries must be [key, value] pairs, got {pair!r}"
                )

            key = child(pair[0], index, 0)

            def resolve(placeholder, value, key=key):
                shell[key] = value

            shell[key] = child(pair[1], index, 1, on_resolve=resolve)


# =============================================================================
# Error Kind
# =============================================================================


class ErrorKind(ValueKind):
    """
    Exception instances, carried as {"name": ..., "message": ...}.

    Attributes listed through TypeRegistry.allow_error_props() are added to
    the payload. On the way back the exception class is found among
    registered classes first, then builtins; anything else becomes a plain
    Exception.
    """

    tag = "Error"
    tracks_identity = True

    def __init__(self, registry: TypeRegistry):
        self.registry = registry

    def is_applicable(self, value):
        return isinstance(value, BaseException)

    def forward(self, value):
        args = value.args
        if len(args) == 1 and isinstance(args[0], str):
            message = str(args[0])
        else:
            message = str(value)

        payload = {"name": self.registry.class_name(type(value)), "message": message}
        for prop in self.registry.error_props:
            if prop in ("name", "message"):
                continue
            if hasattr(value, prop):
                payload[prop] = getattr(value, prop)
        return payload

    def inverse(self, payload):
        _expect(payload, dict, "Error")
        name = payload.get("name", "Error")
        cls = self.registry.error_class(name)

        # Bypass __init__: many exception types require extra arguments.
        error = cls.__new__(cls)
        error.args = (payload.get("message", ""),)
        for prop in self.registry.error_props:
            if prop in payload and prop not in ("name", "message"):
                setattr(error, prop, payload[prop])
        return error


def builtin_exception(name: str) -> Optional[type[BaseException]]:
    candidate = getattr(builtins, name, None)
    if isinstance(candidate, type) and issubclass(candidate, BaseException):
        return candidate
    return None


# =============================================================================
# Registered Kinds
# =============================================================================


class CustomKind(ValueKind):
    """
    A user registration: a predicate plus a serialize/deserialize pair.

    serialize must return something JSON-compatible (it may contain further
    rich values, which are walked), and deserialize(serialize(v)) must equal v.
    """

    tag = "custom"
    tracks_identity = True

    def __init__(
        self,
        name: str,
        is_applicable: Callable[[Any], bool],
        serialize: Callable[[Any], Any],
        deserialize: Callable[[Any], Any],
    ):
        self.name = name
        self._is_applicable = is_applicable
        self._serialize = serialize
        self._deserialize = deserialize

    def annotation(self):
        return ["custom", self.name]

    def is_applicable(self, value):
        return bool(self._is_applicable(value))

    def forward(self, value):
        return self._serialize(value)

    def inverse(self, payload):
        return self._deserialize(payload)


class ClassKind(ContainerKind):
    """
    Instances of a registered class, carried as their state dict.

    State comes from __getstate__ (or __dict__) and is restored on an
    instance created with cls.__new__, through __setstate__ when the class
    defines it and attribute assignment otherwise. __init__ is never called.
    """

    tag = "class"

    def __init__(self, cls: type, name: str, allow_props: Optional[frozenset[str]] = None):
        self.cls = cls
        self.name = name
        self.allow_props = allow_props

    def annotation(self):
        return ["class", self.name]

    def is_applicable(self, value):
        return type(value) is self.cls

    def forward(self, value):
        state = value.__getstate__() if hasattr(value, "__getstate__") else vars(value)

        # Default object.__getstate__ returns None for empty instances and a
        # (dict, slots) pair for classes with __slots__.
        if state is None:
            state = {}
        elif isinstance(state, tuple) and len(state) == 2:
            state = {**(state[0] or {}), **(state[1] or {})}
        elif not isinstance(state, dict):
            raise SerializationError(
                f"{self.cls.__qualname__}.__getstate__ must return a dict to be "
                f"serialized as a registered class, got {type(state).__name__}"
            )

        if self.allow_props is not None:
            return {key: item for key, item in state.items() if key in self.allow_props}
        return dict(state)

    def create(self, payload):
        _expect(payload, dict, f"class {self.name!r}")
        return self.cls.__new__(self.cls)

    def fill(self, shell, payload, child):
        if not hasattr(shell, "__setstate__"):
            for key, node in payload.items():

                def resolve(placeholder, value, key=key):
                    setattr(shell, key, value)

                setattr(shell, key, child(node, key, on_resolve=resolve))
            return

        # State keys need not be attribute names, so __setstate__ runs once,
        # after every deferred child has been patched into the state.
        state = {}
        waiting = set()
        filling = True

        def resolve_state(placeholder, value, key):
            state[key] = value
            waiting.discard(key)
            if not waiting and not filling:
                shell.__setstate__(state)

        for key, node in payload.items():
            value = child(
                node,
                key,
                on_resolve=lambda placeholder, value, key=key: resolve_state(
                    placeholder, value, key
                ),
            )
            if isinstance(value, Placeholder):
                waiting.add(key)
            state[key] = value

        filling = False
        if not waiting:
            shell.__setstate__(state)


class SymbolKind(ValueKind):
    """A registered singleton (enum member, sentinel), carried by name."""

    tag = "symbol"

    def __init__(self, value: Any, name: str):
        self.value = value
        self.name = name

    def annotation(self):
        return ["symbol", self.name]

    def is_applicable(self, value):
        return value is self.value

    def forward(self, value):
        return self.name

    def inverse(self, payload):
        return self.value
