"""Tests for custom kinds, registered classes and symbols."""

import enum
import logging
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

import richjson
from richjson import (
    Codec,
    TypeRegistry,
    UnknownTypeTagError,
    UnsupportedTypeError,
    deserialize,
)


def register_decimal(registry, name="decimal"):
    return registry.register_custom(
        name,
        lambda v: isinstance(v, Decimal),
        str,
        Decimal,
    )


class Point:
    def __init__(self, x, y):
        self.x = x
        self.y = y


class Point3(Point):
    pass


class Temperature:
    def __init__(self, celsius):
        self.celsius = celsius

    def __getstate__(self):
        return {"c": self.celsius}

    def __setstate__(self, state):
        self.celsius = state["c"]


class Slotted:
    __slots__ = ("a", "b")

    def __init__(self, a, b):
        self.a = a
        self.b = b


class Box:
    def __init__(self, item):
        self.item = item


class Color(enum.Enum):
    RED = 1
    GREEN = 2


class Priority(enum.IntEnum):
    LOW = 1
    HIGH = 2


MISSING = object()


class AppError(Exception):
    pass


# ============================================================================
# Custom kinds
# ============================================================================


class TestCustomKinds:
    def test_decimal(self, codec):
        register_decimal(codec.registry)
        value = {"price": Decimal("1.10")}

        envelope = codec.serialize(value)
        assert envelope.payload == {"price": "1.10"}
        assert envelope.meta.values == {"price": ["custom", "decimal"]}

        result = codec.parse(codec.stringify(value))
        assert result == value
        assert str(result["price"]) == "1.10"

    def test_missing_registration_on_read(self, codec):
        register_decimal(codec.registry)
        text = codec.stringify(Decimal("2.5"))

        with pytest.raises(UnknownTypeTagError) as excinfo:
            Codec(TypeRegistry()).parse(text)
        assert excinfo.value.tag == ["custom", "decimal"]
        assert "decimal" in str(excinfo.value)

    def test_same_name_replaces(self, codec):
        register_decimal(codec.registry)
        codec.registry.register_custom(
            "decimal",
            lambda v: isinstance(v, Decimal),
            lambda d: {"v": str(d)},
            lambda p: Decimal(p["v"]),
        )

        envelope = codec.serialize(Decimal("3"))
        assert envelope.payload == {"v": "3"}
        assert codec.deserialize(envelope.payload, envelope.meta) == Decimal("3")

    def test_most_recent_first(self, codec):
        register_decimal(codec.registry, "first")
        register_decimal(codec.registry, "second")
        assert codec.serialize(Decimal(1)).meta.values == {"": ["custom", "second"]}

        register_decimal(codec.registry, "first")
        assert codec.serialize(Decimal(1)).meta.values == {"": ["custom", "first"]}

    def test_priority_beats_builtin(self, codec):
        codec.registry.register_custom(
            "iso",
            lambda v: isinstance(v, datetime),
            lambda d: d.isoformat(),
            datetime.fromisoformat,
            priority=True,
        )
        when = datetime(2024, 1, 1, 8, 30)
        envelope = codec.serialize(when)
        assert envelope.meta.values == {"": ["custom", "iso"]}
        assert codec.deserialize(envelope.payload, envelope.meta) == when

    def test_builtin_beats_plain_custom(self, codec):
        codec.registry.register_custom(
            "myset",
            lambda v: isinstance(v, set),
            sorted,
            set,
        )
        assert codec.serialize({1}).meta.values == {"": ["set"]}

    def test_nested_rich_values(self, codec):
        codec.registry.register_custom(
            "box",
            lambda v: isinstance(v, Box),
            lambda b: {"item": b.item},
            lambda d: Box(d["item"]),
        )
        box = Box(datetime(2024, 1, 1))

        envelope = codec.serialize(box)
        assert envelope.meta.values == {"": ["custom", "box"], "item": ["Date"]}

        result = codec.parse(codec.stringify(box))
        assert isinstance(result, Box)
        assert result.item == datetime(2024, 1, 1)

    def test_custom_on_strings_is_not_deduplicated(self, codec):
        codec.registry.register_custom(
            "shout",
            lambda v: isinstance(v, str) and v.isupper(),
            str.lower,
            str.upper,
        )
        envelope = codec.serialize(["HI", "HI", "quiet"])
        assert envelope.payload == ["hi", "hi", "quiet"]
        assert envelope.meta.values == {"0": ["custom", "shout"], "1": ["custom", "shout"]}
        assert envelope.meta.referential_equalities is None
        assert codec.deserialize(envelope.payload, envelope.meta) == ["HI", "HI", "quiet"]

    def test_override_is_logged(self, codec, caplog):
        register_decimal(codec.registry)
        with caplog.at_level(logging.DEBUG, logger="richjson.registry"):
            register_decimal(codec.registry)
        assert "replaces an earlier registration" in caplog.text


# ============================================================================
# Registered classes
# ============================================================================


class TestClasses:
    def test_instance(self, codec):
        codec.registry.register_class(Point)
        envelope = codec.serialize(Point(1, 2))
        assert envelope.payload == {"x": 1, "y": 2}
        assert envelope.meta.values == {"": ["class", "Point"]}

        result = codec.deserialize(envelope.payload, envelope.meta)
        assert type(result) is Point
        assert (result.x, result.y) == (1, 2)

    def test_custom_name(self, codec):
        codec.registry.register_class(Point, "geo.Point")
        envelope = codec.serialize(Point(0, 0))
        assert envelope.meta.values == {"": ["class", "geo.Point"]}
        assert type(codec.parse(codec.stringify(Point(0, 0)))) is Point

    def test_allow_props(self, codec):
        codec.registry.register_class(Point, allow_props=["x", "y"])
        point = Point(1, 2)
        point.cache = object()

        envelope = codec.serialize(point)
        assert envelope.payload == {"x": 1, "y": 2}
        result = codec.deserialize(envelope.payload, envelope.meta)
        assert not hasattr(result, "cache")

    def test_getstate_setstate(self, codec):
        codec.registry.register_class(Temperature)
        envelope = codec.serialize(Temperature(21.5))
        assert envelope.payload == {"c": 21.5}
        assert codec.parse(codec.stringify(Temperature(21.5))).celsius == 21.5

    def test_slots(self, codec):
        codec.registry.register_class(Slotted)
        result = codec.parse(codec.stringify(Slotted(1, [2])))
        assert type(result) is Slotted
        assert result.a == 1
        assert result.b == [2]

    def test_rich_attributes(self, codec):
        codec.registry.register_class(Point)
        result = codec.parse(codec.stringify(Point({1, 2}, datetime(2020, 5, 1))))
        assert result.x == {1, 2}
        assert result.y == datetime(2020, 5, 1)

    def test_unregistered(self, codec):
        with pytest.raises(UnsupportedTypeError) as excinfo:
            codec.serialize({"p": Point(1, 2)})
        assert excinfo.value.path == "p"
        assert excinfo.value.value_type is Point
        assert "register_class(Point)" in str(excinfo.value)

    def test_subclass_does_not_match(self, codec):
        codec.registry.register_class(Point)
        with pytest.raises(UnsupportedTypeError):
            codec.serialize(Point3(1, 2))


# ============================================================================
# Symbols
# ============================================================================


class TestSymbols:
    def test_enum_member(self, codec):
        codec.registry.register_symbol(Color.RED)
        envelope = codec.serialize([Color.RED])
        assert envelope.payload == ["RED"]
        assert envelope.meta.values == {"0": ["symbol", "RED"]}
        assert codec.parse(codec.stringify([Color.RED]))[0] is Color.RED

    def test_unregistered_member(self, codec):
        codec.registry.register_symbol(Color.RED)
        with pytest.raises(UnsupportedTypeError):
            codec.serialize(Color.GREEN)

    def test_int_enum_with_name(self, codec):
        codec.registry.register_symbol(Priority.HIGH, "priority.high")
        envelope = codec.serialize({"p": Priority.HIGH})
        assert envelope.meta.values == {"p": ["symbol", "priority.high"]}
        assert codec.parse(codec.stringify({"p": Priority.HIGH}))["p"] is Priority.HIGH

    def test_sentinel(self, codec):
        codec.registry.register_symbol(MISSING, "missing")
        result = codec.parse(codec.stringify({"a": MISSING, "b": MISSING}))
        assert result["a"] is MISSING
        assert result["b"] is MISSING

    def test_sentinel_needs_name(self, registry):
        with pytest.raises(ValueError):
            registry.register_symbol(object())


# ============================================================================
# Exceptions
# ============================================================================


class TestErrorClasses:
    def test_registered_exception_class(self, codec):
        codec.registry.register_class(AppError)
        result = codec.parse(codec.stringify(AppError("boom")))
        assert type(result) is AppError
        assert result.args == ("boom",)

    def test_allowed_props(self, codec):
        codec.registry.register_class(AppError)
        codec.registry.allow_error_props("code")
        error = AppError("boom")
        error.code = 42

        envelope = codec.serialize(error)
        assert envelope.payload == {"name": "AppError", "message": "boom", "code": 42}

        result = codec.deserialize(envelope.payload, envelope.meta)
        assert result.code == 42

    def test_props_not_allowed_are_dropped(self, codec):
        error = ValueError("x")
        error.code = 1
        envelope = codec.serialize(error)
        assert envelope.payload == {"name": "ValueError", "message": "x"}


# ============================================================================
# Tag lookup
# ============================================================================


class TestLookup:
    @pytest.mark.parametrize(
        "tag",
        [
            ["wat"],
            ["custom", "nope"],
            ["class", "Point"],
            ["symbol", "RED"],
            ["Date", "extra"],
        ],
    )
    def test_unknown_tags(self, registry, tag):
        with pytest.raises(UnknownTypeTagError):
            registry.lookup(tag)

    def test_builtin_tags(self, registry):
        for tag in ("undefined", "bigint", "number", "Date", "regexp", "set",
                    "frozenset", "map", "Error", "URL", "tuple"):
            assert registry.lookup([tag]).tag == tag

    def test_names(self, registry):
        register_decimal(registry)
        registry.register_class(Point)
        registry.register_symbol(Color.RED)
        names = registry.names()
        assert "Date" in names
        assert "custom:decimal" in names
        assert "class:Point" in names
        assert "symbol:RED" in names

    @pytest.mark.parametrize(
        "meta",
        [
            {"values": {"": []}},
            {"values": {"": ["custom", "a", "b"]}},
            {"values": {"": "set"}},
            {"referentialEqualities": {"a": "b"}},
        ],
    )
    def test_malformed_annotation(self, meta):
        with pytest.raises(ValidationError):
            deserialize([], meta)


class TestDefaultRegistry:
    def test_module_level_registration(self):
        sentinel = object()
        richjson.register_symbol(sentinel, "test_registry.sentinel")
        assert richjson.parse(richjson.stringify([sentinel]))[0] is sentinel

    def test_module_level_error_props(self, monkeypatch):
        monkeypatch.setattr(richjson.default_registry, "error_props", [])
        richjson.allow_error_props("code")
        error = ValueError("bad")
        error.code = 7

        result = richjson.parse(richjson.stringify(error))
        assert type(result) is ValueError
        assert result.code == 7
        assert "allow_error_props" in richjson.allow_error_props.__doc__
