"""
Annotation models and the builder that produces them.

The wire format is a JSON object::

    {
        "json": <payload>,
        "meta": {
            "values": {"<path>": ["<tag>"] | ["custom" | "class" | "symbol", "<name>"]},
            "referentialEqualities": {"<canonical path>": ["<path>", ...]}
        }
    }

"meta" and each of its sections are omitted when empty, so plain JSON values
serialize to {"json": <value>}. Paths use the encoding from richjson.paths.
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ["Date"], ["custom", "decimal"], ...
TypeTag = Annotated[list[str], Field(min_length=1, max_length=2)]


class Meta(BaseModel):
    """
    Annotation tree for one payload.

    Attributes:
        values: Path to the type tag whose inverse transform rebuilds the
            value at that path. Paths not listed are taken literally.
        referential_equalities: Canonical path to the list of other paths
            holding the same object. Serialized as "referentialEqualities".
    """

    model_config = ConfigDict(populate_by_name=True)

    values: Optional[dict[str, TypeTag]] = None
    referential_equalities: Optional[dict[str, list[str]]] = Field(
        default=None, alias="referentialEqualities"
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Envelope(BaseModel):
    """
    A serialized value: the JSON payload plus its annotation.

    The payload is exposed as `payload` and written as "json"; the
    annotation is `meta` (also available as `annotation`).

    Example:
        >>> envelope = serialize({"when": datetime(2024, 1, 1)})
        >>> envelope.payload
        {'when': '2024-01-01T00:00:00'}
        >>> envelope.meta.values
        {'when': ['Date']}
        >>> envelope.dump_json()
        '{"json":{"when":"2024-01-01T00:00:00"},"meta":{"values":{"when":["Date"]}}}'
    """

    model_config = ConfigDict(populate_by_name=True)

    payload: Any = Field(alias="json")
    meta: Optional[Meta] = None

    @property
    def annotation(self) -> Optional[Meta]:
        return self.meta

    def _empty_fields(self):
        # exclude_none would also drop None entries inside the payload, so
        # empty sections are excluded by name instead.
        if self.meta is None:
            return {"meta"}
        empty = {
            name
            for name in ("values", "referential_equalities")
            if getattr(self.meta, name) is None
        }
        return {"meta": empty} if empty else None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude=self._empty_fields())

    def dump_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude=self._empty_fields())


class AnnotationBuilder:
    """
    Collects annotation entries during a walk and compacts them into a Meta.

    Entries keep the order in which the walk produced them, which is a
    depth-first pre-order of the payload.
    """

    def __init__(self):
        self._values: dict[str, list[str]] = {}
        self._equalities: dict[str, list[str]] = {}

    def add_value(self, path: str, tag: list[str]) -> None:
        self._values[path] = tag

    def add_reference(self, path: str, target: str) -> None:
        self._equalities.setdefault(target, []).append(path)

    def build(self) -> Optional[Meta]:
        """The compacted Meta, or None if nothing needed annotating."""
        if not self._values and not self._equalities:
            return None
        return Meta(
            values=self._values or None,
            referential_equalities=self._equalities or None,
        )
