r"""
Path language for annotation keys.

A path is a tuple of keys leading from the root of the payload to one node:
ints index into lists, strs name dict properties. Annotation tables are keyed
by the encoded form of a path:

- segments are joined with "."
- inside a str key, "\" is written "\\" and "." is written "\."
- a str key that is empty or made only of ASCII digits gets the prefix "\'",
  so "0" (property) and 0 (index) encode differently
- the root path () encodes as ""

    >>> encode_path(("users", 0, "a.b"))
    'users.0.a\\.b'
    >>> decode_path(encode_path(("", "7", 7)))
    ('', '7', 7)
"""

from __future__ import annotations

import re
from typing import Iterable, Union

from richjson.errors import InvalidPathError

Key = Union[int, str]
Path = tuple[Key, ...]

ROOT = ""
SEPARATOR = "."
ESCAPE = "\\"
STRING_MARKER = "'"

_DIGITS = re.compile(r"[0-9]+")


def encode_key(key: Key) -> str:
    """Encode one path segment."""
    if isinstance(key, bool):
        raise TypeError(f"Path keys must be int or str, got {key!r}")
    if isinstance(key, int):
        if key < 0:
            raise ValueError(f"Path indices must be non-negative, got {key}")
        return str(key)
    if not isinstance(key, str):
        raise TypeError(f"Path keys must be int or str, got {type(key).__name__}")

    escaped = key.replace(ESCAPE, ESCAPE + ESCAPE).replace(SEPARATOR, ESCAPE + SEPARATOR)
    if key == "" or _DIGITS.fullmatch(key):
        return ESCAPE + STRING_MARKER + escaped
    return escaped


def encode_path(keys: Iterable[Key]) -> str:
    return SEPARATOR.join(encode_key(key) for key in keys)


def join_path(parent: str, key: Key) -> str:
    """Extend an already encoded path by one key."""
    segment = encode_key(key)
    if parent == ROOT:
        return segment
    return parent + SEPARATOR + segment


def decode_path(text: str) -> Path:
    """
    Decode an annotation key back into its key tuple.

    Raises:
        InvalidPathError: If the text could not have been produced by
            encode_path (dangling escapes, empty segments, non-canonical
            indices).
    """
    if not isinstance(text, str):
        raise InvalidPathError(str(text), "annotation paths must be strings")
    if text == ROOT:
        return ()

    keys: list[Key] = []
    buffer: list[str] = []
    is_string = False
    at_segment_start = True
    i = 0

    while i < len(text):
        char = text[i]
        if char == ESCAPE:
            if i + 1 >= len(text):
                raise InvalidPathError(text, "dangling escape at end of path")
            following = text[i + 1]
            if following in (ESCAPE, SEPARATOR):
                buffer.append(following)
                is_string = True
            elif following == STRING_MARKER and at_segment_start:
                is_string = True
            else:
                raise InvalidPathError(text, f"unknown escape sequence {char + following!r}")
            at_segment_start = False
            i += 2
            continue

        if char == SEPARATOR:
            keys.append(_finish_segment(text, buffer, is_string))
            buffer = []
            is_string = False
            at_segment_start = True
        else:
            buffer.append(char)
            at_segment_start = False
        i += 1

    keys.append(_finish_segment(text, buffer, is_string))
    return tuple(keys)


def _finish_segment(text: str, buffer: list[str], is_string: bool) -> Key:
    segment = "".join(buffer)
    if is_string:
        return segment
    if segment == "":
        raise InvalidPathError(text, "empty path segment")
    if _DIGITS.fullmatch(segment):
        if segment != str(int(segment)):
            raise InvalidPathError(text, f"non-canonical index {segment!r}")
        return int(segment)
    return segment
