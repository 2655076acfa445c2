"""
Codec configuration.

CodecConfig bounds how far a walk may go and whether shared/cyclic identity
is tracked. The defaults suit ordinary application data; lower them when
decoding untrusted input.

    >>> from richjson import Codec
    >>> from richjson.config import CodecConfig
    >>>
    >>> codec = Codec(config=CodecConfig(max_depth=50, max_nodes=10_000))
    >>> codec.serialize(data)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Optional


# Each nesting level costs up to five interpreter frames in the walkers, so
# this stays inside the default recursion limit of 1000.
DEFAULT_MAX_DEPTH = 100
FRAMES_PER_LEVEL = 5


@dataclass(frozen=True)
class CodecConfig:
    """
    Limits and switches applied to a single serialize/deserialize call.

    Attributes:
        max_depth: Deepest nesting level allowed before the walk fails with
            MaxDepthExceededError. The root value is depth 0.
        max_nodes: Optional cap on the number of values visited in one walk.
            None means unlimited.
        track_references: When True (the default), repeated identities are
            written once and recorded in referentialEqualities. When False,
            shared sub-graphs are written out at every occurrence and a cycle
            raises CircularReferenceError.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    max_nodes: Optional[int] = None
    track_references: bool = True

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        ceiling = sys.getrecursionlimit() // FRAMES_PER_LEVEL
        if self.max_depth > ceiling:
            raise ValueError(
                f"max_depth {self.max_depth} cannot be reached under the current "
                f"recursion limit of {sys.getrecursionlimit()}; the walkers would "
                f"overflow the stack first.\n"
                f"Use max_depth <= {ceiling}, or raise the limit with "
                f"sys.setrecursionlimit() before creating the config."
            )
        if self.max_nodes is not None and self.max_nodes < 1:
            raise ValueError(f"max_nodes must be positive, got {self.max_nodes}")


DEFAULT_CONFIG = CodecConfig()
