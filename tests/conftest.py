import pytest

from richjson import Codec, TypeRegistry


@pytest.fixture
def registry():
    """A fresh registry, so tests never touch the process-wide one."""
    return TypeRegistry()


@pytest.fixture
def codec(registry):
    return Codec(registry)
