"""Shared fixtures."""

from collections.abc import Generator

import pytest
from aioresponses import aioresponses as aioresponses_cls


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls, None, None]:
    """Mock outgoing aiohttp requests, letting local ones through."""
    with aioresponses_cls(passthrough=["http://127.0.0.1"]) as mock:
        yield mock
