"""Fixtures for integration tests against the loopback relay."""

from collections.abc import AsyncGenerator

import pytest
from pydantic import SecretStr

from relay_diag.transports.loopback import LoopbackConfig, LoopbackTransport


@pytest.fixture
def token() -> str:
    """Token the loopback relay expects from senders."""
    return "SharedAccessSignature sr=loopback&sig=test"


@pytest.fixture
def config(token: str) -> LoopbackConfig:
    """Create loopback configuration with a token and one existing path."""
    return LoopbackConfig(token=SecretStr(token), paths=["existing"])


@pytest.fixture
async def transport(
    config: LoopbackConfig,
) -> AsyncGenerator[LoopbackTransport, None]:
    """Start the loopback relay for one test."""
    async with LoopbackTransport.from_config(config) as impl:
        yield impl
