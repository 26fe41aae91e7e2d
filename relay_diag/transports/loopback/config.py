"""Configuration for the loopback transport."""

from collections.abc import Sequence

from pydantic import BaseModel, Field, SecretStr


class LoopbackConfig(BaseModel):
    """Configuration for the in-process loopback relay."""

    host: str = "127.0.0.1"
    # 0 picks a free port
    port: int = 0
    token: SecretStr | None = None
    paths: Sequence[str] = Field(
        default_factory=list,
        description="Endpoint paths registered before the first command runs",
    )
