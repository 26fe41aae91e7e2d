"""Models for TCP port probing."""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class ProbeTarget:
    """A single address/port pair to dial."""

    address: str
    port: int

    def __str__(self) -> str:
        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


@dataclass(frozen=True, kw_only=True)
class ProbeResult:
    """Outcome of one connection attempt.

    A failed probe carries the exception type name in ``error_kind`` and its
    text in ``error_message``; both are None on success.
    """

    target: ProbeTarget
    succeeded: bool
    elapsed_ms: float
    error_kind: str | None = None
    error_message: str | None = None

    def render(self) -> str:
        """Format the result as a single report line."""
        elapsed = int(self.elapsed_ms)
        if self.succeeded:
            return f"{self.target} succeeded in {elapsed} ms"
        return (
            f"{self.target} FAILED in {elapsed} ms. "
            f"{self.error_kind}: {self.error_message}"
        )


@dataclass(frozen=True, kw_only=True)
class ProbeReport:
    """All probe results for one host, in submission order."""

    host: str
    results: Sequence[ProbeResult] = ()
    error: str | None = None

    def render(self) -> str:
        lines = [f"Checking {self.host}"]
        if self.error is not None:
            lines.append(f"ERROR: {self.error}")
        lines.extend(result.render() for result in self.results)
        return "\n".join(lines) + "\n"
