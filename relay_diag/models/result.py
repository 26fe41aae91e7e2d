"""Models for test execution results."""

from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Result of a single test case execution."""

    __test__ = False

    test_name: str
    passed: bool
    duration: float = 0.0
    message: str | None = None
