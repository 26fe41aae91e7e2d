"""Tests for test orchestrator."""

import logging
from unittest.mock import AsyncMock

import pytest

from relay_diag.orchestrator import (
    TestCase,
    TestOrchestrator,
    exit_code,
    log_suite_summary,
    section_header,
)
from relay_diag.testing.factories import TestResultFactory


def make_cases() -> tuple[AsyncMock, AsyncMock, AsyncMock, list[TestCase]]:
    a = AsyncMock()
    b = AsyncMock(side_effect=RuntimeError("boom"))
    c = AsyncMock()
    cases = [
        TestCase(name="A", action=a),
        TestCase(name="B", action=b),
        TestCase(name="C", action=c),
    ]
    return a, b, c, cases


async def test_runs_every_case_and_continues_after_failure() -> None:
    """A failing case is recorded and the next case still runs."""
    a, b, c, cases = make_cases()

    results = await TestOrchestrator(cases=cases).run_suite()

    assert [r.test_name for r in results] == ["A", "B", "C"]
    assert [r.passed for r in results] == [True, False, True]
    assert results[1].message == "RuntimeError: boom"
    assert exit_code(results) == 1
    a.assert_awaited_once()
    b.assert_awaited_once()
    c.assert_awaited_once()


async def test_filter_selects_matching_cases_only() -> None:
    """Cases not matching the filter are skipped without a result."""
    a, b, c, cases = make_cases()

    results = await TestOrchestrator(cases=cases).run_suite("^B$")

    assert [r.test_name for r in results] == ["B"]
    assert exit_code(results) == 1
    a.assert_not_awaited()
    c.assert_not_awaited()


async def test_filter_is_case_insensitive_search() -> None:
    """The filter is searched anywhere in the name, ignoring case."""
    cases = [
        TestCase(name="StreamEcho", action=AsyncMock()),
        TestCase(name="RequestResponse", action=AsyncMock()),
    ]

    results = await TestOrchestrator(cases=cases).run_suite("stream")

    assert [r.test_name for r in results] == ["StreamEcho"]


async def test_cases_run_sequentially_in_order() -> None:
    """Each case completes before the next one starts."""
    events: list[str] = []

    def recorder(name: str) -> AsyncMock:
        async def action() -> None:
            events.append(f"start {name}")
            events.append(f"end {name}")

        return AsyncMock(side_effect=action)

    cases = [TestCase(name=n, action=recorder(n)) for n in ("one", "two")]

    await TestOrchestrator(cases=cases).run_suite()

    assert events == ["start one", "end one", "start two", "end two"]


async def test_logs_section_header_per_case(caplog: pytest.LogCaptureFixture) -> None:
    """Logs a header before each executed case."""
    cases = [TestCase(name="Only", action=AsyncMock())]

    with caplog.at_level(logging.INFO):
        await TestOrchestrator(cases=cases).run_suite()

    assert f"{'=' * 30} Only {'=' * 30}" in caplog.text


def test_section_header() -> None:
    """Wraps the name in thirty equals signs on each side."""
    assert section_header("X") == "=" * 30 + " X " + "=" * 30


def test_exit_code_counts_failures() -> None:
    """Returns the number of failed results."""
    results = [
        *TestResultFactory.batch(2, passed=True),
        *TestResultFactory.batch(3, passed=False),
    ]

    assert exit_code(results) == 3
    assert exit_code([]) == 0


def test_log_suite_summary(caplog: pytest.LogCaptureFixture) -> None:
    """Logs passed and failed names with counts."""
    results = [
        TestResultFactory.build(test_name="Good", passed=True, duration=1.5),
        TestResultFactory.build(test_name="Bad", passed=False, message="E: x"),
    ]

    with caplog.at_level(logging.INFO):
        log_suite_summary(results)

    assert "1 test(s) passed" in caplog.text
    assert "✓ Good (1.50s)" in caplog.text
    assert "1 test(s) failed" in caplog.text
    assert "✗ Bad: E: x" in caplog.text
