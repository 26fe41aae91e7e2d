"""Test orchestrator running named scenarios one after another."""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from relay_diag.errors import log_exception
from relay_diag.models.result import TestResult

log = logging.getLogger(__name__)

type TestAction = Callable[[], Awaitable[None]]


@dataclass(frozen=True, kw_only=True)
class TestCase:
    """A named scenario."""

    __test__ = False

    name: str
    action: TestAction


def section_header(name: str) -> str:
    return f"{'=' * 30} {name} {'=' * 30}"


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Runs test cases in declaration order without stopping on failures.

    Each case fully completes before the next one starts, so cases that
    share a listener never race on its request handler.
    """

    __test__ = False

    cases: Sequence[TestCase]

    async def run_suite(
        self, filter_pattern: str | re.Pattern[str] | None = None
    ) -> Sequence[TestResult]:
        """Run every case whose name matches ``filter_pattern``.

        Args:
            filter_pattern: Regular expression searched (case-insensitively)
                in each case name; None runs everything

        Returns:
            One result per executed case, in execution order

        """
        if isinstance(filter_pattern, str):
            filter_pattern = re.compile(filter_pattern, re.IGNORECASE)

        results: list[TestResult] = []
        for case in self.cases:
            if filter_pattern is not None and not filter_pattern.search(case.name):
                log.debug("Skipping %s", case.name)
                continue
            results.append(await self._run_case(case))

        return results

    async def _run_case(self, case: TestCase) -> TestResult:
        """Run one case, converting any exception into a failed result."""
        log.info(section_header(case.name))
        loop = asyncio.get_running_loop()
        start = loop.time()

        try:
            await case.action()
        except Exception as e:
            log_exception(log, e, prefix=f"{case.name} FAILED. ")
            return TestResult(
                test_name=case.name,
                passed=False,
                duration=loop.time() - start,
                message=f"{type(e).__name__}: {e}",
            )

        duration = loop.time() - start
        log.info("%s succeeded (%.2fs)", case.name, duration)
        return TestResult(test_name=case.name, passed=True, duration=duration)


def log_suite_summary(results: Sequence[TestResult]) -> None:
    """Log the passed and failed case names with their counts."""
    passed = [result for result in results if result.passed]
    failed = [result for result in results if not result.passed]

    log.info("=" * 80)
    log.info("%d test(s) passed", len(passed))
    for result in passed:
        log.info("  ✓ %s (%.2fs)", result.test_name, result.duration)

    if failed:
        log.error("%d test(s) failed", len(failed))
        for result in failed:
            log.error("  ✗ %s: %s", result.test_name, result.message)
    else:
        log.info("0 test(s) failed")


def exit_code(results: Sequence[TestResult]) -> int:
    """Return the number of failed results."""
    return sum(1 for result in results if not result.passed)
