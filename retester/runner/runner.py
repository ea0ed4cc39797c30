"""Sequential test execution.

Cases run one at a time in insertion order; each one sees the chain state
left by the previous. A failing case is logged and never stops the rest.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from retester.core.errors import TestLoadError
from retester.core.types import (
    InlineTests,
    ModuleReference,
    ModuleReferenceList,
    TestCase,
    TestSuite,
)
from retester.runner.loader import TestModuleLoader

logger = logging.getLogger(__name__)


@dataclass
class CaseResult:
    """Outcome of one test case."""

    name: str
    passed: bool
    error: BaseException | None = None
    duration_ms: float = 0.0


class TestRunner:
    """Runs test cases and test modules sequentially."""

    __test__ = False

    def __init__(self, loader: TestModuleLoader | None = None) -> None:
        self.loader = loader or TestModuleLoader()

    async def run(self, cases: Mapping[str, TestCase]) -> list[CaseResult]:
        results: list[CaseResult] = []
        for name, func in cases.items():
            start = time.monotonic()
            try:
                await func()
            except Exception as e:
                elapsed = (time.monotonic() - start) * 1000
                logger.error(
                    "  ✗ %s",
                    name,
                    exc_info=e,
                    extra={"test_case": name, "duration_ms": round(elapsed, 1)},
                )
                results.append(CaseResult(name=name, passed=False, error=e, duration_ms=elapsed))
            else:
                elapsed = (time.monotonic() - start) * 1000
                logger.info(
                    "  ✔ %s", name, extra={"test_case": name, "duration_ms": round(elapsed, 1)},
                )
                results.append(CaseResult(name=name, passed=True, duration_ms=elapsed))
        return results

    def invalidate(self, paths: Iterable[str]) -> None:
        """Forget cached imports of edited files so the next batch re-executes them."""
        self.loader.invalidate(paths)

    def load_group(self, path: str, context: Any = None) -> dict[str, TestCase]:
        """Load one test module; an unloadable module contributes no cases."""
        try:
            return self.loader.load(path, context)
        except TestLoadError as e:
            logger.error("✗ %s", e.message, exc_info=e.__cause__ or e, extra={"path": path})
            return {}

    async def run_suite(self, suite: TestSuite, context: Any = None) -> list[CaseResult]:
        if isinstance(suite, InlineTests):
            return await self.run(suite.cases)
        if isinstance(suite, ModuleReference):
            paths = [suite.path]
        elif isinstance(suite, ModuleReferenceList):
            paths = list(suite.paths)
        else:
            raise TypeError(f"Unsupported test suite: {type(suite).__name__}")

        results: list[CaseResult] = []
        for path in paths:
            results.extend(await self.run(self.load_group(path, context)))
        return results


def summarize(results: list[CaseResult]) -> dict[str, int]:
    passed = sum(1 for r in results if r.passed)
    return {"total": len(results), "passed": passed, "failed": len(results) - passed}
