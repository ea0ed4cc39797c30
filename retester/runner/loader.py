"""Fresh loading of test modules from source.

Every load discards any previously imported copy of the module so edits
made between batches are picked up. Test cases are collected, in order of
preference, from:

    tests(context)   — a function returning a name → coroutine function mapping
    TESTS            — a module-level mapping
    async def test_* — module-level coroutine functions, in definition order
"""

from __future__ import annotations

import hashlib
import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable, Mapping

from retester.core.errors import TestLoadError
from retester.core.types import TestCase

logger = logging.getLogger(__name__)

_MODULE_PREFIX = "retester_tests_"


def module_name_for(path: str | Path, prefix: str = _MODULE_PREFIX) -> str:
    """Stable, unique ``sys.modules`` key for a file path."""
    resolved = str(Path(path).resolve())
    digest = hashlib.sha1(resolved.encode()).hexdigest()[:12]
    return f"{prefix}{Path(path).stem}_{digest}"


def import_fresh(path: str | Path, prefix: str = _MODULE_PREFIX) -> ModuleType:
    """Import ``path`` as a new module, discarding any cached definition."""
    path = Path(path).resolve()
    if not path.is_file():
        raise TestLoadError(str(path), "file does not exist")

    mod_name = module_name_for(path, prefix)
    sys.modules.pop(mod_name, None)
    # Sibling helpers are importable by plain name, as under pytest's prepend mode
    parent = str(path.parent)
    if parent not in sys.path:
        sys.path.insert(0, parent)
    importlib.invalidate_caches()

    spec = importlib.util.spec_from_file_location(mod_name, path)
    if spec is None or spec.loader is None:
        raise TestLoadError(str(path), "not an importable Python file")

    module = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(mod_name, None)
        raise TestLoadError(str(path), e) from e
    return module


def evict_modules(paths: Iterable[str | Path]) -> list[str]:
    """Drop every imported module whose source file is one of ``paths``.

    The next import of such a module re-executes it from disk. Returns the
    evicted module names.
    """
    targets = {str(Path(p).resolve()) for p in paths}
    if not targets:
        return []
    evicted = []
    for name, module in list(sys.modules.items()):
        source = getattr(module, "__file__", None)
        if isinstance(source, str) and str(Path(source).resolve()) in targets:
            del sys.modules[name]
            evicted.append(name)
    if evicted:
        importlib.invalidate_caches()
        logger.debug("Evicted modules: %s", ", ".join(evicted))
    return evicted


class TestModuleLoader:
    """Loads test cases from a module file, fresh on every call."""

    __test__ = False

    def load(self, path: str | Path, context: Any = None) -> dict[str, TestCase]:
        module = import_fresh(path)
        return collect_cases(module, context, str(path))

    def invalidate(self, paths: Iterable[str | Path]) -> list[str]:
        return evict_modules(paths)


def collect_cases(module: ModuleType, context: Any, path: str) -> dict[str, TestCase]:
    factory = getattr(module, "tests", None)
    if callable(factory):
        try:
            cases = factory(context)
        except Exception as e:
            raise TestLoadError(path, e) from e
        return _validate(cases, path)

    declared = getattr(module, "TESTS", None)
    if declared is not None:
        return _validate(declared, path)

    cases: dict[str, TestCase] = {}
    for name, obj in vars(module).items():
        if name.startswith("test_") and inspect.iscoroutinefunction(obj):
            cases[name] = _bind(obj, context)
    return cases


def _validate(cases: Any, path: str) -> dict[str, TestCase]:
    if not isinstance(cases, Mapping):
        raise TestLoadError(path, f"expected a mapping of test cases, got {type(cases).__name__}")
    for name, func in cases.items():
        if not callable(func):
            raise TestLoadError(path, f"test case {name!r} is not callable")
    return dict(cases)


def _bind(func: Any, context: Any) -> TestCase:
    """Pass the run context to ``test_*`` functions that accept an argument."""
    if inspect.signature(func).parameters:
        async def bound() -> Any:
            return await func(context)
        return bound
    return func
