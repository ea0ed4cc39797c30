"""Shared types used across the tester."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from pydantic import BaseModel, Field

# A detector signature: mtime in nanoseconds, or a content digest.
Signature = Union[int, float, str]

TestCase = Callable[[], Awaitable[Any]]


# ── Monitored artifacts ──────────────────────────────────────────────────────


@dataclass
class MonitoredContract:
    """A contract account whose interface and binary files are watched.

    Either ``contract_directory`` is set and the artifact paths are
    discovered from it, or the artifact paths are given explicitly.
    The ``*_last_seen`` fields are advanced in place on every diff pass.
    """

    account: str
    contract_directory: str | None = None
    interface_file_path: str | None = None
    binary_file_path: str | None = None
    interface_last_seen: Signature | None = None
    binary_last_seen: Signature | None = None

    @classmethod
    def from_declaration(cls, entry: MonitoredContract | Mapping[str, Any]) -> MonitoredContract:
        """Build from a test file declaration entry.

        Accepts an existing instance or a mapping using either the long
        field names or the short ``contract``/``abi_path``/``wasm_path`` keys.
        """
        if isinstance(entry, MonitoredContract):
            return entry
        if "account" not in entry:
            raise ValueError(f"Monitored contract entry is missing 'account': {dict(entry)!r}")
        return cls(
            account=str(entry["account"]),
            contract_directory=_opt_str(entry.get("contract_directory", entry.get("contract"))),
            interface_file_path=_opt_str(entry.get("interface_file_path", entry.get("abi_path"))),
            binary_file_path=_opt_str(entry.get("binary_file_path", entry.get("wasm_path"))),
        )

    @property
    def artifact_paths(self) -> list[str]:
        return [p for p in (self.interface_file_path, self.binary_file_path) if p]


@dataclass
class MonitoredFile:
    """An arbitrary watched file. It may not exist yet."""

    path: str
    last_seen: Signature | None = None

    @property
    def exists(self) -> bool:
        return os.path.exists(self.path)


@dataclass
class ContractChange:
    """Change record for one contract.

    A path field is ``None`` when that half of the contract did not change
    and needs no redeploy.
    """

    account: str
    interface_file_path: str | None = None
    binary_file_path: str | None = None

    @property
    def redeploys_interface(self) -> bool:
        return self.interface_file_path is not None

    @property
    def redeploys_binary(self) -> bool:
        return self.binary_file_path is not None


@dataclass
class ChangeSet:
    """Result of one diff pass over contracts and files."""

    contracts: list[ContractChange] = field(default_factory=list)
    files: list[MonitoredFile] = field(default_factory=list)
    # path -> signature observed for each reported change
    signatures: dict[str, Signature] = field(default_factory=dict, repr=False)

    def __bool__(self) -> bool:
        return bool(self.contracts or self.files)

    def __len__(self) -> int:
        return len(self.contracts) + len(self.files)

    @property
    def contract_changed(self) -> bool:
        return bool(self.contracts)


# ── Chain actions ────────────────────────────────────────────────────────────


class PermissionLevel(BaseModel):
    """Actor/permission pair authorizing an action."""

    actor: str
    permission: str = "active"


class Action(BaseModel):
    """A single chain action submitted as part of a transaction."""

    account: str
    name: str
    authorization: list[PermissionLevel] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)


# ── Test suites ──────────────────────────────────────────────────────────────


@dataclass
class InlineTests:
    """Test cases supplied directly as an ordered name → coroutine function mapping."""

    cases: Mapping[str, TestCase]


@dataclass
class ModuleReference:
    """A test module on disk, reloaded from source before every batch."""

    path: str


@dataclass
class ModuleReferenceList:
    """Several test modules, run in order."""

    paths: list[str]


TestSuite = Union[InlineTests, ModuleReference, ModuleReferenceList]


def as_test_suite(tests: TestSuite | Mapping[str, TestCase] | str | os.PathLike | Sequence[Any]) -> TestSuite:
    """Normalise the accepted ``tests`` shapes into a :data:`TestSuite` variant."""
    if isinstance(tests, (InlineTests, ModuleReference, ModuleReferenceList)):
        return tests
    if isinstance(tests, Mapping):
        return InlineTests(cases=tests)
    if isinstance(tests, (str, os.PathLike)):
        return ModuleReference(path=os.fspath(tests))
    if isinstance(tests, Sequence):
        paths = []
        for item in tests:
            if not isinstance(item, (str, os.PathLike)):
                raise TypeError(f"Test module list entries must be paths, got {type(item).__name__}")
            paths.append(os.fspath(item))
        return ModuleReferenceList(paths=paths)
    raise TypeError(f"Unsupported tests specification: {type(tests).__name__}")


def suite_module_paths(suite: TestSuite) -> list[str]:
    """Return the test module paths a suite references (empty for inline tests)."""
    if isinstance(suite, ModuleReference):
        return [suite.path]
    if isinstance(suite, ModuleReferenceList):
        return list(suite.paths)
    return []


def resolve_path(path: str | os.PathLike, base_dir: str | os.PathLike) -> str:
    """Resolve ``path`` against ``base_dir`` when relative."""
    p = Path(path)
    if not p.is_absolute():
        p = Path(base_dir) / p
    return str(p.resolve())


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return os.fspath(value)
