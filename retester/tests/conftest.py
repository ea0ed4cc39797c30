"""Shared fixtures for the retester test suite."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

from retester.core.config import Settings
from retester.core.types import Action

MINIMAL_ABI = {
    "version": "eosio::abi/1.1",
    "structs": [
        {"name": "hi", "base": "", "fields": [{"name": "user", "type": "name"}]},
    ],
    "actions": [{"name": "hi", "type": "hi", "ricardian_contract": ""}],
}


# ── Helpers ──────────────────────────────────────────────────────────────────


def bump_mtime(path: Path, seconds: int = 1) -> None:
    """Advance a file's mtime without touching its contents."""
    st = os.stat(path)
    new = st.st_mtime_ns + seconds * 1_000_000_000
    os.utime(path, ns=(st.st_atime_ns, new))


class FakeHost:
    """In-memory host recording snapshot/restore calls."""

    def __init__(self, file_path: str | Path, node_instance_count: int = 1) -> None:
        self.file_path = str(file_path)
        self.node_instance_count = node_instance_count
        self.snapshots: list[str] = []
        self.restores: list[Any] = []

    async def snapshot(self, label: str) -> str:
        self.snapshots.append(label)
        return f"handle-{len(self.snapshots) - 1}"

    async def restore(self, handle: Any) -> None:
        self.restores.append(handle)


class FakeClient:
    """Transaction client recording submitted transactions."""

    def __init__(self, error: Exception | None = None) -> None:
        self.transactions: list[list[Action]] = []
        self.error = error

    async def transact(self, actions: Sequence[Action]) -> dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.transactions.append(list(actions))
        return {"transaction_id": f"tx{len(self.transactions)}"}


class ScriptedSleep:
    """Async sleep replacement that runs one scripted step per poll.

    Only calls with ``poll_interval`` consume a step; other delays are just
    recorded.
    """

    def __init__(self, poll_interval: float, steps: Sequence[Callable[[], None]] = ()) -> None:
        self.poll_interval = poll_interval
        self.steps = list(steps)
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if seconds == self.poll_interval and self.steps:
            self.steps.pop(0)()

    @property
    def delays(self) -> list[float]:
        return [s for s in self.calls if s != self.poll_interval]


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(poll_interval=0.25, node_delay=1.0, change_detection="mtime")


@pytest.fixture
def alice_project(tmp_path: Path) -> dict[str, Path]:
    """A test file with contracts/alice/{alice.abi,alice.wasm} and helpers.py beside it."""
    contract_dir = tmp_path / "contracts" / "alice"
    contract_dir.mkdir(parents=True)
    abi = contract_dir / "alice.abi"
    abi.write_text(json.dumps(MINIMAL_ABI))
    wasm = contract_dir / "alice.wasm"
    wasm.write_bytes(b"\x00asm\x01\x00\x00\x00")
    helpers = tmp_path / "helpers.py"
    helpers.write_text("VALUE = 1\n")
    test_file = tmp_path / "test_alice.py"
    test_file.write_text("MONITOR_CONTRACTS = [{'account': 'alice', 'contract': 'contracts/alice'}]\n")
    return {
        "root": tmp_path,
        "test_file": test_file,
        "contract_dir": contract_dir,
        "abi": abi,
        "wasm": wasm,
        "helpers": helpers,
    }


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
