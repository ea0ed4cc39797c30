"""Test host: the process-side view of the running test file and its chain.

The watch loop needs four things from its host: the path of the test file
being run, how many node instances back the chain, and the ability to take
and roll back to a state snapshot. ``HttpTestHost`` provides them through
the test harness REST API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Protocol, runtime_checkable

import httpx

from retester.core.errors import HostError, TestLoadError
from retester.core.types import MonitoredContract
from retester.runner.loader import import_fresh

logger = logging.getLogger(__name__)


@runtime_checkable
class TestHost(Protocol):
    """Host primitives consumed by the watch loop."""

    file_path: str
    node_instance_count: int

    async def snapshot(self, label: str) -> Any:
        ...

    async def restore(self, handle: Any) -> None:
        ...


# ── Declarations ─────────────────────────────────────────────────────────────


@dataclass
class TestDeclaration:
    """What a test file asks to have monitored."""

    __test__ = False

    contracts: list[MonitoredContract] = field(default_factory=list)
    files: list[str] = field(default_factory=list)

    @classmethod
    def from_entries(
        cls,
        contracts: Iterable[Any] = (),
        files: Iterable[Any] = (),
    ) -> TestDeclaration:
        return cls(
            contracts=[MonitoredContract.from_declaration(c) for c in contracts],
            files=[str(f) for f in files],
        )


def load_declaration(test_file_path: str | Path) -> TestDeclaration:
    """Import a test file and read its monitoring declarations.

    ``monitor_contracts()`` / ``monitor_files()`` callables take precedence
    over ``MONITOR_CONTRACTS`` / ``MONITOR_FILES`` constants. A file that
    declares neither monitors nothing.
    """
    module = import_fresh(test_file_path, prefix="retester_decl_")

    def _read(func_name: str, const_name: str) -> list[Any]:
        func = getattr(module, func_name, None)
        if callable(func):
            try:
                value = func()
            except Exception as e:
                raise TestLoadError(str(test_file_path), e) from e
        else:
            value = getattr(module, const_name, None)
        return list(value or [])

    try:
        return TestDeclaration.from_entries(
            contracts=_read("monitor_contracts", "MONITOR_CONTRACTS"),
            files=_read("monitor_files", "MONITOR_FILES"),
        )
    except (TypeError, ValueError) as e:
        raise TestLoadError(str(test_file_path), e) from e


# ── HTTP host ────────────────────────────────────────────────────────────────


class HttpTestHost:
    """Host backed by the test harness REST API."""

    __test__ = False

    def __init__(
        self,
        file_path: str | Path,
        base_url: str,
        snapshot_path: str = "/snapshot",
        restore_path: str = "/restore",
        nodes_path: str = "/nodes",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.file_path = str(Path(file_path).resolve())
        self.node_instance_count = 1
        self._snapshot_path = snapshot_path
        self._restore_path = restore_path
        self._nodes_path = nodes_path
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> HttpTestHost:
        await self.refresh_nodes()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            resp = await self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise HostError(f"Harness request to {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise HostError(
                f"Harness {path} returned {resp.status_code}: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError:
            return resp.text

    async def refresh_nodes(self) -> int:
        """Fetch the number of node instances from the harness."""
        try:
            resp = await self._client.get(self._nodes_path)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise HostError(f"Could not read node instances: {e}") from e

        if isinstance(body, dict):
            if "count" in body:
                count = int(body["count"])
            else:
                count = len(body.get("nodes", []))
        elif isinstance(body, list):
            count = len(body)
        else:
            raise HostError(f"Unexpected node listing: {body!r}")
        self.node_instance_count = max(count, 1)
        return self.node_instance_count

    async def snapshot(self, label: str) -> Any:
        body = await self._post(self._snapshot_path, {"label": label})
        if isinstance(body, dict):
            return body.get("id", body.get("snapshot", label))
        return body or label

    async def restore(self, handle: Any) -> None:
        await self._post(self._restore_path, {"id": handle})
