"""Transaction client for submitting actions to the test node.

The tester only needs one operation: submit an ordered list of actions as
a single transaction. ``HttpTransactionClient`` forwards them to the test
harness, which holds the keys and signs on the tester's behalf.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence, runtime_checkable

import httpx

from retester.core.errors import TransactionFailure
from retester.core.types import Action

logger = logging.getLogger(__name__)


@runtime_checkable
class TransactionClient(Protocol):
    """Submits actions atomically as one transaction."""

    async def transact(self, actions: Sequence[Action]) -> Any:
        ...


class HttpTransactionClient:
    """Async client posting transactions to the test harness.

    Usage::

        async with HttpTransactionClient("http://127.0.0.1:8787") as client:
            await client.transact([action])
    """

    def __init__(
        self,
        base_url: str,
        transact_path: str = "/transact",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._transact_path = transact_path
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", "User-Agent": "retester/0.1.0"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    # ── Context manager ──────────────────────────────────────────────

    async def __aenter__(self) -> HttpTransactionClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ── Operations ───────────────────────────────────────────────────

    async def transact(self, actions: Sequence[Action]) -> Any:
        """Submit ``actions`` as one transaction. Failures are not retried."""
        payload = {"actions": [a.model_dump() for a in actions]}
        try:
            resp = await self._client.post(self._transact_path, json=payload)
        except httpx.HTTPError as e:
            raise TransactionFailure(f"Transaction request failed: {e}") from e

        body = _json_or_text(resp)
        if resp.status_code >= 400:
            raise TransactionFailure(
                f"Transaction rejected ({resp.status_code}): {_error_message(body)}",
                status_code=resp.status_code,
                response=body,
            )
        if isinstance(body, dict) and body.get("error"):
            raise TransactionFailure(
                f"Transaction failed: {_error_message(body)}",
                status_code=resp.status_code,
                response=body,
            )

        logger.debug("Transaction accepted: %d action(s)", len(actions))
        return body


def _json_or_text(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            return str(error.get("what") or error.get("message") or error)
        return str(error)
    return str(body)[:500]
