"""Deployment of changed contract artifacts.

Builds ``setcode`` / ``setabi`` actions on the system contract for one
account and submits them together as a single transaction.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from retester.chain.client import TransactionClient
from retester.core.errors import FileUnavailableError, ParseError
from retester.core.types import Action, ContractChange, PermissionLevel
from retester.deploy.abi_codec import encode_abi_hex

logger = logging.getLogger(__name__)


class DeploymentApplier:
    """Installs new contract code and/or ABI for an account."""

    def __init__(
        self,
        client: TransactionClient,
        system_account: str = "eosio",
        permission: str = "active",
    ) -> None:
        self.client = client
        self.system_account = system_account
        self.permission = permission

    def build_actions(
        self,
        account: str,
        interface_file_path: str | None = None,
        binary_file_path: str | None = None,
    ) -> list[Action]:
        """Return zero, one or two actions: setcode first, then setabi."""
        auth = [PermissionLevel(actor=account, permission=self.permission)]
        actions: list[Action] = []

        if binary_file_path:
            code = _read_bytes(binary_file_path).hex()
            actions.append(
                Action(
                    account=self.system_account,
                    name="setcode",
                    authorization=auth,
                    data={"account": account, "vmtype": 0, "vmversion": 0, "code": code},
                )
            )

        if interface_file_path:
            text = _read_bytes(interface_file_path)
            try:
                abi_hex = encode_abi_hex(text, path=interface_file_path)
            except ParseError as e:
                if e.path is None:
                    raise ParseError(interface_file_path, e.reason) from e
                raise
            actions.append(
                Action(
                    account=self.system_account,
                    name="setabi",
                    authorization=auth,
                    data={"account": account, "abi": abi_hex},
                )
            )

        return actions

    async def apply_paths(
        self,
        account: str,
        interface_file_path: str | None = None,
        binary_file_path: str | None = None,
    ) -> Any:
        """Submit the actions for one account; returns ``None`` when there is nothing to do."""
        actions = self.build_actions(account, interface_file_path, binary_file_path)
        if not actions:
            return None
        logger.debug(
            "Submitting %s for %s",
            ", ".join(a.name for a in actions),
            account,
            extra={"account": account},
        )
        return await self.client.transact(actions)

    async def apply(self, change: ContractChange) -> Any:
        return await self.apply_paths(
            change.account,
            interface_file_path=change.interface_file_path,
            binary_file_path=change.binary_file_path,
        )


def _read_bytes(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise FileUnavailableError(path, e) from e
