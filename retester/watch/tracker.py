"""Change tracking for monitored contracts and files.

The tracker keeps the last-seen signature of every watched path. A diff
pass reports what differs from those baselines and advances them, so two
passes in a row with no file system change return an empty second result.
``peek`` and ``acknowledge`` split that into an observe step and a commit
step for callers that want to retry a failed apply.
"""

from __future__ import annotations

import logging
from typing import Iterable

from retester.core.types import ChangeSet, ContractChange, MonitoredContract, MonitoredFile
from retester.watch.detectors import ChangeDetector, MtimeDetector

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Tracks monitored contract artifacts and arbitrary files."""

    def __init__(
        self,
        contracts: Iterable[MonitoredContract] = (),
        files: Iterable[MonitoredFile] = (),
        detector: ChangeDetector | None = None,
    ) -> None:
        self.contracts = list(contracts)
        self.files = list(files)
        self.detector = detector or MtimeDetector()

    @property
    def is_empty(self) -> bool:
        return not self.contracts and not self.files

    # ── Observe ──────────────────────────────────────────────────────────

    def peek_contracts(self) -> ChangeSet:
        """Report changed contract artifacts without advancing baselines.

        Artifact paths are expected to exist once resolved; a missing one
        raises ``FileUnavailableError`` and aborts the pass.
        """
        result = ChangeSet()
        for contract in self.contracts:
            interface_changed = False
            binary_changed = False

            if contract.interface_file_path:
                sig = self.detector.observe(contract.interface_file_path)
                if sig != contract.interface_last_seen:
                    interface_changed = True
                    result.signatures[contract.interface_file_path] = sig

            if contract.binary_file_path:
                sig = self.detector.observe(contract.binary_file_path)
                if sig != contract.binary_last_seen:
                    binary_changed = True
                    result.signatures[contract.binary_file_path] = sig

            if interface_changed or binary_changed:
                result.contracts.append(
                    ContractChange(
                        account=contract.account,
                        interface_file_path=contract.interface_file_path if interface_changed else None,
                        binary_file_path=contract.binary_file_path if binary_changed else None,
                    )
                )
        return result

    def peek_files(self) -> ChangeSet:
        """Report changed files without advancing baselines. Missing files are skipped."""
        result = ChangeSet()
        for watched in self.files:
            if not watched.exists:
                continue
            sig = self.detector.observe(watched.path)
            if sig != watched.last_seen:
                result.files.append(watched)
                result.signatures[watched.path] = sig
        return result

    def peek(self) -> ChangeSet:
        contracts = self.peek_contracts()
        files = self.peek_files()
        return ChangeSet(
            contracts=contracts.contracts,
            files=files.files,
            signatures={**contracts.signatures, **files.signatures},
        )

    # ── Commit ───────────────────────────────────────────────────────────

    def acknowledge(self, change_set: ChangeSet) -> None:
        """Advance baselines to the signatures observed in ``change_set``."""
        seen = change_set.signatures
        for change in change_set.contracts:
            for contract in self.contracts:
                if contract.account != change.account:
                    continue
                path = change.interface_file_path
                if path and path == contract.interface_file_path and path in seen:
                    contract.interface_last_seen = seen[path]
                path = change.binary_file_path
                if path and path == contract.binary_file_path and path in seen:
                    contract.binary_last_seen = seen[path]
        for watched in change_set.files:
            if watched.path in seen:
                watched.last_seen = seen[watched.path]

    # ── Diff (observe + commit) ──────────────────────────────────────────

    def diff_contracts(self) -> list[ContractChange]:
        change_set = self.peek_contracts()
        self.acknowledge(change_set)
        return change_set.contracts

    def diff_files(self) -> list[MonitoredFile]:
        change_set = self.peek_files()
        self.acknowledge(change_set)
        return change_set.files

    def diff(self) -> ChangeSet:
        change_set = self.peek()
        self.acknowledge(change_set)
        if change_set:
            logger.debug(
                "Diff pass: %d contract(s), %d file(s) changed",
                len(change_set.contracts),
                len(change_set.files),
            )
        return change_set

    def seed(self) -> None:
        """Throwaway diff pass establishing the initial baselines."""
        self.diff()
