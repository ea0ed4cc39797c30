"""Watch loop: run tests, wait for artifact changes, roll back, redeploy, repeat.

State machine::

    INIT ─► RUN_BATCH ─► DONE                                  (one shot)
    INIT ─► RUN_BATCH ─► AWAIT_CHANGE ─► RESTORE ─► REDEPLOY ─► DELAY ─┐
                ▲                                                      │
                └──────────────────────────────────────────────────────┘

A fresh snapshot is taken on the first batch and after any batch whose
trigger included a contract change. A change that touched only watched
files restores from the same snapshot again, since no transaction mutated
chain state between the restore and the rerun.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from retester.chain.client import TransactionClient
from retester.chain.host import TestDeclaration, TestHost
from retester.core.config import Settings, get_settings
from retester.core.errors import FileUnavailableError
from retester.core.types import ChangeSet, ContractChange, as_test_suite, suite_module_paths
from retester.deploy.applier import DeploymentApplier
from retester.runner.runner import CaseResult, TestRunner
from retester.watch.detectors import ChangeDetector, get_detector
from retester.watch.resolver import resolve_artifacts, resolve_watched_files
from retester.watch.tracker import ChangeTracker

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py",)


class LoopState(str, Enum):
    INIT = "init"
    RUN_BATCH = "run_batch"
    AWAIT_CHANGE = "await_change"
    RESTORE = "restore"
    REDEPLOY = "redeploy"
    DELAY = "delay"
    DONE = "done"


@dataclass
class RunContext:
    """Passed to ``tests(context)`` factories and ``test_*(context)`` functions."""

    host: TestHost
    client: TransactionClient
    settings: Settings
    iteration: int = 0


def is_editable_source(path: str) -> bool:
    return Path(path).suffix.lower() in SOURCE_SUFFIXES


class RealtimeTester:
    """Runs a test suite once, or repeatedly as monitored artifacts change."""

    def __init__(
        self,
        host: TestHost,
        client: TransactionClient,
        settings: Settings | None = None,
        detector: ChangeDetector | None = None,
        runner: TestRunner | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_iterations: int | None = None,
    ) -> None:
        self.host = host
        self.client = client
        self.settings = settings or get_settings()
        self.detector = detector or get_detector(self.settings.change_detection)
        self.runner = runner or TestRunner()
        self.applier = DeploymentApplier(
            client,
            system_account=self.settings.system_account,
            permission=self.settings.deploy_permission,
        )
        self.max_iterations = max_iterations
        self._sleep = sleep

        self.state = LoopState.INIT
        self.iterations = 0
        self.snapshots_taken = 0
        self.tracker: ChangeTracker | None = None

    # ── Setup ────────────────────────────────────────────────────────────

    def build_tracker(self, declaration: TestDeclaration, module_paths: list[str]) -> ChangeTracker:
        """Resolve artifacts and watched files, and seed baselines."""
        test_file = self.host.file_path
        contracts = resolve_artifacts(test_file, declaration.contracts)
        files = resolve_watched_files(test_file, declaration.files)
        files = resolve_watched_files(test_file, module_paths, existing=files)

        tracker = ChangeTracker(contracts, files, detector=self.detector)
        for contract in tracker.contracts:
            for path in contract.artifact_paths:
                logger.info(
                    "Monitoring %s: %s",
                    contract.account,
                    path,
                    extra={"account": contract.account, "path": path},
                )
        for watched in tracker.files:
            suffix = "" if watched.exists else " (not created yet)"
            logger.info("Monitoring file: %s%s", watched.path, suffix, extra={"path": watched.path})

        tracker.seed()
        return tracker

    def should_watch(self, tracker: ChangeTracker, watch: bool | None = None) -> bool:
        if watch is False or tracker.is_empty:
            return False
        if watch is True:
            return True
        return is_editable_source(self.host.file_path)

    # ── Loop ─────────────────────────────────────────────────────────────

    async def run_tests(
        self,
        tests: Any,
        declaration: TestDeclaration | None = None,
        watch: bool | None = None,
    ) -> list[CaseResult]:
        """Run ``tests`` and, in watch mode, keep rerunning them on change.

        Returns the results of the last batch. In watch mode without
        ``max_iterations`` this only returns if cancelled.
        """
        suite = as_test_suite(tests)
        self.state = LoopState.INIT
        self.tracker = tracker = self.build_tracker(
            declaration or TestDeclaration(), suite_module_paths(suite),
        )

        watch_mode = self.should_watch(tracker, watch)
        if watch_mode:
            logger.info("> Running tests repeatedly")
        else:
            logger.info("> Running tests once")

        context = RunContext(host=self.host, client=self.client, settings=self.settings)
        snapshot: Any = None
        needs_snapshot = True
        results: list[CaseResult] = []

        while True:
            self.state = LoopState.RUN_BATCH
            self.iterations += 1
            context.iteration = self.iterations
            log_extra = {"iteration": self.iterations}

            if needs_snapshot:
                label = f"{self.settings.snapshot_label_prefix}-{self.snapshots_taken}"
                snapshot = await self.host.snapshot(label)
                self.snapshots_taken += 1
                logger.info("✔ Created a snapshot", extra={**log_extra, "snapshot": label})
            else:
                logger.debug("Reusing previous snapshot", extra=log_extra)

            results = await self.runner.run_suite(suite, context)

            if not watch_mode:
                break
            if self.max_iterations is not None and self.iterations >= self.max_iterations:
                break

            self.state = LoopState.AWAIT_CHANGE
            change_set = await self.await_change(tracker)

            self.runner.invalidate(watched.path for watched in change_set.files)

            self.state = LoopState.RESTORE
            await self.host.restore(snapshot)
            logger.info("✔ Restored from snapshot", extra=log_extra)

            self.state = LoopState.REDEPLOY
            await self.redeploy(change_set.contracts)

            needs_snapshot = change_set.contract_changed
            if needs_snapshot:
                self.state = LoopState.DELAY
                # Consecutive snapshots need distinct block state
                await self._sleep(self.settings.node_delay * self.host.node_instance_count)

            logger.info("> Repeating tests")

        self.state = LoopState.DONE
        return results

    async def await_change(self, tracker: ChangeTracker) -> ChangeSet:
        """Poll the tracker until something changes. Unbounded."""
        logger.info("> Waiting for smart contracts or files to be modified")
        last_error: str | None = None
        while True:
            try:
                change_set = tracker.diff()
            except FileUnavailableError as e:
                if e.message != last_error:
                    logger.warning("✗ %s", e.message, extra={"path": e.path})
                    last_error = e.message
            else:
                if change_set:
                    for watched in change_set.files:
                        logger.info("Changed: %s", watched.path, extra={"path": watched.path})
                    return change_set
            await self._sleep(self.settings.poll_interval)

    async def redeploy(self, changes: list[ContractChange]) -> int:
        """Apply contract changes in order; stop at the first failure.

        Returns the number of contracts refreshed.
        """
        refreshed = 0
        for change in changes:
            try:
                await self.applier.apply(change)
            except Exception as e:
                logger.error(
                    "✗ Failed to refresh %s: %s",
                    change.account,
                    e,
                    exc_info=e,
                    extra={"account": change.account},
                )
                break
            refreshed += 1
            logger.info("✔ Refreshed %s", change.account, extra={"account": change.account})
        return refreshed
