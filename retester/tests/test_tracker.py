"""Tests for change tracking (retester/watch/tracker.py, retester/watch/detectors.py)."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from retester.core.errors import FileUnavailableError
from retester.core.types import MonitoredContract, MonitoredFile
from retester.tests.conftest import bump_mtime
from retester.watch.detectors import ContentHashDetector, MtimeDetector, get_detector
from retester.watch.tracker import ChangeTracker


@pytest.fixture
def alice(alice_project) -> MonitoredContract:
    return MonitoredContract(
        account="alice",
        interface_file_path=str(alice_project["abi"]),
        binary_file_path=str(alice_project["wasm"]),
    )


class TestContractDiff:
    def test_first_pass_reports_everything(self, alice):
        tracker = ChangeTracker([alice])
        changes = tracker.diff_contracts()
        assert len(changes) == 1
        assert changes[0].account == "alice"
        assert changes[0].redeploys_interface
        assert changes[0].redeploys_binary

    def test_second_pass_is_empty(self, alice):
        tracker = ChangeTracker([alice])
        tracker.diff_contracts()
        assert tracker.diff_contracts() == []

    def test_binary_only_change_nulls_interface(self, alice, alice_project):
        tracker = ChangeTracker([alice])
        tracker.seed()
        bump_mtime(alice_project["wasm"])

        changes = tracker.diff_contracts()
        assert len(changes) == 1
        assert changes[0].binary_file_path == str(alice_project["wasm"])
        assert changes[0].interface_file_path is None

    def test_missing_artifact_path_is_skipped(self, alice_project):
        contract = MonitoredContract(account="alice", binary_file_path=str(alice_project["wasm"]))
        tracker = ChangeTracker([contract])
        changes = tracker.diff_contracts()
        assert changes[0].interface_file_path is None
        assert contract.interface_last_seen is None

    def test_deleted_artifact_raises(self, alice, alice_project):
        tracker = ChangeTracker([alice])
        tracker.seed()
        alice_project["wasm"].unlink()
        with pytest.raises(FileUnavailableError):
            tracker.diff_contracts()


class TestFileDiff:
    def test_nonexistent_file_reported_once_after_creation(self, tmp_path: Path):
        path = tmp_path / "later.txt"
        watched = MonitoredFile(path=str(path))
        tracker = ChangeTracker(files=[watched])

        assert tracker.diff_files() == []
        assert tracker.diff_files() == []

        path.write_text("now")
        assert tracker.diff_files() == [watched]
        assert tracker.diff_files() == []

    def test_touch_reports_change(self, alice_project):
        watched = MonitoredFile(path=str(alice_project["helpers"]))
        tracker = ChangeTracker(files=[watched])
        tracker.seed()
        bump_mtime(alice_project["helpers"])
        assert tracker.diff_files() == [watched]


class TestPeekAcknowledge:
    def test_peek_does_not_advance(self, alice):
        tracker = ChangeTracker([alice])
        first = tracker.peek()
        second = tracker.peek()
        assert len(first.contracts) == 1
        assert len(second.contracts) == 1
        assert alice.binary_last_seen is None

    def test_acknowledge_advances(self, alice, alice_project):
        tracker = ChangeTracker([alice], [MonitoredFile(path=str(alice_project["helpers"]))])
        change_set = tracker.peek()
        tracker.acknowledge(change_set)
        assert not tracker.peek()
        assert alice.binary_last_seen == os.stat(alice_project["wasm"]).st_mtime_ns

    def test_diff_twice_second_empty(self, alice, alice_project):
        tracker = ChangeTracker([alice], [MonitoredFile(path=str(alice_project["helpers"]))])
        first = tracker.diff()
        assert len(first) == 2
        assert first.contract_changed
        assert not tracker.diff()


class TestDetectors:
    def test_get_detector(self):
        assert isinstance(get_detector("mtime"), MtimeDetector)
        assert isinstance(get_detector("HASH"), ContentHashDetector)
        with pytest.raises(ValueError):
            get_detector("inotify")

    def test_hash_ignores_touch(self, alice_project):
        watched = MonitoredFile(path=str(alice_project["helpers"]))
        tracker = ChangeTracker(files=[watched], detector=ContentHashDetector())
        tracker.seed()
        bump_mtime(alice_project["helpers"])
        assert tracker.diff_files() == []

        alice_project["helpers"].write_text("VALUE = 2\n")
        assert tracker.diff_files() == [watched]

    def test_missing_path(self, tmp_path: Path):
        for detector in (MtimeDetector(), ContentHashDetector()):
            with pytest.raises(FileUnavailableError):
                detector.observe(str(tmp_path / "nope"))
