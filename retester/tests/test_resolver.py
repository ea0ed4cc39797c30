"""Tests for artifact discovery (retester/watch/resolver.py).

Covers:
- Directory discovery of one .abi and one .wasm
- Ambiguous directories failing before any path is assigned
- Case-insensitive extensions
- Skipping entries with explicit paths or no directory
- Relative and absolute directory resolution
- Watched-file resolution and deduplication
"""

from __future__ import annotations

from pathlib import Path

import pytest

from retester.core.errors import AmbiguousArtifactError, FileUnavailableError, MultipleArtifactsError
from retester.core.types import MonitoredContract, MonitoredFile
from retester.watch.resolver import resolve_artifacts, resolve_contract, resolve_watched_files


class TestResolveContract:
    def test_discovers_abi_and_wasm(self, alice_project):
        contract = MonitoredContract(account="alice", contract_directory="contracts/alice")
        resolve_artifacts(alice_project["test_file"], [contract])
        assert contract.interface_file_path == str(alice_project["abi"].resolve())
        assert contract.binary_file_path == str(alice_project["wasm"].resolve())

    def test_two_abis_raise_before_assignment(self, tmp_path: Path):
        d = tmp_path / "c"
        d.mkdir()
        (d / "a.abi").write_text("{}")
        (d / "b.abi").write_text("{}")
        (d / "c.wasm").write_bytes(b"")
        contract = MonitoredContract(account="bob", contract_directory=str(d))

        with pytest.raises(AmbiguousArtifactError) as exc_info:
            resolve_contract(tmp_path, contract)

        assert exc_info.value.kind == "abi"
        assert len(exc_info.value.candidates) == 2
        assert contract.interface_file_path is None
        assert contract.binary_file_path is None

    def test_two_wasms_raise(self, tmp_path: Path):
        d = tmp_path / "c"
        d.mkdir()
        (d / "a.wasm").write_bytes(b"")
        (d / "b.WASM").write_bytes(b"")
        contract = MonitoredContract(account="bob", contract_directory="c")
        with pytest.raises(MultipleArtifactsError):
            resolve_contract(tmp_path, contract)

    def test_explicit_abi_disambiguates_directory(self, tmp_path: Path):
        d = tmp_path / "c"
        d.mkdir()
        (d / "a.abi").write_text("{}")
        (d / "b.abi").write_text("{}")
        (d / "c.wasm").write_bytes(b"")
        contract = MonitoredContract(
            account="bob", contract_directory="c", interface_file_path=str(d / "b.abi"),
        )

        resolve_contract(tmp_path, contract)

        assert contract.interface_file_path == str(d / "b.abi")
        assert contract.binary_file_path == str((d / "c.wasm").resolve())

    def test_explicit_wasm_does_not_settle_ambiguous_abis(self, tmp_path: Path):
        d = tmp_path / "c"
        d.mkdir()
        (d / "a.abi").write_text("{}")
        (d / "b.abi").write_text("{}")
        (d / "a.wasm").write_bytes(b"")
        (d / "b.wasm").write_bytes(b"")
        contract = MonitoredContract(
            account="bob", contract_directory="c", binary_file_path=str(d / "a.wasm"),
        )
        with pytest.raises(AmbiguousArtifactError) as exc_info:
            resolve_contract(tmp_path, contract)
        assert exc_info.value.kind == "abi"
        assert contract.interface_file_path is None

    def test_extension_is_case_insensitive(self, tmp_path: Path):
        d = tmp_path / "c"
        d.mkdir()
        (d / "token.ABI").write_text("{}")
        (d / "token.Wasm").write_bytes(b"")
        (d / "notes.txt").write_text("ignored")
        contract = resolve_contract(tmp_path, MonitoredContract(account="tok", contract_directory="c"))
        assert contract.interface_file_path.endswith("token.ABI")
        assert contract.binary_file_path.endswith("token.Wasm")

    def test_explicit_paths_skip_discovery(self, tmp_path: Path):
        contract = MonitoredContract(
            account="alice",
            contract_directory="does-not-exist",
            interface_file_path="/x/a.abi",
            binary_file_path="/x/a.wasm",
        )
        resolve_contract(tmp_path, contract)
        assert contract.interface_file_path == "/x/a.abi"

    def test_no_directory_is_noop(self, tmp_path: Path):
        contract = resolve_contract(tmp_path, MonitoredContract(account="alice"))
        assert contract.artifact_paths == []

    def test_absolute_directory(self, alice_project, tmp_path: Path):
        contract = MonitoredContract(account="alice", contract_directory=str(alice_project["contract_dir"]))
        resolve_contract(tmp_path / "elsewhere", contract)
        assert contract.binary_file_path == str(alice_project["wasm"].resolve())

    def test_missing_directory(self, tmp_path: Path):
        contract = MonitoredContract(account="alice", contract_directory="missing")
        with pytest.raises(FileUnavailableError):
            resolve_contract(tmp_path, contract)

    def test_explicit_relative_paths_resolved_against_test_file(self, alice_project):
        contract = MonitoredContract(account="alice", binary_file_path="contracts/alice/alice.wasm")
        resolve_artifacts(alice_project["test_file"], [contract])
        assert contract.binary_file_path == str(alice_project["wasm"].resolve())


class TestResolveWatchedFiles:
    def test_relative_to_test_file(self, alice_project):
        files = resolve_watched_files(alice_project["test_file"], ["helpers.py"])
        assert [f.path for f in files] == [str(alice_project["helpers"].resolve())]

    def test_deduplicates_by_resolved_path(self, alice_project):
        helpers = alice_project["helpers"]
        existing = [MonitoredFile(path=str(helpers.resolve()))]
        files = resolve_watched_files(
            alice_project["test_file"],
            ["helpers.py", "./helpers.py", str(helpers)],
            existing=existing,
        )
        assert len(files) == 1

    def test_missing_file_is_still_tracked(self, alice_project):
        files = resolve_watched_files(alice_project["test_file"], ["later.py"])
        assert len(files) == 1
        assert files[0].exists is False
