"""Artifact discovery for monitored contracts.

Contracts declared with a directory instead of explicit paths get their
``.abi`` and ``.wasm`` files located here. Only the immediate directory
contents are scanned; file contents are never read.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from retester.core.errors import AmbiguousArtifactError, FileUnavailableError
from retester.core.types import MonitoredContract, MonitoredFile, resolve_path

logger = logging.getLogger(__name__)

INTERFACE_SUFFIX = ".abi"
BINARY_SUFFIX = ".wasm"


def resolve_contract(base_dir: str | os.PathLike, contract: MonitoredContract) -> MonitoredContract:
    """Populate the artifact paths of one contract in place."""
    if contract.interface_file_path and contract.binary_file_path:
        return contract
    if not contract.contract_directory:
        return contract

    directory = resolve_path(contract.contract_directory, base_dir)
    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        raise FileUnavailableError(directory, e) from e

    abis: list[str] = []
    wasms: list[str] = []
    for name in entries:
        full = os.path.join(directory, name)
        if not os.path.isfile(full):
            continue
        suffix = Path(name).suffix.lower()
        if suffix == INTERFACE_SUFFIX:
            abis.append(full)
        elif suffix == BINARY_SUFFIX:
            wasms.append(full)

    # Fail before assigning anything; an explicit path settles its own kind
    if len(abis) > 1 and not contract.interface_file_path:
        raise AmbiguousArtifactError(directory, "abi", abis)
    if len(wasms) > 1 and not contract.binary_file_path:
        raise AmbiguousArtifactError(directory, "wasm", wasms)

    if abis and not contract.interface_file_path:
        contract.interface_file_path = abis[0]
    if wasms and not contract.binary_file_path:
        contract.binary_file_path = wasms[0]

    if not contract.artifact_paths:
        logger.warning("No .abi or .wasm found for %s in %s", contract.account, directory)
    return contract


def resolve_artifacts(
    test_file_path: str | os.PathLike, contracts: Iterable[MonitoredContract],
) -> list[MonitoredContract]:
    """Resolve every contract relative to the test file's directory."""
    base_dir = Path(test_file_path).resolve().parent
    resolved = []
    for contract in contracts:
        resolved.append(resolve_contract(base_dir, contract))
        # Explicit relative paths are also taken relative to the test file
        if contract.interface_file_path:
            contract.interface_file_path = resolve_path(contract.interface_file_path, base_dir)
        if contract.binary_file_path:
            contract.binary_file_path = resolve_path(contract.binary_file_path, base_dir)
    return resolved


def resolve_watched_files(
    test_file_path: str | os.PathLike,
    paths: Iterable[str | os.PathLike],
    existing: Iterable[MonitoredFile] = (),
) -> list[MonitoredFile]:
    """Build ``MonitoredFile`` entries, deduplicated by resolved path."""
    base_dir = Path(test_file_path).resolve().parent
    files = list(existing)
    seen = {f.path for f in files}
    for path in paths:
        resolved = resolve_path(path, base_dir)
        if resolved in seen:
            continue
        seen.add(resolved)
        files.append(MonitoredFile(path=resolved))
    return files
