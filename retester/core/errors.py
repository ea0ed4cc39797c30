"""Exception hierarchy for the realtime contract tester.

Only artifact discovery failures are fatal to a run; every other error is
caught by the watch loop, logged, and the loop keeps going.
"""

from __future__ import annotations

from typing import Any


class RetesterError(Exception):
    """Base exception for all tester errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AmbiguousArtifactError(RetesterError):
    """More than one interface or binary file was found in a contract directory."""

    def __init__(self, directory: str, kind: str, candidates: list[str]) -> None:
        flag = "interface_file_path" if kind == "abi" else "binary_file_path"
        super().__init__(
            f"Found multiple {kind.upper()} files at {directory}: {', '.join(candidates)}. "
            f"Either ensure there is only 1 or set {flag} manually"
        )
        self.directory = directory
        self.kind = kind
        self.candidates = candidates


MultipleArtifactsError = AmbiguousArtifactError


class ParseError(RetesterError):
    """An interface description could not be parsed or encoded."""

    def __init__(self, path: str | None, reason: str) -> None:
        where = f" in {path}" if path else ""
        super().__init__(f"Invalid interface description{where}: {reason}")
        self.path = path
        self.reason = reason


class FileUnavailableError(RetesterError):
    """A path that should exist could not be stat'd or read."""

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        detail = f": {cause}" if cause else ""
        super().__init__(f"File unavailable: {path}{detail}")
        self.path = path
        self.cause = cause


class TransactionFailure(RetesterError):
    """The transaction client rejected or failed to submit a transaction."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class HostError(RetesterError):
    """The test harness failed to snapshot, restore, or report its nodes."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TestLoadError(RetesterError):
    """A test module could not be imported or did not expose any test cases."""

    __test__ = False

    def __init__(self, path: str, cause: Exception | str) -> None:
        super().__init__(f"Failed to load tests from {path}: {cause}")
        self.path = path
        self.cause = cause
