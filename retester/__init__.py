"""retester — realtime regression testing for smart contract deployments.

Watches compiled contract artifacts and test files; on every change the
chain is rolled back to a snapshot, changed contracts are redeployed, and
the tests run again against the same long-lived node.
"""

from retester.core.errors import (
    AmbiguousArtifactError,
    FileUnavailableError,
    MultipleArtifactsError,
    ParseError,
    RetesterError,
    TransactionFailure,
)
from retester.core.types import (
    InlineTests,
    ModuleReference,
    ModuleReferenceList,
    MonitoredContract,
    MonitoredFile,
)

__version__ = "0.1.0"

__all__ = [
    "AmbiguousArtifactError",
    "FileUnavailableError",
    "InlineTests",
    "ModuleReference",
    "ModuleReferenceList",
    "MonitoredContract",
    "MonitoredFile",
    "MultipleArtifactsError",
    "ParseError",
    "RetesterError",
    "TransactionFailure",
]
