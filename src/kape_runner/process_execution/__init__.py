"""External process execution exports."""

from .process_runner import (
    ProcessResult,
    ProcessRunner,
    ProcessTimeout,
    SubprocessRunner,
    describe_command,
)
from .transfer_outcomes import (
    FAILURE_SIGNATURES,
    TransferFailure,
    TransferFailureKind,
    find_failure_signature,
    run_bounded_transfer,
)

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "ProcessTimeout",
    "SubprocessRunner",
    "describe_command",
    "FAILURE_SIGNATURES",
    "TransferFailure",
    "TransferFailureKind",
    "find_failure_signature",
    "run_bounded_transfer",
]
