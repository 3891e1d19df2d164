"""Bounded-timeout upload-client calls and their three-way failure classification.

The upload client's exit code is not sufficient evidence of success: a transfer
rejected by the remote store can still exit cleanly. Its captured output is
therefore part of the interface, and the signatures below must be revisited if
the client's output format changes. Any line with the word `error` or `errors`
counts as a rejection, except a zero-count summary such as `errors: 0`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .process_runner import REDACTED, ProcessRunner, ProcessTimeout, describe_command

LOGGER = logging.getLogger(__name__)

FAILURE_SIGNATURES: tuple[re.Pattern[str], ...] = (
    re.compile(r"AuthenticationFailed", re.IGNORECASE),
    re.compile(r"AuthorizationFailure", re.IGNORECASE),
    re.compile(r"AuthorizationPermissionMismatch", re.IGNORECASE),
    # Zero-count summary lines such as "Number of errors: 0" are not failures.
    re.compile(r"\berrors?\b(?!\s*:\s*0\b)", re.IGNORECASE),
)


class TransferFailureKind(str, Enum):
    """Ways a bounded upload-client call can fail."""

    TIMEOUT = "timeout"
    PROCESS_FAILURE = "process_failure"
    REMOTE_REJECTED = "remote_rejected"


@dataclass(frozen=True)
class TransferFailure:
    """Classified failure of one upload-client call."""

    kind: TransferFailureKind
    diagnostic: str


def find_failure_signature(output: str) -> str | None:
    """Return the first output line matching a known rejection signature."""
    for line in output.splitlines():
        for pattern in FAILURE_SIGNATURES:
            if pattern.search(line):
                return line.strip()
    return None


def run_bounded_transfer(
    runner: ProcessRunner,
    command: Sequence[str],
    *,
    timeout_seconds: float,
    secrets: Sequence[str | None] = (),
) -> TransferFailure | None:
    """Run one upload-client command under a deadline; None means the transfer succeeded."""
    rendered = describe_command(command, secrets)
    LOGGER.info("Running transfer (deadline %ss): %s", timeout_seconds, rendered)
    try:
        result = runner.run(command, timeout_seconds=timeout_seconds)
    except ProcessTimeout as exc:
        diagnostic = f"Transfer did not finish within {timeout_seconds:g} seconds."
        last_lines = exc.output.strip().splitlines()
        if last_lines:
            diagnostic += f" Last output: {_mask(last_lines[-1], secrets)}"
        return TransferFailure(kind=TransferFailureKind.TIMEOUT, diagnostic=diagnostic)
    if not result.succeeded:
        return TransferFailure(
            kind=TransferFailureKind.PROCESS_FAILURE,
            diagnostic=(
                f"Upload client exited with code {result.return_code}: "
                f"{_mask(result.output.strip(), secrets) or 'no output'}"
            ),
        )
    signature = find_failure_signature(result.output)
    if signature is not None:
        return TransferFailure(
            kind=TransferFailureKind.REMOTE_REJECTED,
            diagnostic=f"Remote store rejected the transfer: {_mask(signature, secrets)}",
        )
    return None


def _mask(text: str, secrets: Sequence[str | None]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
