"""Fail-fast test upload to the configured remote store."""

from __future__ import annotations

import logging
import socket
from pathlib import Path

from kape_runner.configuration.runtime_settings import RemoteStorage
from kape_runner.process_execution import (
    ProcessRunner,
    SubprocessRunner,
    TransferFailureKind,
    run_bounded_transfer,
)

LOGGER = logging.getLogger(__name__)


class ConnectivityError(Exception):
    """Raised when the test upload times out, fails, or is rejected by the remote store."""

    def __init__(self, kind: TransferFailureKind, diagnostic: str) -> None:
        super().__init__(f"Connectivity check failed ({kind.value}): {diagnostic}")
        self.kind = kind
        self.diagnostic = diagnostic


def probe(
    storage: RemoteStorage,
    uploader: Path,
    *,
    work_dir: Path,
    timeout_seconds: float,
    runner: ProcessRunner | None = None,
    host_name: str | None = None,
) -> None:
    """Upload a disposable marker file; the marker is removed on every exit path.

    Raises:
      ConnectivityError: If the upload times out, the client fails, or the output
        carries a rejection signature.
    """
    process_runner = runner or SubprocessRunner()
    marker_name = f"connectivity_test_{host_name or socket.gethostname()}.txt"
    marker = Path(work_dir) / marker_name
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text("kape-runner connectivity test\n", encoding="utf-8")
    try:
        failure = run_bounded_transfer(
            process_runner,
            (str(uploader), "copy", str(marker), storage.blob_url(marker_name)),
            timeout_seconds=timeout_seconds,
            secrets=(storage.token.lstrip("?"),),
        )
    finally:
        marker.unlink(missing_ok=True)
    if failure is not None:
        raise ConnectivityError(failure.kind, failure.diagnostic)
    LOGGER.info(
        "Connectivity check to %s/%s succeeded", storage.account, storage.container
    )
