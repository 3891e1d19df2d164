"""Run supervision entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from kape_runner.command_composition.run_plan import PipelineStage
from kape_runner.process_execution import TransferFailureKind


class RunStatus(str, Enum):
    """Result of a run as reported to the operator."""

    SUCCEEDED = "succeeded"
    FAILED_PREFLIGHT = "failed_preflight"
    FAILED_PROVISIONING = "failed_provisioning"
    FAILED_VALIDATION = "failed_validation"
    FAILED_CAPACITY = "failed_capacity"
    FAILED_CONNECTIVITY = "failed_connectivity"
    FAILED_COLLECTION = "failed_collection"
    FAILED_COMPRESSION = "failed_compression"
    FAILED_UPLOAD = "failed_upload"
    FAILED_LAUNCH = "failed_launch"
    DETACHED = "detached"

    @property
    def succeeded(self) -> bool:
        return self is RunStatus.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.DETACHED


STAGE_FAILURE_STATUS = {
    PipelineStage.COLLECTION: RunStatus.FAILED_COLLECTION,
    PipelineStage.COMPRESSION: RunStatus.FAILED_COMPRESSION,
    PipelineStage.UPLOAD: RunStatus.FAILED_UPLOAD,
}


class PipelineState(str, Enum):
    """Supervisor states; FAILED is reachable from any non-terminal state."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


class StageError(Exception):
    """Raised when a pipeline stage misses its success postcondition."""

    def __init__(
        self,
        stage: PipelineStage,
        diagnostic: str,
        *,
        transfer_failure: TransferFailureKind | None = None,
    ) -> None:
        super().__init__(f"{stage.value} stage failed: {diagnostic}")
        self.stage = stage
        self.diagnostic = diagnostic
        self.transfer_failure = transfer_failure


@dataclass(frozen=True)
class RunOutcome:
    """Terminal (or handed-off) result of one run."""

    status: RunStatus
    diagnostic: str
    archive_path: Path | None = None
    remote_location: str | None = None
    worker_pid: int | None = None

    @staticmethod
    def succeeded(
        diagnostic: str, *, archive_path: Path | None, remote_location: str | None
    ) -> RunOutcome:
        return RunOutcome(
            status=RunStatus.SUCCEEDED,
            diagnostic=diagnostic,
            archive_path=archive_path,
            remote_location=remote_location,
        )

    @staticmethod
    def failed(
        status: RunStatus, diagnostic: str, *, archive_path: Path | None = None
    ) -> RunOutcome:
        return RunOutcome(status=status, diagnostic=diagnostic, archive_path=archive_path)

    @staticmethod
    def detached(worker_pid: int, diagnostic: str) -> RunOutcome:
        return RunOutcome(status=RunStatus.DETACHED, diagnostic=diagnostic, worker_pid=worker_pid)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "diagnostic": self.diagnostic,
            "archive_path": str(self.archive_path) if self.archive_path else None,
            "remote_location": self.remote_location,
            "worker_pid": self.worker_pid,
        }

    @staticmethod
    def from_dict(payload: Mapping[str, Any]) -> RunOutcome:
        archive_path = payload.get("archive_path")
        return RunOutcome(
            status=RunStatus(payload["status"]),
            diagnostic=str(payload.get("diagnostic", "")),
            archive_path=Path(archive_path) if archive_path else None,
            remote_location=payload.get("remote_location"),
            worker_pid=payload.get("worker_pid"),
        )
