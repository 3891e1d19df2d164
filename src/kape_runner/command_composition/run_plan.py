"""Run plan entities."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

TARGETS_DIR_NAME = "targets"
MODULES_DIR_NAME = "modules"
OUTPUTS_DIR_NAME = "outputs"


class PipelineStage(str, Enum):
    """Pipeline stages that invoke an external tool."""

    COLLECTION = "collection"
    COMPRESSION = "compression"
    UPLOAD = "upload"


@dataclass(frozen=True)
class RunIdentity:
    """Host name and start time that make a run's output names unique."""

    host_name: str
    started_at: datetime

    @property
    def stamp(self) -> str:
        return self.started_at.strftime("%Y%m%d_%H%M%S")

    @property
    def archive_name(self) -> str:
        return f"{self.host_name}_{self.stamp}.zip"

    @staticmethod
    def capture() -> RunIdentity:
        return RunIdentity(host_name=socket.gethostname(), started_at=datetime.now())


@dataclass(frozen=True)
class RunPlan:  # pylint: disable=too-many-instance-attributes
    """Fully composed, ready-to-execute commands and the paths each stage touches."""

    work_dir: Path
    target_dir: Path
    module_dir: Path | None
    archive_path: Path
    collection_command: tuple[str, ...]
    compression_command: tuple[str, ...]
    upload_command: tuple[str, ...] | None
    remote_location: str | None
    upload_timeout_seconds: int
    secrets: tuple[str, ...] = ()
    notices: tuple[str, ...] = ()

    @property
    def module_capture_active(self) -> bool:
        return self.module_dir is not None

    @property
    def uploads(self) -> bool:
        return self.upload_command is not None

    @property
    def staging_dirs(self) -> tuple[Path, ...]:
        """Intermediate directories removed after every run."""
        return (self.target_dir, self.work_dir / MODULES_DIR_NAME)
