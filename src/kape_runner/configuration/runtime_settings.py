"""Configuration domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

BASE_FREE_SPACE_MIB = 2048
PROBE_TIMEOUT_SECONDS = 60
UPLOAD_TIMEOUT_SECONDS = 300
LAUNCH_GRACE_SECONDS = 15


class ContainerFormat(str, Enum):
    """Container image formats the collection tool can emit."""

    VHDX = "vhdx"
    VHD = "vhd"
    ZIP = "zip"


@dataclass(frozen=True)
class RemoteStorage:
    """Blob storage destination for finished archives."""

    account: str
    container: str
    token: str

    def blob_url(self, blob_name: str) -> str:
        token = self.token.lstrip("?")
        return f"https://{self.account}.blob.core.windows.net/{self.container}/{blob_name}?{token}"


@dataclass(frozen=True)
class RunConfig:  # pylint: disable=too-many-instance-attributes
    """Immutable snapshot of the operator's request for one collection run."""

    source_volume: str
    targets: str
    modules: str | None = None
    container_format: ContainerFormat | None = None
    archive_password: str | None = None
    remote_storage: RemoteStorage | None = None
    background: bool = False
    minimum_version: tuple[int, ...] | None = None

    @property
    def wants_modules(self) -> bool:
        return bool(self.modules and self.modules.strip())


@dataclass(frozen=True)
class ProvisioningSettings:
    """Where the tool release comes from and what an installation contains."""

    release_source: str | None = None
    install_dir_name: str = "KAPE"
    collector_name: str = "kape.exe"
    compressor_name: str = "7za.exe"
    uploader_name: str = "azcopy.exe"
    version_marker_name: str = "version.txt"
    download_timeout_seconds: int = 120


@dataclass(frozen=True)
class RunPolicy:
    """Thresholds and deadlines applied to every run."""

    base_free_space_mib: int = BASE_FREE_SPACE_MIB
    probe_timeout_seconds: int = PROBE_TIMEOUT_SECONDS
    upload_timeout_seconds: int = UPLOAD_TIMEOUT_SECONDS
    launch_grace_seconds: int = LAUNCH_GRACE_SECONDS


@dataclass(frozen=True)
class LoggingSettings:
    """Run log file configuration."""

    file_name: str = "kape_runner.log"
    max_bytes: int = 10 * 1024 * 1024
    level: str = "INFO"


@dataclass(frozen=True)
class RunnerSettings:
    """Top-level runner configuration aggregate."""

    work_dir: Path = field(default_factory=Path.cwd)
    provisioning: ProvisioningSettings = field(default_factory=ProvisioningSettings)
    policy: RunPolicy = field(default_factory=RunPolicy)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    path: Path | None = None
