"""Ensure the external tool package is installed locally at an acceptable version."""

from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path
from typing import Protocol

import requests

from kape_runner.configuration.runtime_settings import ProvisioningSettings
from kape_runner.configuration.tool_versions import format_version, parse_version

from .installation_models import ToolInstallation

LOGGER = logging.getLogger(__name__)

_DOWNLOAD_NAME = "kape_release.zip"
_STAGING_NAME = ".kape_staging"
_CHUNK_SIZE = 1024 * 1024


class ProvisioningError(Exception):
    """Raised when the tool package cannot be made available."""


class ReleaseFetchError(ProvisioningError):
    """Raised when the release archive cannot be downloaded or copied."""


class ReleaseUnpackError(ProvisioningError):
    """Raised when the release archive cannot be extracted."""


class IncompleteInstallationError(ProvisioningError):
    """Raised when a freshly unpacked release lacks an expected file."""


class ReleaseFetcher(Protocol):  # pylint: disable=too-few-public-methods
    """Protocol for obtaining the release archive."""

    def fetch(self, source: str, destination: Path, timeout_seconds: int) -> None: ...


class HttpOrPathReleaseFetcher:  # pylint: disable=too-few-public-methods
    """Download `http(s)://` sources with requests, copy anything else as a file path."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def fetch(self, source: str, destination: Path, timeout_seconds: int) -> None:
        if source.lower().startswith(("http://", "https://")):
            self._download(source, destination, timeout_seconds)
        else:
            self._copy(Path(source), destination)

    def _download(self, url: str, destination: Path, timeout_seconds: int) -> None:
        try:
            with self._session.get(url, stream=True, timeout=timeout_seconds) as response:
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
        except (requests.RequestException, OSError) as exc:
            raise ReleaseFetchError(f"Failed to download tool release from {url}: {exc}") from exc

    @staticmethod
    def _copy(source: Path, destination: Path) -> None:
        if not source.is_file():
            raise ReleaseFetchError(f"Tool release archive not found: {source}")
        try:
            shutil.copyfile(source, destination)
        except OSError as exc:
            raise ReleaseFetchError(f"Failed to copy tool release from {source}: {exc}") from exc


class BinaryProvisioner:
    """Reuse, or wholesale replace, the tool installation under the work directory."""

    def __init__(
        self,
        settings: ProvisioningSettings,
        work_dir: Path,
        *,
        fetcher: ReleaseFetcher | None = None,
    ) -> None:
        self._settings = settings
        self._work_dir = Path(work_dir)
        self._fetcher = fetcher or HttpOrPathReleaseFetcher()

    @property
    def install_dir(self) -> Path:
        return self._work_dir / self._settings.install_dir_name

    def ensure(self, required_version: tuple[int, ...] | None = None) -> ToolInstallation:
        """Return a usable installation, reinstalling when missing, incomplete or stale.

        Raises:
          ProvisioningError: If a reinstall is needed and fetching or unpacking fails.
        """
        existing = self.inspect()
        reason = self._reinstall_reason(existing, required_version)
        if reason is None and existing is not None:
            LOGGER.info(
                "Reusing tool installation %s (version %s)",
                existing.install_dir,
                format_version(existing.version),
            )
            return existing

        LOGGER.warning("Reinstalling tool package: %s", reason)
        installation = self._reinstall()
        if required_version is not None and installation.version < required_version:
            raise ProvisioningError(
                f"Release version {format_version(installation.version)} is older than the "
                f"required {format_version(required_version)}."
            )
        LOGGER.info(
            "Installed tool package %s (version %s)",
            installation.install_dir,
            format_version(installation.version),
        )
        return installation

    def inspect(self) -> ToolInstallation | None:
        """Describe the current installation, or None if it is absent or incomplete."""
        install_dir = self.install_dir
        marker = install_dir / self._settings.version_marker_name
        executables = self._executable_paths(install_dir)
        if not marker.is_file() or not all(path.is_file() for path in executables):
            return None
        try:
            version = parse_version(marker.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("Unreadable version marker %s", marker)
            return None
        collector, compressor, uploader = executables
        return ToolInstallation(
            install_dir=install_dir,
            collector=collector,
            compressor=compressor,
            uploader=uploader,
            version_marker=marker,
            version=version,
        )

    def _reinstall_reason(
        self,
        existing: ToolInstallation | None,
        required_version: tuple[int, ...] | None,
    ) -> str | None:
        if existing is None:
            return f"no complete installation found in {self.install_dir}"
        if required_version is not None and existing.version < required_version:
            return (
                f"installed version {format_version(existing.version)} is older than "
                f"required {format_version(required_version)}"
            )
        return None

    def _reinstall(self) -> ToolInstallation:
        source = self._settings.release_source
        if not source:
            raise ReleaseFetchError(
                "No release source configured (provisioning.release_source) and no usable "
                "installation exists."
            )
        if self.install_dir.exists():
            shutil.rmtree(self.install_dir)

        self._work_dir.mkdir(parents=True, exist_ok=True)
        archive = self._work_dir / _DOWNLOAD_NAME
        try:
            LOGGER.info("Fetching tool release from %s", source)
            self._fetcher.fetch(source, archive, self._settings.download_timeout_seconds)
            self._unpack(archive)
        finally:
            archive.unlink(missing_ok=True)

        installation = self.inspect()
        if installation is None:
            missing = self._missing_files()
            shutil.rmtree(self.install_dir, ignore_errors=True)
            raise IncompleteInstallationError(
                "Unpacked release is missing expected files: " + ", ".join(missing)
            )
        return installation

    def _unpack(self, archive: Path) -> None:
        staging = self._work_dir / _STAGING_NAME
        shutil.rmtree(staging, ignore_errors=True)
        try:
            with zipfile.ZipFile(archive) as bundle:
                bundle.extractall(staging)
            package_root = staging / self._settings.install_dir_name
            if not package_root.is_dir():
                package_root = staging
            package_root.rename(self.install_dir)
        except (zipfile.BadZipFile, OSError) as exc:
            shutil.rmtree(self.install_dir, ignore_errors=True)
            raise ReleaseUnpackError(f"Failed to unpack tool release {archive}: {exc}") from exc
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _missing_files(self) -> list[str]:
        expected = [
            *self._executable_paths(self.install_dir),
            self.install_dir / self._settings.version_marker_name,
        ]
        missing = [path.name for path in expected if not path.is_file()]
        return missing or [self._settings.version_marker_name]

    def _executable_paths(self, install_dir: Path) -> tuple[Path, Path, Path]:
        return (
            install_dir / self._settings.collector_name,
            install_dir / self._settings.compressor_name,
            install_dir / self._settings.uploader_name,
        )
