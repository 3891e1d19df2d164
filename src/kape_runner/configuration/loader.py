"""Runner configuration loader and run request validation."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .runtime_settings import (
    ContainerFormat,
    LoggingSettings,
    ProvisioningSettings,
    RemoteStorage,
    RunConfig,
    RunnerSettings,
    RunPolicy,
)
from .tool_versions import parse_version

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigurationError(Exception):
    """Raised when the runner configuration or run parameters are invalid."""


def load_runner_settings(config_path: Path | str | None = None) -> RunnerSettings:
    """Load the optional YAML runner configuration, falling back to defaults."""
    if config_path is None:
        return RunnerSettings()
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse configuration file: {exc}") from exc

    if parsed is None:
        parsed = {}
    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Configuration root must be a mapping.")

    return RunnerSettings(
        work_dir=_parse_work_dir(parsed.get("workspace"), path.parent),
        provisioning=_parse_provisioning_section(parsed.get("provisioning"), path.parent),
        policy=_parse_policy_section(parsed.get("policy")),
        logging=_parse_logging_section(parsed.get("logging")),
        path=path,
    )


def build_run_config(  # pylint: disable=too-many-arguments
    *,
    source_volume: str,
    targets: str,
    modules: str | None = None,
    container_format: str | None = None,
    archive_password: str | None = None,
    storage_account: str | None = None,
    storage_container: str | None = None,
    storage_token: str | None = None,
    background: bool = False,
    minimum_version: str | None = None,
) -> RunConfig:
    """Validate raw run parameters and freeze them into a RunConfig."""
    volume = _require_non_empty_string(source_volume, "source volume")
    target_list = _require_non_empty_string(targets, "targets")
    module_list = _optional_string(modules, "modules")

    container: ContainerFormat | None = None
    format_text = _optional_string(container_format, "container format")
    if format_text is not None:
        try:
            container = ContainerFormat(format_text.lower())
        except ValueError as exc:
            choices = ", ".join(item.value for item in ContainerFormat)
            raise ConfigurationError(
                f"Container format '{format_text}' is not one of: {choices}."
            ) from exc

    version: tuple[int, ...] | None = None
    version_text = _optional_string(minimum_version, "minimum version")
    if version_text is not None:
        try:
            version = parse_version(version_text)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

    return RunConfig(
        source_volume=volume,
        targets=target_list,
        modules=module_list,
        container_format=container,
        archive_password=_optional_string(archive_password, "archive password"),
        remote_storage=_build_remote_storage(storage_account, storage_container, storage_token),
        background=background,
        minimum_version=version,
    )


def _build_remote_storage(
    account: str | None, container: str | None, token: str | None
) -> RemoteStorage | None:
    values = {
        "storage account": _optional_string(account, "storage account"),
        "storage container": _optional_string(container, "storage container"),
        "storage token": _optional_string(token, "storage token"),
    }
    provided = [name for name, value in values.items() if value is not None]
    if not provided:
        return None
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise ConfigurationError(
            "Remote storage requires account, container and token together; missing: "
            + ", ".join(missing)
        )
    return RemoteStorage(
        account=str(values["storage account"]),
        container=str(values["storage container"]),
        token=str(values["storage token"]),
    )


def _parse_work_dir(value: Any, base_path: Path) -> Path:
    if value is None:
        return Path.cwd()
    section = _require_mapping(value, "workspace")
    raw = section.get("work_dir")
    if raw is None:
        return Path.cwd()
    return _resolve_path(base_path, _require_non_empty_string(raw, "workspace.work_dir"))


def _parse_provisioning_section(value: Any, base_path: Path) -> ProvisioningSettings:
    if value is None:
        return ProvisioningSettings()
    section = _require_mapping(value, "provisioning")
    defaults = ProvisioningSettings()
    release_source = _optional_string(section.get("release_source"), "provisioning.release_source")
    if release_source == "<REQUIRED>":
        raise ConfigurationError("provisioning.release_source still holds its placeholder.")
    if release_source is not None and "://" not in release_source:
        release_source = str(_resolve_path(base_path, release_source))
    return ProvisioningSettings(
        release_source=release_source,
        install_dir_name=_string_or_default(
            section.get("install_dir_name"), "provisioning.install_dir_name", defaults
        ),
        collector_name=_string_or_default(
            section.get("collector_name"), "provisioning.collector_name", defaults
        ),
        compressor_name=_string_or_default(
            section.get("compressor_name"), "provisioning.compressor_name", defaults
        ),
        uploader_name=_string_or_default(
            section.get("uploader_name"), "provisioning.uploader_name", defaults
        ),
        version_marker_name=_string_or_default(
            section.get("version_marker_name"), "provisioning.version_marker_name", defaults
        ),
        download_timeout_seconds=_require_positive_int(
            section.get("download_timeout_seconds", defaults.download_timeout_seconds),
            "provisioning.download_timeout_seconds",
        ),
    )


def _parse_policy_section(value: Any) -> RunPolicy:
    if value is None:
        return RunPolicy()
    section = _require_mapping(value, "policy")
    defaults = RunPolicy()
    return RunPolicy(
        base_free_space_mib=_require_positive_int(
            section.get("base_free_space_mib", defaults.base_free_space_mib),
            "policy.base_free_space_mib",
        ),
        probe_timeout_seconds=_require_positive_int(
            section.get("probe_timeout_seconds", defaults.probe_timeout_seconds),
            "policy.probe_timeout_seconds",
        ),
        upload_timeout_seconds=_require_positive_int(
            section.get("upload_timeout_seconds", defaults.upload_timeout_seconds),
            "policy.upload_timeout_seconds",
        ),
        launch_grace_seconds=_require_positive_int(
            section.get("launch_grace_seconds", defaults.launch_grace_seconds),
            "policy.launch_grace_seconds",
        ),
    )


def _parse_logging_section(value: Any) -> LoggingSettings:
    if value is None:
        return LoggingSettings()
    section = _require_mapping(value, "logging")
    defaults = LoggingSettings()
    level = _require_non_empty_string(section.get("level", defaults.level), "logging.level")
    if level.upper() not in _LOG_LEVELS:
        raise ConfigurationError(f"logging.level '{level}' is not a known log level.")
    return LoggingSettings(
        file_name=_require_non_empty_string(
            section.get("file_name", defaults.file_name), "logging.file_name"
        ),
        max_bytes=_require_positive_int(
            section.get("max_bytes", defaults.max_bytes), "logging.max_bytes"
        ),
        level=level.upper(),
    )


def _string_or_default(value: Any, field_name: str, defaults: ProvisioningSettings) -> str:
    if value is None:
        return str(getattr(defaults, field_name.rsplit(".", 1)[-1]))
    return _require_non_empty_string(value, field_name)


def _resolve_path(base_path: Path, raw_path: str) -> Path:
    candidate = Path(raw_path)
    if not candidate.is_absolute():
        return (base_path / candidate).resolve()
    return candidate


def _require_mapping(value: Any, section_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Configuration section '{section_name}' must be a mapping.")
    return value


def _require_non_empty_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    if not stripped:
        raise ConfigurationError(f"{field_name} must not be empty.")
    return stripped


def _optional_string(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    stripped = value.strip()
    return stripped or None


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value
