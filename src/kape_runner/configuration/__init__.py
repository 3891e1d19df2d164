"""Configuration domain exports."""

from .config_scaffold_builder import (
    DEFAULT_CONFIG_FILENAME,
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from .loader import ConfigurationError, build_run_config, load_runner_settings
from .runtime_settings import (
    ContainerFormat,
    LoggingSettings,
    ProvisioningSettings,
    RemoteStorage,
    RunConfig,
    RunnerSettings,
    RunPolicy,
)
from .tool_versions import format_version, parse_version

__all__ = [
    "ContainerFormat",
    "LoggingSettings",
    "ProvisioningSettings",
    "RemoteStorage",
    "RunConfig",
    "RunnerSettings",
    "RunPolicy",
    "ConfigurationError",
    "build_run_config",
    "load_runner_settings",
    "parse_version",
    "format_version",
    "DEFAULT_CONFIG_FILENAME",
    "build_placeholder_configuration",
    "write_placeholder_configuration",
]
