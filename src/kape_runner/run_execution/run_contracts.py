"""Run execution entities."""

from __future__ import annotations

from dataclasses import dataclass

from kape_runner.configuration.runtime_settings import RunConfig, RunnerSettings


@dataclass(frozen=True)
class RunRequest:
    """Input contract for executing one collection run."""

    config: RunConfig
    settings: RunnerSettings
    require_admin: bool = True
