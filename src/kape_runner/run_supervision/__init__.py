"""Run supervision exports."""

from .detached_launch import (
    CompletedRun,
    DetachedLauncher,
    DetachedRun,
    InlineLauncher,
    Launcher,
    RunHandle,
    read_outcome,
    run_detached_worker,
    write_outcome,
)
from .pipeline_supervisor import RunSupervisor
from .run_outcomes import (
    STAGE_FAILURE_STATUS,
    PipelineState,
    RunOutcome,
    RunStatus,
    StageError,
)

__all__ = [
    "CompletedRun",
    "DetachedLauncher",
    "DetachedRun",
    "InlineLauncher",
    "Launcher",
    "RunHandle",
    "read_outcome",
    "run_detached_worker",
    "write_outcome",
    "RunSupervisor",
    "STAGE_FAILURE_STATUS",
    "PipelineState",
    "RunOutcome",
    "RunStatus",
    "StageError",
]
