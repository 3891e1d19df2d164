"""Command composition exports."""

from .command_composer import compose
from .plan_serialization import (
    PlanFormatError,
    plan_from_dict,
    plan_to_dict,
    read_plan,
    write_plan,
)
from .run_plan import (
    MODULES_DIR_NAME,
    OUTPUTS_DIR_NAME,
    TARGETS_DIR_NAME,
    PipelineStage,
    RunIdentity,
    RunPlan,
)

__all__ = [
    "compose",
    "PlanFormatError",
    "plan_from_dict",
    "plan_to_dict",
    "read_plan",
    "write_plan",
    "MODULES_DIR_NAME",
    "OUTPUTS_DIR_NAME",
    "TARGETS_DIR_NAME",
    "PipelineStage",
    "RunIdentity",
    "RunPlan",
]
