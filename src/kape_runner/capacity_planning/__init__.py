"""Capacity planning exports."""

from .capacity_budget import (
    MIB,
    CapacityBudget,
    CapacityError,
    HostResources,
    PsutilHostResources,
    check,
    drive_selector,
    volume_root,
)

__all__ = [
    "MIB",
    "CapacityBudget",
    "CapacityError",
    "HostResources",
    "PsutilHostResources",
    "check",
    "drive_selector",
    "volume_root",
]
