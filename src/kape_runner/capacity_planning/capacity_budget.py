"""Free-space requirements for a collection run."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

import psutil

LOGGER = logging.getLogger(__name__)

MIB = 1024 * 1024

_DRIVE_LETTER = re.compile(r"^([A-Za-z]):?\\?$")


class CapacityError(Exception):
    """Raised when the source volume lacks the free space a run requires."""


class HostResources(Protocol):
    """Protocol for reading host disk and memory figures."""

    def free_bytes(self, volume_root: str) -> int: ...

    def total_memory_bytes(self) -> int: ...


class PsutilHostResources:
    """Host figures read through psutil."""

    def free_bytes(self, volume_root: str) -> int:
        return int(psutil.disk_usage(volume_root).free)

    def total_memory_bytes(self) -> int:
        return int(psutil.virtual_memory().total)


@dataclass(frozen=True)
class CapacityBudget:
    """Free-space figures for the current request, recomputed every run."""

    free_mib: int
    base_mib: int
    memory_mib: int
    wants_modules: bool

    @property
    def required_mib(self) -> int:
        return self.base_mib + (self.memory_mib if self.wants_modules else 0)

    @property
    def module_capture_allowed(self) -> bool:
        return self.free_mib >= self.base_mib + self.memory_mib


def volume_root(source_volume: str) -> str:
    """Map `C`, `C:` or `C:\\` to the drive root; other values are used as paths."""
    match = _DRIVE_LETTER.match(source_volume.strip())
    if match:
        return f"{match.group(1).upper()}:\\"
    return source_volume


def drive_selector(source_volume: str) -> str:
    """Map a drive letter to the `C:` form the collection tool expects."""
    match = _DRIVE_LETTER.match(source_volume.strip())
    if match:
        return f"{match.group(1).upper()}:"
    return source_volume


def check(
    source_volume: str,
    wants_modules: bool,
    *,
    base_mib: int,
    resources: HostResources | None = None,
) -> CapacityBudget:
    """Compute the budget, failing when free space is below the base requirement.

    Raises:
      CapacityError: If free space on the source volume is below `base_mib`.
    """
    host = resources or PsutilHostResources()
    root = volume_root(source_volume)
    try:
        free_mib = host.free_bytes(root) // MIB
    except OSError as exc:
        raise CapacityError(f"Cannot read free space on {root}: {exc}") from exc
    memory_mib = host.total_memory_bytes() // MIB
    budget = CapacityBudget(
        free_mib=free_mib,
        base_mib=base_mib,
        memory_mib=memory_mib,
        wants_modules=wants_modules,
    )
    LOGGER.info(
        "Free space on %s: %d MiB (base requirement %d MiB, installed memory %d MiB)",
        root,
        free_mib,
        base_mib,
        memory_mib,
    )
    if free_mib < base_mib:
        raise CapacityError(
            f"Insufficient free space on {root}: {free_mib} MiB available, "
            f"{base_mib} MiB required."
        )
    if wants_modules and not budget.module_capture_allowed:
        LOGGER.warning(
            "Free space %d MiB is below the %d MiB needed for module capture",
            free_mib,
            base_mib + memory_mib,
        )
    return budget
