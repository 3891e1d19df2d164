"""Host checks performed before anything is downloaded or executed."""

from __future__ import annotations

import ctypes
import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path

from kape_runner.capacity_planning import volume_root

LOGGER = logging.getLogger(__name__)


class PreflightError(Exception):
    """Raised when the host cannot run a collection at all."""


def is_administrator() -> bool:
    """Return True when the current process holds administrative privileges."""
    if sys.platform.startswith("win"):
        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def run_preflight(
    source_volume: str,
    *,
    require_admin: bool = True,
    admin_check: Callable[[], bool] | None = None,
) -> None:
    """Verify privileges and the presence of the source volume root.

    Raises:
      PreflightError: If either check fails.
    """
    if require_admin and not (admin_check or is_administrator)():
        raise PreflightError("Administrative privileges are required to collect from the host.")
    root = volume_root(source_volume)
    if not Path(root).exists():
        raise PreflightError(f"Source volume {root} does not exist.")
    LOGGER.info("Preflight passed for source volume %s", root)
