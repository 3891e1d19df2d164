"""Host preflight exports."""

from .preflight_checks import PreflightError, is_administrator, run_preflight

__all__ = ["PreflightError", "is_administrator", "run_preflight"]
