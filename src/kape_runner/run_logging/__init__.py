"""Run logging exports."""

from .log_setup import DatedRotatingFileHandler, configure_run_logging

__all__ = ["DatedRotatingFileHandler", "configure_run_logging"]
