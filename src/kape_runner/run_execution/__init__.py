"""Run execution domain exports."""

from .collection_run_use_case import execute_collection_run
from .run_contracts import RunRequest

__all__ = ["RunRequest", "execute_collection_run"]
