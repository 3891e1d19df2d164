"""Remote connectivity exports."""

from .connectivity_probe import ConnectivityError, probe

__all__ = ["ConnectivityError", "probe"]
