"""
railops/control_plane — the service layer around the ACO core.

Public API:
    AllocationService         — registries, optimisation runs, run history
    OptimizationFailedError   — raised when a run fails unexpectedly
"""

from railops.control_plane.allocation_service import (
    AllocationService,
    OptimizationFailedError,
)

__all__ = [
    "AllocationService",
    "OptimizationFailedError",
]
