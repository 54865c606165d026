"""
rake_aco — Ant Colony Optimisation core for rake-to-train allocation.

Public API:
    Colony                  — run the colony, returns OptimizationResult
    optimize_allocation     — build a Colony from raw records and run it
    InvalidParametersError  — raised for out-of-range parameters

Usage:
    from rake_aco import optimize_allocation

    result = optimize_allocation(
        rakes, trains, routes,
        {"pheromoneStrength": 1.5, "evaporationRate": 0.5, "iterations": 20},
    )
    result.model_dump(by_alias=True)   # camelCase payload
"""

from railops.shared.validation import InvalidParametersError
from rake_aco.colony import Colony, optimize_allocation

__all__ = ["Colony", "optimize_allocation", "InvalidParametersError"]
