"""
rake_aco/fitness.py
───────────────────
Solution quality: one scalar in (0, 1], higher is better.

    fitness = 1 / (1 + empty_movements × EMPTY_MOVEMENT_PENALTY
                     + total_distance  × DISTANCE_PENALTY)

An empty movement costs as much as 10,000 km of travel, so the colony
first drives empty movements down and only then shortens distances.
The same value is used to pick the best ant and to weight deposits.
"""

from __future__ import annotations

EMPTY_MOVEMENT_PENALTY: float = 1000.0
"""Penalty per empty (unloaded) rake movement."""

DISTANCE_PENALTY: float = 0.1
"""Penalty per unit of distance travelled."""


def calculate_fitness(empty_movements: int, total_distance: float) -> float:
    """
    Score a solution from its aggregate counts.

    Strictly decreasing in both arguments; exactly 1.0 for a solution with
    no empty movements and no distance.
    """
    penalty = (
        empty_movements * EMPTY_MOVEMENT_PENALTY
        + total_distance * DISTANCE_PENALTY
    )
    return 1.0 / (1.0 + penalty)
