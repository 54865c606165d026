"""
rake_aco/pheromone.py
─────────────────────
The pheromone matrix: the colony's shared memory.

What is pheromone here?
───────────────────────
  • "Path"   = moving a rake from the station it sits at (origin) to the
               station a train needs it at (destination).
  • "Better" = fewer empty movements, then less distance.
  • τ[o][d]  = pheromone on the trail "origin o → destination d".

Two forces balance each other, applied once per iteration and always in
this order:
  1. Evaporation — every trail is multiplied by (1 − ρ).
  2. Deposit     — every allocation of every ant reinforces its trail by
                   fitness × DEPOSIT_SCALE × (LOADED or EMPTY factor).
                   Loaded moves deposit 4× what empty moves do, which is
                   what steers later ants toward productive pairings.

Matrix layout
─────────────
  Shape : (n_stations, n_stations), indexed by station position.
  The matrix keeps its own station → index map. It starts from the
  StationGraph's ordering and grows when a deposit names a station it has
  never seen (a rake parked off-network, for example).

Absent trails
─────────────
  A cell with no trail holds NaN. get() answers `strength` for such cells,
  so reads never fail and never need a prior write. Initialisation fills
  every off-diagonal cell; the diagonal and cells of stations added later
  stay NaN until something deposits on them. Evaporation leaves NaN cells
  alone (NaN × k is NaN), so an absent trail keeps reading as `strength`
  rather than decaying.

NumPy design choices
────────────────────
  • float64 throughout.
  • In-place `*=` for evaporation — no new array on the hot path.
  • np.pad only when a new station shows up, which is rare.
  • .copy() only in snapshot_matrix().
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from railops.shared.models import AntSolution, PheromoneMap

DEPOSIT_SCALE: float = 100.0
"""Deposit numerator: an allocation deposits fitness × DEPOSIT_SCALE × factor.
Fitness is in (0, 1], so the scale lifts deposits into the same range as
typical initial strengths.
"""

LOADED_DEPOSIT_FACTOR: float = 2.0
"""Multiplier for allocations that move a loaded rake (productive)."""

EMPTY_DEPOSIT_FACTOR: float = 0.5
"""Multiplier for empty movements. 4× below LOADED_DEPOSIT_FACTOR."""


class PheromoneMatrix:
    """
    A square numpy array τ[origin][destination] keyed by station name.

    Used by:
        Ant.construct()      → lookup() reads trails for every candidate rake.
        update_pheromones()  → evaporate() then deposit() once per iteration.
        Colony               → snapshot() for the optimisation result.

    Thread safety:
        Not thread-safe. Ants only read it; the colony is the single writer
        and only writes between iterations.
    """

    def __init__(self, stations: Sequence[str], strength: float) -> None:
        """
        Create the matrix and fill every ordered pair of distinct stations
        with `strength`.

        Args:
            stations: Station names in a stable order. Duplicates are ignored.
            strength: Initial trail and the lazy default for absent trails.
                      Must be > 0.

        Raises:
            ValueError: if strength is not positive.
        """
        if strength <= 0.0:
            raise ValueError(f"pheromone strength must be > 0, got {strength}")

        self._strength = float(strength)
        self._index: Dict[str, int] = {}
        self._names: List[str] = []
        for name in stations:
            if name not in self._index:
                self._index[name] = len(self._names)
                self._names.append(name)

        n = len(self._names)
        self._matrix: NDArray[np.float64] = np.full(
            (n, n), self._strength, dtype=np.float64
        )
        np.fill_diagonal(self._matrix, np.nan)

    # ── Index management ──────────────────────────────────────────────────────

    def _ensure_station(self, name: str) -> int:
        """Return the index of `name`, growing the matrix with NaN if needed."""
        idx = self._index.get(name)
        if idx is not None:
            return idx

        idx = len(self._names)
        self._index[name] = idx
        self._names.append(name)
        self._matrix = np.pad(
            self._matrix, ((0, 1), (0, 1)), constant_values=np.nan
        )
        return idx

    def index_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, origin: str, destination: str) -> float:
        """
        Trail strength on origin → destination.

        Returns `strength` when the pair has no trail (unknown station,
        same-station pair never deposited on). Absence is not an error.
        """
        i = self._index.get(origin)
        j = self._index.get(destination)
        if i is None or j is None:
            return self._strength
        value = self._matrix[i, j]
        if np.isnan(value):
            return self._strength
        return float(value)

    def lookup(
        self,
        origins: Sequence[Optional[int]],
        destination: Optional[int],
    ) -> NDArray[np.float64]:
        """
        Vectorised get() for many origins and one destination.

        Args:
            origins:     Matrix indices (from index_of); None = unknown station.
            destination: Matrix index of the destination, or None.

        Returns:
            1D array, one trail value per origin, absent trails replaced by
            `strength`. Always a new array; safe for the caller to modify.
        """
        out = np.full(len(origins), self._strength, dtype=np.float64)
        if destination is None:
            return out
        for k, i in enumerate(origins):
            if i is None:
                continue
            value = self._matrix[i, destination]
            if not np.isnan(value):
                out[k] = value
        return out

    # ── Writes ────────────────────────────────────────────────────────────────

    def evaporate(self, rate: float) -> None:
        """
        Multiply every existing trail by (1 − rate), in place.

        The rate is NOT clamped here: callers validate it to [0, 1] before a
        run starts. Within that range every trail ends in [0, previous].
        """
        self._matrix *= (1.0 - rate)

    def deposit(self, origin: str, destination: str, amount: float) -> None:
        """
        Add `amount` to the origin → destination trail.

        An absent trail starts from `strength` before the addition. Unknown
        station names are added to the matrix.
        """
        i = self._ensure_station(origin)
        j = self._ensure_station(destination)
        current = self._matrix[i, j]
        if np.isnan(current):
            current = self._strength
        self._matrix[i, j] = current + amount

    # ── Inspection ────────────────────────────────────────────────────────────

    def snapshot(self) -> PheromoneMap:
        """
        Copy of every present trail as {"origin-destination": value}.

        Row-major order over the station index, which matches the order
        trails were created in.
        """
        snap: PheromoneMap = {}
        rows, cols = np.nonzero(~np.isnan(self._matrix))
        for i, j in zip(rows.tolist(), cols.tolist()):
            snap[f"{self._names[i]}-{self._names[j]}"] = float(self._matrix[i, j])
        return snap

    def snapshot_matrix(self) -> NDArray[np.float64]:
        """Deep copy of the raw matrix (NaN = no trail)."""
        return self._matrix.copy()

    @property
    def stations(self) -> List[str]:
        return list(self._names)

    @property
    def strength(self) -> float:
        return self._strength

    @property
    def n_trails(self) -> int:
        """Number of pairs that currently hold a trail."""
        return int(np.count_nonzero(~np.isnan(self._matrix)))

    def __repr__(self) -> str:
        present = self._matrix[~np.isnan(self._matrix)]
        if present.size == 0:
            return f"PheromoneMatrix(stations={len(self._names)}, trails=0)"
        return (
            f"PheromoneMatrix(stations={len(self._names)}, trails={present.size}, "
            f"min={present.min():.4f}, max={present.max():.4f}, "
            f"mean={present.mean():.4f})"
        )


def deposit_amount(solution: AntSolution, is_empty_movement: bool) -> float:
    """Reinforcement one allocation of `solution` puts on its trail."""
    factor = EMPTY_DEPOSIT_FACTOR if is_empty_movement else LOADED_DEPOSIT_FACTOR
    return solution.fitness * DEPOSIT_SCALE * factor


def update_pheromones(
    matrix: PheromoneMatrix,
    solutions: Iterable[AntSolution],
    evaporation_rate: float,
) -> None:
    """
    End-of-iteration update: evaporate everything, then deposit for every
    allocation of every solution that has a destination.

    Every ant contributes, not only the iteration best. Better solutions
    deposit more because the amount is proportional to fitness.
    """
    matrix.evaporate(evaporation_rate)

    for solution in solutions:
        for allocation in solution.allocations:
            if allocation.to_station is None:
                continue
            matrix.deposit(
                allocation.from_station,
                allocation.to_station,
                deposit_amount(solution, allocation.is_empty_movement),
            )
