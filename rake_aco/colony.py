"""
rake_aco/colony.py
──────────────────
The Colony: runs all ants over all iterations and keeps the best result.

How the colony works
─────────────────────
  1. Builds the StationGraph from the routes and pre-computes the distance
     and η matrices once (they depend only on the input snapshot).
  2. Creates a fresh PheromoneMatrix at the start of optimize(), with every
     ordered pair of distinct stations set to pheromone_strength.
  3. For each iteration:
       a. Runs n_ants ants, each building a full allocation from the same,
          unchanging pheromone state.
       b. Updates the global best after every ant. Comparison is strict
          (`>`), so the first solution reaching a fitness keeps its place.
       c. Calls update_pheromones() once with ALL of the iteration's
          solutions: evaporate, then deposit.
  4. Returns the best solution across all iterations with its reduction
     against the baseline and a copy of the final pheromone map.

Ant count
─────────
max(MIN_ANTS, number of rakes). Construction is deterministic except for
filler destinations, so extra ants mostly sample different filler moves.

Baseline
────────
The baseline is the number of rakes that start unloaded: what a planner
would get by moving every empty rake. reduction = (baseline − best) /
baseline × 100, floored at 0. A baseline of 0 reports 0%.

Ownership
─────────
The colony is the only writer of the pheromone matrix, and only writes
between iterations, so ants never see a half-updated matrix.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional, Sequence, Union

import numpy as np

from railops.shared.models import (
    AcoParameters,
    AntSolution,
    OptimizationResult,
    Rake,
    Route,
    Train,
)
from railops.shared.validation import check_iterations, validate_parameters
from rake_aco.ant import Ant, compute_heuristic
from rake_aco.pheromone import PheromoneMatrix, update_pheromones
from rake_aco.station_graph import DEFAULT_DISTANCE, StationGraph

logger = logging.getLogger(__name__)

# ── Colony hyperparameters ─────────────────────────────────────────────────────

MIN_ANTS: int = 10
"""Lower bound on ants per iteration. Fleets larger than this get one ant
per rake.
"""


class Colony:
    """
    Runs the ACO colony and returns the best OptimizationResult.

    Usage:
        colony = Colony(rakes, trains, routes, AcoParameters(...))
        result = colony.optimize()

    After optimize():
        colony.last_run_ms     → wall-clock time of the last run.
        colony.iterations_run  → iterations completed in the last run.
        colony.pheromones      → the PheromoneMatrix of the last run.
    """

    def __init__(
        self,
        rakes: Sequence[Rake],
        trains: Sequence[Train],
        routes: Sequence[Route],
        params: Union[AcoParameters, Mapping[str, Any]],
        rng: Optional[np.random.Generator] = None,
        default_distance: float = DEFAULT_DISTANCE,
    ) -> None:
        """
        Args:
            rakes:            Fleet snapshot. May be empty.
            trains:           Trains needing a rake, in priority/input order.
                              May be empty.
            routes:           Route catalogue for distances and stations.
            params:           AcoParameters or a mapping of them.
            rng:              Generator for filler destinations. Defaults to
                              np.random.default_rng(params.seed).
            default_distance: Off-network distance for the StationGraph.

        Raises:
            InvalidParametersError: if params are out of range. Checked here,
                                    before any work is done.
        """
        self._params: AcoParameters = validate_parameters(params)
        self._rakes = list(rakes)
        self._trains = list(trains)
        self._graph = StationGraph(routes, default_distance=default_distance)
        self._rng = rng if rng is not None else np.random.default_rng(self._params.seed)

        self._distances, self._eta = compute_heuristic(
            self._rakes, self._trains, self._graph, self._params.beta
        )

        self.n_ants: int = max(MIN_ANTS, len(self._rakes))
        self.last_run_ms: float = 0.0
        self.iterations_run: int = 0
        self._matrix: Optional[PheromoneMatrix] = None

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def graph(self) -> StationGraph:
        return self._graph

    @property
    def params(self) -> AcoParameters:
        return self._params

    @property
    def pheromones(self) -> Optional[PheromoneMatrix]:
        """Pheromone matrix of the most recent run; None before the first."""
        return self._matrix

    @property
    def baseline_empty_movements(self) -> int:
        """Number of rakes that start unloaded."""
        return sum(1 for rake in self._rakes if not rake.is_loaded)

    # ── Main loop ─────────────────────────────────────────────────────────────

    def _spawn_ant(self, matrix: PheromoneMatrix) -> Ant:
        return Ant(
            self._rakes,
            self._trains,
            self._graph,
            matrix,
            self._rng,
            alpha=self._params.alpha,
            beta=self._params.beta,
            shared_eta=self._eta,
            shared_distances=self._distances,
        )

    def optimize(self, iterations: Optional[int] = None) -> OptimizationResult:
        """
        Run the colony and return the best allocation found.

        Args:
            iterations: Override for params.iterations for this call.

        Raises:
            InvalidParametersError: if the override is not a positive int,
                                    or if the parameters were changed out
                                    of range after construction.
        """
        # AcoParameters does not validate on assignment
        validate_parameters(self._params)
        if iterations is None:
            iterations = self._params.iterations
        else:
            check_iterations(iterations)

        start = time.perf_counter()
        rate = self._params.evaporation_rate

        matrix = PheromoneMatrix(self._graph.stations, self._params.pheromone_strength)
        self._matrix = matrix
        best: Optional[AntSolution] = None

        for iteration in range(iterations):
            solutions = []
            for _ in range(self.n_ants):
                solution = self._spawn_ant(matrix).construct()
                solutions.append(solution)
                if best is None or solution.fitness > best.fitness:
                    best = solution

            update_pheromones(matrix, solutions, rate)

            logger.debug(
                "colony iteration %d/%d: best fitness=%.6f empty=%d distance=%.1f",
                iteration + 1, iterations,
                best.fitness, best.total_empty_movements, best.total_distance,
            )

        self.iterations_run = iterations
        self.last_run_ms = (time.perf_counter() - start) * 1000.0

        reduction = self._reduction(best.total_empty_movements)

        logger.info(
            "colony finished: %d iterations × %d ants in %.2fms, "
            "empty=%d/%d baseline, reduction=%.1f%%",
            iterations, self.n_ants, self.last_run_ms,
            best.total_empty_movements, self.baseline_empty_movements, reduction,
        )

        return OptimizationResult(
            allocations=best.allocations,
            total_empty_movements=best.total_empty_movements,
            total_distance=best.total_distance,
            empty_movements_reduction=reduction,
            optimization_score=best.fitness,
            pheromone_map=matrix.snapshot(),
        )

    run = optimize

    def _reduction(self, best_empty: int) -> float:
        baseline = self.baseline_empty_movements
        if baseline == 0:
            return 0.0
        return max(0.0, (baseline - best_empty) / baseline * 100.0)

    def __repr__(self) -> str:
        return (
            f"Colony(rakes={len(self._rakes)}, trains={len(self._trains)}, "
            f"stations={len(self._graph)}, ants={self.n_ants}, "
            f"last_run_ms={self.last_run_ms:.2f})"
        )


def optimize_allocation(
    rakes: Sequence[Union[Rake, Mapping[str, Any]]],
    trains: Sequence[Union[Train, Mapping[str, Any]]],
    routes: Sequence[Union[Route, Mapping[str, Any]]],
    params: Union[AcoParameters, Mapping[str, Any]],
    rng: Optional[np.random.Generator] = None,
) -> OptimizationResult:
    """
    One-call entry point: build a Colony and run it.

    Records may be model instances or plain dicts with snake_case or
    camelCase keys (`currentLocation`, `isLoaded`, `currentStation`, ...).
    """
    colony = Colony(
        [_as_model(Rake, r) for r in rakes],
        [_as_model(Train, t) for t in trains],
        [_as_model(Route, r) for r in routes],
        params,
        rng=rng,
    )
    return colony.optimize()


def _as_model(model_cls, record):
    if isinstance(record, model_cls):
        return record
    return model_cls.model_validate(record)
