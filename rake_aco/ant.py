"""
rake_aco/ant.py
───────────────
One ant: builds one complete rake allocation.

What does an ant do?
─────────────────────
It walks the trains in input order. For each train it scores every rake
that is still free and takes the best one. When trains run out (or rakes
do), every rake left over is sent to a random station as a filler move.

The score for "rake r serves train t"
──────────────────────────────────────
    score = τ[loc(r)][loc(t)]^α × η[t][r]

    η[t][r] = (1 / (distance(loc(r), loc(t)) + 1))^β × loaded_bonus(r)

  τ            : trail strength from the shared PheromoneMatrix.
  distance     : StationGraph distance between the two stations.
  loaded_bonus : LOADED_BONUS for a rake that already carries payload,
                 EMPTY_BONUS otherwise. Loaded rakes make productive moves.

Selection is arg-max, not roulette-wheel
─────────────────────────────────────────
The highest score wins; on a tie the rake that comes first in the input
list wins (np.argmax returns the first maximum). The only random step is
the filler destination, drawn from an injected numpy Generator, so a
seeded Generator makes an ant fully reproducible.

Because the selection is deterministic, all ants of one iteration read the
same τ and make the same pairings; they differ only in their filler moves.
Across iterations τ changes and so can the pairings.

η is fixed for a colony
────────────────────────
η depends only on rake and train locations, which never change during a
run. The Colony computes it once with compute_heuristic() and hands it to
every ant as `shared_eta`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from railops.shared.models import Allocation, AntSolution, Rake, Train
from rake_aco.fitness import calculate_fitness
from rake_aco.pheromone import PheromoneMatrix
from rake_aco.station_graph import StationGraph

# ── ACO hyperparameters ────────────────────────────────────────────────────────

ALPHA: float = 1.0
"""Pheromone influence exponent (default for AcoParameters.alpha)."""

BETA: float = 2.5
"""Distance influence exponent (default for AcoParameters.beta).
Above ALPHA so that, with uniform trails at the start, nearby rakes win.
"""

LOADED_BONUS: float = 2.0
"""η multiplier for a rake that is already loaded."""

EMPTY_BONUS: float = 1.0
"""η multiplier for an empty rake."""


def compute_heuristic(
    rakes: Sequence[Rake],
    trains: Sequence[Train],
    graph: StationGraph,
    beta: float = BETA,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build the distance and η matrices, both shaped (n_trains, n_rakes).

    Returns:
        (distances, eta). distances[t][r] is the rake-to-train distance;
        eta[t][r] is the heuristic desirability described in the module
        docstring.
    """
    distances = np.array(
        [
            [graph.distance(rake.current_location, train.current_station)
             for rake in rakes]
            for train in trains
        ],
        dtype=np.float64,
    ).reshape(len(trains), len(rakes))

    bonus = np.array(
        [LOADED_BONUS if rake.is_loaded else EMPTY_BONUS for rake in rakes],
        dtype=np.float64,
    )

    eta = (1.0 / (distances + 1.0)) ** beta * bonus
    return distances, eta


class Ant:
    """
    Constructs one complete allocation.

    Lifecycle:
        1. __init__()    → bind inputs; compute η unless shared.
        2. construct()   → returns the AntSolution (also on ant.solution).

    Single-use: create a new Ant for every construction. The ant never
    writes to the pheromone matrix or to the rake/train sequences it was
    given; it works on its own index pools.
    """

    def __init__(
        self,
        rakes: Sequence[Rake],
        trains: Sequence[Train],
        graph: StationGraph,
        matrix: PheromoneMatrix,
        rng: np.random.Generator,
        alpha: float = ALPHA,
        beta: float = BETA,
        shared_eta: Optional[np.ndarray] = None,
        shared_distances: Optional[np.ndarray] = None,
    ) -> None:
        """
        Args:
            rakes, trains:    Input snapshot, in input order.
            graph:            Distance source and filler station pool.
            matrix:           Shared PheromoneMatrix, read-only for the ant.
            rng:              Source for filler destinations.
            alpha, beta:      Exponents on τ and on the distance term.
            shared_eta:       Optional pre-computed η (n_trains × n_rakes).
            shared_distances: Optional pre-computed distances, same shape.
                              Both shared arrays must come from
                              compute_heuristic() with the same beta.
        """
        self._rakes = rakes
        self._trains = trains
        self._graph = graph
        self._matrix = matrix
        self._rng = rng
        self._alpha = alpha

        if shared_eta is None or shared_distances is None:
            shared_distances, shared_eta = compute_heuristic(
                rakes, trains, graph, beta
            )
        self._eta = shared_eta
        self._distances = shared_distances

        self.solution: Optional[AntSolution] = None

    # ── Rake selection ────────────────────────────────────────────────────────

    def _select_rake(
        self,
        train_idx: int,
        available: List[int],
        origins: List[Optional[int]],
    ) -> int:
        """
        Position in `available` of the best rake for train `train_idx`.

        `origins` holds each rake's pheromone-matrix index (None if the
        matrix has never seen its station).
        """
        destination = self._matrix.index_of(self._trains[train_idx].current_station)
        tau = self._matrix.lookup([origins[r] for r in available], destination)
        scores = (tau ** self._alpha) * self._eta[train_idx, available]
        return int(np.argmax(scores))

    def _filler_destination(self) -> Optional[str]:
        stations = self._graph.stations
        if not stations:
            return None
        return stations[int(self._rng.integers(len(stations)))]

    # ── Solution construction ─────────────────────────────────────────────────

    def construct(self) -> AntSolution:
        """
        Build the allocation: one Allocation per rake.

        Algorithm:
            1. For each train in input order, while rakes remain: pick the
               best free rake, record the pairing, remove the rake.
               Trains left when rakes run out get no allocation.
            2. Every rake still free gets a filler move to a random
               station, counted as an empty movement.
            3. Sum empty movements and distance; score with fitness.
        """
        available: List[int] = list(range(len(self._rakes)))
        origins: List[Optional[int]] = [
            self._matrix.index_of(rake.current_location) for rake in self._rakes
        ]
        allocations: List[Allocation] = []

        # 1. Pair trains with rakes
        for train_idx, train in enumerate(self._trains):
            if not available:
                break
            rake_idx = available.pop(self._select_rake(train_idx, available, origins))
            rake = self._rakes[rake_idx]
            allocations.append(
                Allocation(
                    rake_id=rake.id,
                    rake_number=rake.rake_number,
                    train_id=train.id,
                    train_number=train.train_number,
                    from_station=rake.current_location,
                    to_station=train.current_station,
                    is_empty_movement=not rake.is_loaded,
                    distance=float(self._distances[train_idx, rake_idx]),
                )
            )

        # 2. Filler moves for leftover rakes
        for rake_idx in available:
            rake = self._rakes[rake_idx]
            target = self._filler_destination()
            if target is None:
                distance = self._graph.default_distance
            else:
                distance = self._graph.distance(rake.current_location, target)
            allocations.append(
                Allocation(
                    rake_id=rake.id,
                    rake_number=rake.rake_number,
                    from_station=rake.current_location,
                    to_station=target,
                    is_empty_movement=True,
                    distance=distance,
                )
            )

        # 3. Aggregate
        empty = sum(1 for a in allocations if a.is_empty_movement)
        total_distance = float(sum(a.distance for a in allocations))

        self.solution = AntSolution(
            allocations=allocations,
            total_empty_movements=empty,
            total_distance=total_distance,
            fitness=calculate_fitness(empty, total_distance),
        )
        return self.solution

    def __repr__(self) -> str:
        if self.solution is None:
            return f"Ant(rakes={len(self._rakes)}, trains={len(self._trains)}, built=False)"
        return (
            f"Ant(allocations={len(self.solution.allocations)}, "
            f"empty={self.solution.total_empty_movements}, "
            f"distance={self.solution.total_distance:.1f}, "
            f"fitness={self.solution.fitness:.6f})"
        )
