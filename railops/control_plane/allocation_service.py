"""
railops/control_plane/allocation_service.py
────────────────────────────────────────────
AllocationService: the in-memory control plane around the ACO core.

The core only computes. This service owns the rake, train and route
registries, runs the optimiser on a snapshot of them, keeps a history of
runs, and writes the outcome back onto the rake records.

Pipeline for run_optimization()
────────────────────────────────
  1. Parameter validation (validate_parameters) → REJECTED on failure.
  2. Snapshot the registries and run optimize_allocation().
  3. Append an AcoRunRecord (bounded history).
  4. Apply allocations: every rake paired with a train becomes
     ASSIGNED, loaded, and remembers the train id. Filler moves leave the
     rake record untouched.
  5. Return the run record merged with the allocation payload.

Nothing is persisted. A restart loses the registries and the history.

Thread safety
──────────────
Not thread-safe. Runs synchronously; a caller serving concurrent requests
must serialise run_optimization() and the add_* methods.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Deque, Dict, List, Mapping, Optional

import numpy as np

from railops.shared.models import (
    AcoRunRecord,
    FleetStats,
    OptimizationResult,
    Rake,
    RakeStatus,
    Route,
    RunStatus,
    Train,
)
from railops.shared.validation import validate_parameters
from rake_aco import optimize_allocation

logger = logging.getLogger(__name__)

HISTORY_LIMIT: int = 100
"""Number of run records kept by the service."""


class OptimizationFailedError(Exception):
    """
    Raised when a run fails for a reason other than bad parameters.

    Attributes:
        run_id: Id of the FAILED AcoRunRecord stored in the history.
    """

    def __init__(self, run_id: str, message: str) -> None:
        self.run_id = run_id
        super().__init__(message)


class AllocationService:
    """
    Central control plane: registries, optimisation runs, history.

    Public API:
        add_rake(data) / add_train(data) / add_route(data)
        get_rakes() / get_trains() / get_routes()
        run_optimization(params_data, rng=None) → Dict
        get_run_history()                       → List[AcoRunRecord]
        get_fleet_stats()                       → FleetStats

    Attributes:
        rakes   : Dict[str, Rake]   — rake registry, insertion ordered
        trains  : Dict[str, Train]  — train registry, insertion ordered
        routes  : Dict[str, Route]  — route registry, insertion ordered
    """

    def __init__(self, bootstrap: bool = True) -> None:
        self.rakes: Dict[str, Rake] = {}
        self.trains: Dict[str, Train] = {}
        self.routes: Dict[str, Route] = {}
        self._history: Deque[AcoRunRecord] = deque(maxlen=HISTORY_LIMIT)

        if bootstrap:
            self._initialize_sample_network()
        logger.info(
            "AllocationService initialised with %d rakes, %d trains, %d routes.",
            len(self.rakes), len(self.trains), len(self.routes),
        )

    def _initialize_sample_network(self) -> None:
        """Two routes, three rakes, two trains."""
        for route in (
            Route(
                name="Mumbai-Delhi Express Route",
                origin="Mumbai Central",
                destination="New Delhi",
                distance=1384.5,
                stations=["Mumbai Central", "Vadodara", "Ahmedabad", "Jaipur", "New Delhi"],
                estimated_duration=960,
            ),
            Route(
                name="Chennai-Bangalore Route",
                origin="Chennai Central",
                destination="Bangalore",
                distance=362.0,
                stations=["Chennai Central", "Arakkonam", "Katpadi", "Bangalore"],
                estimated_duration=300,
            ),
        ):
            self.routes[route.id] = route

        for rake in (
            Rake(rake_number="RK-2401", rake_type="ICF Coach", capacity=72,
                 current_location="Mumbai Central"),
            Rake(rake_number="RK-2402", rake_type="LHB Coach", capacity=80,
                 status=RakeStatus.IN_TRANSIT, current_location="Vadodara",
                 is_loaded=True),
            Rake(rake_number="RK-2403", rake_type="ICF Coach", capacity=72,
                 current_location="Chennai Central"),
        ):
            self.rakes[rake.id] = rake

        for train in (
            Train(train_number="12951", name="Mumbai Rajdhani",
                  route="Mumbai-Delhi Express Route", current_station="Vadodara"),
            Train(train_number="12639", name="Brindavan Express",
                  route="Chennai-Bangalore Route", current_station="Chennai Central",
                  status="delayed", delay_minutes=25),
        ):
            self.trains[train.id] = train

    # ── Registries ────────────────────────────────────────────────────────────

    def add_rake(self, data: Mapping[str, Any]) -> Rake:
        rake = Rake.model_validate(data)
        self.rakes[rake.id] = rake
        return rake

    def add_train(self, data: Mapping[str, Any]) -> Train:
        train = Train.model_validate(data)
        self.trains[train.id] = train
        return train

    def add_route(self, data: Mapping[str, Any]) -> Route:
        route = Route.model_validate(data)
        self.routes[route.id] = route
        return route

    def get_rakes(self) -> List[Rake]:
        return list(self.rakes.values())

    def get_trains(self) -> List[Train]:
        return list(self.trains.values())

    def get_routes(self) -> List[Route]:
        return list(self.routes.values())

    # ── Optimisation ──────────────────────────────────────────────────────────

    def run_optimization(
        self,
        params_data: Mapping[str, Any],
        rng: Optional[np.random.Generator] = None,
    ) -> Dict[str, Any]:
        """
        Run the colony on the current registries and apply the result.

        Args:
            params_data: pheromoneStrength / evaporationRate / iterations
                         (camelCase or snake_case), optionally alpha, beta,
                         seed.
            rng:         Optional filler-destination Generator.

        Returns:
            The run record (camelCase) plus allocations, pheromoneMap,
            totalEmptyMovements and totalDistance.

        Raises:
            InvalidParametersError: parameters out of range. No record is
                                    stored.
            OptimizationFailedError: anything else went wrong. A FAILED
                                     record is stored first.
        """
        params = validate_parameters(params_data)

        start = time.perf_counter()
        try:
            result = optimize_allocation(
                self.get_rakes(), self.get_trains(), self.get_routes(),
                params, rng=rng,
            )
        except Exception as e:
            record = AcoRunRecord(
                pheromone_strength=params.pheromone_strength,
                evaporation_rate=params.evaporation_rate,
                iterations=params.iterations,
                execution_time_ms=_elapsed_ms(start),
                status=RunStatus.FAILED,
            )
            self._history.append(record)
            logger.exception("Optimisation run %s failed", record.id)
            raise OptimizationFailedError(
                record.id, f"ACO optimisation failed: {e.__class__.__name__}: {e}"
            ) from e

        record = AcoRunRecord(
            pheromone_strength=params.pheromone_strength,
            evaporation_rate=params.evaporation_rate,
            iterations=params.iterations,
            empty_movements_reduction=result.empty_movements_reduction,
            optimization_score=result.optimization_score,
            execution_time_ms=_elapsed_ms(start),
            status=RunStatus.COMPLETED,
        )
        self._history.append(record)

        assigned = self._apply_allocations(result)
        logger.info(
            "Optimisation run %s: %d allocations, %d rakes assigned, "
            "reduction=%.1f%%, score=%.6f",
            record.id, len(result.allocations), assigned,
            result.empty_movements_reduction, result.optimization_score,
        )

        payload = record.model_dump(by_alias=True, mode="json")
        payload.update(
            result.model_dump(
                by_alias=True,
                mode="json",
                include={
                    "allocations",
                    "pheromone_map",
                    "total_empty_movements",
                    "total_distance",
                },
            )
        )
        return payload

    def _apply_allocations(self, result: OptimizationResult) -> int:
        """Write train pairings back onto rake records. Returns the count."""
        assigned = 0
        for allocation in result.allocations:
            if allocation.train_id is None:
                continue
            rake = self.rakes.get(allocation.rake_id)
            if rake is None:
                logger.warning(
                    "Allocation names unknown rake %s; skipped.", allocation.rake_id
                )
                continue
            self.rakes[rake.id] = rake.model_copy(
                update={
                    "assigned_train_id": allocation.train_id,
                    "status": RakeStatus.ASSIGNED,
                    "is_loaded": True,
                }
            )
            assigned += 1
            logger.debug(
                "Rake %s → train %s (%s → %s, %.1f km)",
                allocation.rake_number, allocation.train_number,
                allocation.from_station, allocation.to_station, allocation.distance,
            )
        return assigned

    # ── Reporting ─────────────────────────────────────────────────────────────

    def get_run_history(self) -> List[AcoRunRecord]:
        """Stored runs, oldest first."""
        return list(self._history)

    def get_fleet_stats(self) -> FleetStats:
        """
        Rake and punctuality counters. Delay incidents are not tracked here,
        so there is no active-delay count; the train records only carry
        `delay_minutes`.
        """
        trains = self.get_trains()
        on_time = sum(1 for t in trains if t.delay_minutes == 0)
        return FleetStats(
            total_rakes=len(self.rakes),
            empty_rakes=sum(1 for r in self.rakes.values() if not r.is_loaded),
            on_time_percentage=round(on_time / len(trains) * 100) if trains else 0,
        )


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000.0))
