"""
tests/test_allocation_service.py
────────────────────────────────
AllocationService: registries, optimisation runs, write-back, history.

Test groups:
    Group 1 — Bootstrap and registries
    Group 2 — Optimisation runs and write-back
    Group 3 — Failure handling
"""

from __future__ import annotations

import numpy as np
import pytest

from rake_aco import InvalidParametersError
from railops.control_plane import AllocationService, OptimizationFailedError
from railops.control_plane import allocation_service as service_module
from railops.shared.models import RakeStatus, RunStatus


PARAMS = {"pheromoneStrength": 1.5, "evaporationRate": 0.3, "iterations": 5, "seed": 3}


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def svc() -> AllocationService:
    return AllocationService()


@pytest.fixture
def empty_svc() -> AllocationService:
    return AllocationService(bootstrap=False)


def _by_number(svc: AllocationService):
    return {r.rake_number: r for r in svc.get_rakes()}


# ─────────────────────────────────────────────────────────────────────────────
# Group 1 — Bootstrap and registries
# ─────────────────────────────────────────────────────────────────────────────

class TestRegistries:

    def test_sample_network_loaded(self, svc: AllocationService) -> None:
        assert len(svc.get_rakes()) == 3
        assert len(svc.get_trains()) == 2
        assert len(svc.get_routes()) == 2
        assert set(_by_number(svc)) == {"RK-2401", "RK-2402", "RK-2403"}

    def test_bootstrap_disabled(self, empty_svc: AllocationService) -> None:
        assert empty_svc.get_rakes() == []
        assert empty_svc.get_trains() == []
        assert empty_svc.get_routes() == []

    def test_add_records_from_camel_case(self, empty_svc: AllocationService) -> None:
        rake = empty_svc.add_rake(
            {"rakeNumber": "RK-9", "type": "LHB Coach", "currentLocation": "A", "isLoaded": True}
        )
        train = empty_svc.add_train({"trainNumber": "500", "currentStation": "B"})
        route = empty_svc.add_route({"name": "AB", "stations": ["A", "B"], "distance": 80})

        assert empty_svc.rakes[rake.id].rake_type == "LHB Coach"
        assert empty_svc.rakes[rake.id].is_loaded is True
        assert empty_svc.trains[train.id].current_station == "B"
        assert empty_svc.routes[route.id].distance == 80.0

    def test_route_needs_two_stations(self, empty_svc: AllocationService) -> None:
        with pytest.raises(ValueError):
            empty_svc.add_route({"stations": ["A"], "distance": 10})

    def test_fleet_stats(self, svc: AllocationService) -> None:
        """2 of 3 rakes unloaded; 1 of 2 trains on time."""
        stats = svc.get_fleet_stats()
        assert stats.total_rakes == 3
        assert stats.empty_rakes == 2
        assert stats.on_time_percentage == 50

    def test_fleet_stats_payload_keys(self, svc: AllocationService) -> None:
        """Delay incidents are not tracked, so no activeDelays counter."""
        payload = svc.get_fleet_stats().model_dump(by_alias=True)
        assert set(payload) == {"totalRakes", "emptyRakes", "onTimePercentage"}

    def test_fleet_stats_without_trains(self, empty_svc: AllocationService) -> None:
        assert empty_svc.get_fleet_stats().on_time_percentage == 0


# ─────────────────────────────────────────────────────────────────────────────
# Group 2 — Optimisation runs and write-back
# ─────────────────────────────────────────────────────────────────────────────

class TestRunOptimization:

    def test_payload_shape(self, svc: AllocationService) -> None:
        payload = svc.run_optimization(dict(PARAMS))
        for key in (
            "id",
            "status",
            "executionTimeMs",
            "emptyMovementsReduction",
            "optimizationScore",
            "allocations",
            "pheromoneMap",
            "totalEmptyMovements",
            "totalDistance",
        ):
            assert key in payload, f"missing {key}"
        assert payload["status"] == "completed"
        assert payload["iterations"] == 5
        assert len(payload["allocations"]) == 3

    def test_pairings_written_back(self, svc: AllocationService) -> None:
        """
        RK-2402 (loaded, at Vadodara) serves 12951 at Vadodara and RK-2403
        (at Chennai Central) serves 12639 there. RK-2401 only gets a filler
        move and its record stays as it was.
        """
        trains = {t.train_number: t for t in svc.get_trains()}
        svc.run_optimization(dict(PARAMS))
        rakes = _by_number(svc)

        assert rakes["RK-2402"].assigned_train_id == trains["12951"].id
        assert rakes["RK-2402"].status == RakeStatus.ASSIGNED

        assert rakes["RK-2403"].assigned_train_id == trains["12639"].id
        assert rakes["RK-2403"].is_loaded is True
        assert rakes["RK-2403"].status == RakeStatus.ASSIGNED

        assert rakes["RK-2401"].assigned_train_id is None
        assert rakes["RK-2401"].status == RakeStatus.AVAILABLE
        assert rakes["RK-2401"].is_loaded is False

        assert svc.get_fleet_stats().empty_rakes == 1

    def test_history_records_completed_run(self, svc: AllocationService) -> None:
        payload = svc.run_optimization(dict(PARAMS))
        history = svc.get_run_history()
        assert len(history) == 1
        assert history[0].id == payload["id"]
        assert history[0].status == RunStatus.COMPLETED
        assert history[0].pheromone_strength == 1.5
        assert history[0].execution_time_ms >= 0

    def test_snake_case_params_accepted(self, svc: AllocationService) -> None:
        payload = svc.run_optimization(
            {"pheromone_strength": 2.0, "evaporation_rate": 0.1, "iterations": 2}
        )
        assert payload["status"] == "completed"

    def test_seeded_runs_repeat(self) -> None:
        a = AllocationService().run_optimization(dict(PARAMS), rng=np.random.default_rng(9))
        b = AllocationService().run_optimization(dict(PARAMS), rng=np.random.default_rng(9))
        def strip(payload):
            # Record ids are fresh uuids per service
            return [
                {k: v for k, v in alloc.items() if k not in ("rakeId", "trainId")}
                for alloc in payload["allocations"]
            ]

        assert strip(a) == strip(b)
        assert a["optimizationScore"] == b["optimizationScore"]

    def test_empty_network_runs(self, empty_svc: AllocationService) -> None:
        payload = empty_svc.run_optimization(dict(PARAMS))
        assert payload["allocations"] == []
        assert payload["emptyMovementsReduction"] == 0.0
        assert payload["optimizationScore"] == 1.0


# ─────────────────────────────────────────────────────────────────────────────
# Group 3 — Failure handling
# ─────────────────────────────────────────────────────────────────────────────

class TestFailures:

    @pytest.mark.parametrize(
        "bad",
        [
            {"pheromoneStrength": 0, "evaporationRate": 0.5, "iterations": 5},
            {"pheromoneStrength": 1.0, "evaporationRate": 1.2, "iterations": 5},
            {"pheromoneStrength": 1.0, "evaporationRate": 0.5, "iterations": 0},
        ],
    )
    def test_invalid_params_rejected_without_record(
        self, svc: AllocationService, bad: dict
    ) -> None:
        with pytest.raises(InvalidParametersError):
            svc.run_optimization(bad)
        assert svc.get_run_history() == []
        assert all(r.assigned_train_id is None for r in svc.get_rakes())

    def test_unexpected_failure_recorded(
        self, svc: AllocationService, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(*args, **kwargs):
            raise RuntimeError("matrix exploded")

        monkeypatch.setattr(service_module, "optimize_allocation", boom)

        with pytest.raises(OptimizationFailedError) as exc:
            svc.run_optimization(dict(PARAMS))

        history = svc.get_run_history()
        assert len(history) == 1
        assert history[0].status == RunStatus.FAILED
        assert exc.value.run_id == history[0].id
        assert "matrix exploded" in str(exc.value)
        assert isinstance(exc.value.__cause__, RuntimeError)
