"""
railops/shared/models.py
────────────────────────
The single source of truth for every data structure in the rake allocator.

Design philosophy
-----------------
Every model answers one question: "What does the allocator *need to know*
about this thing in order to pair rakes with trains?"

Input snapshots (Rake, Train, Route) are frozen. The ACO core never mutates
them; writing the outcome back onto rake records is the service layer's job.

All models accept camelCase keys (`rakeNumber`, `isLoaded`, ...) as well as
their snake_case field names, so payloads coming from a JSON API can be fed
in directly. Dump with `by_alias=True` to get camelCase back.

Reading guide
-------------
Read top-to-bottom. Each model builds on the ones above it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class RakeStatus(str, Enum):
    """
    Operational lifecycle of a rake.

    AVAILABLE   → Idle, can be paired with any train.
    ASSIGNED    → Paired with a train by an optimisation run.
    IN_TRANSIT  → Moving between stations.
    MAINTENANCE → Out of service.
    """
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in-transit"
    MAINTENANCE = "maintenance"


class RunStatus(str, Enum):
    """Outcome of one optimisation run as recorded by the service layer."""
    COMPLETED = "completed"
    FAILED = "failed"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: NETWORK SNAPSHOT
# What the allocator consumes. Read-only inside the core.
# ─────────────────────────────────────────────────────────────────────────────

class Rake(_FrozenCamelModel):
    """
    A reusable set of coaches/wagons that can be moved to serve a train.

    Fields:
        current_location  → Station name where the rake sits right now.
        is_loaded         → True if the rake already carries payload. Moving
                            a loaded rake is productive; moving an empty one
                            is an "empty movement" the optimiser tries to avoid.
        assigned_train_id → Set by the service layer after a run.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    rake_number: str = Field(..., description="Human-facing rake code, e.g. 'RK-2401'")
    rake_type: str = Field("ICF Coach", alias="type", description="Coach family")
    capacity: int = Field(72, ge=0, description="Seats / payload units")
    status: RakeStatus = RakeStatus.AVAILABLE
    current_location: str = Field(..., description="Station the rake is at")
    is_loaded: bool = False
    assigned_train_id: Optional[str] = None


class Train(_FrozenCamelModel):
    """A pending service that needs a rake at `current_station`."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    train_number: str = Field(..., description="Display number, e.g. '12951'")
    name: str = ""
    route: str = Field("", description="Name of the route the train runs on")
    current_station: str
    status: str = "on-time"
    delay_minutes: int = Field(0, ge=0)


class Route(_FrozenCamelModel):
    """
    An ordered list of stations with a total length.

    Only used to derive station-to-station distances: the total distance is
    assumed to be spread evenly over the gaps between consecutive stations.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    origin: str = ""
    destination: str = ""
    distance: float = Field(..., ge=0.0, description="Total route length in km")
    stations: List[str] = Field(..., min_length=2)
    estimated_duration: int = Field(0, ge=0, description="Minutes end to end")


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: OPTIMISER PARAMETERS
# ─────────────────────────────────────────────────────────────────────────────

class AcoParameters(_CamelModel):
    """
    Knobs for one optimisation run.

    pheromone_strength → Initial trail on every station pair, and the value
                         returned for pairs that have no trail yet.
    evaporation_rate   → Fraction of every trail lost per iteration.
    iterations         → Number of colony iterations.
    alpha / beta       → Exponents on the pheromone and distance terms.
    seed               → Seed for the filler-station RNG. None = fresh entropy.
    """
    pheromone_strength: float = Field(..., gt=0.0)
    evaporation_rate: float = Field(..., ge=0.0, le=1.0)
    iterations: int = Field(..., gt=0)
    alpha: float = Field(1.0, ge=0.0)
    beta: float = Field(2.5, ge=0.0)
    seed: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 4: OPTIMISER OUTPUT
# ─────────────────────────────────────────────────────────────────────────────

class Allocation(_CamelModel):
    """
    One rake's move inside a solution.

    train_id is None for filler moves: the rake was not needed by any train
    and is sent to a random station instead (always an empty movement).
    """
    rake_id: str
    rake_number: str
    train_id: Optional[str] = None
    train_number: Optional[str] = None
    from_station: str
    to_station: Optional[str] = None
    is_empty_movement: bool
    distance: float = Field(..., ge=0.0)


class AntSolution(_CamelModel):
    """One ant's complete allocation plus its aggregate scores."""
    allocations: List[Allocation] = Field(default_factory=list)
    total_empty_movements: int = 0
    total_distance: float = 0.0
    fitness: float = 0.0


class OptimizationResult(_CamelModel):
    """
    The best solution of a colony run.

    empty_movements_reduction → Percentage improvement over the baseline
                                (number of rakes that start unloaded).
                                Saturates at 0; 0 when the baseline is 0.
    optimization_score        → The best solution's fitness.
    pheromone_map             → "origin-destination" → trail strength,
                                copied after the final iteration.
    """
    allocations: List[Allocation] = Field(default_factory=list)
    total_empty_movements: int = 0
    total_distance: float = 0.0
    empty_movements_reduction: float = Field(0.0, ge=0.0, le=100.0)
    optimization_score: float = Field(0.0, ge=0.0, le=1.0)
    pheromone_map: Dict[str, float] = Field(default_factory=dict)


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 5: SERVICE RECORDS
# ─────────────────────────────────────────────────────────────────────────────

class AcoRunRecord(_CamelModel):
    """History entry for one optimisation run."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    pheromone_strength: float
    evaporation_rate: float
    iterations: int
    empty_movements_reduction: float = 0.0
    optimization_score: float = 0.0
    execution_time_ms: int = Field(0, ge=0)
    status: RunStatus = RunStatus.COMPLETED
    run_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FleetStats(_CamelModel):
    """Dashboard counters."""
    total_rakes: int
    empty_rakes: int
    on_time_percentage: int


# A pheromone snapshot maps "origin-destination" → trail strength
PheromoneMap = Dict[str, float]
