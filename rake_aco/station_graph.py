"""
rake_aco/station_graph.py
─────────────────────────
The station graph: every known station plus a distance lookup between them.

Where do distances come from?
──────────────────────────────
The network is described only by routes: an ordered list of stations and a
total length. There is no per-segment distance, so the graph assumes each
route's length is spread evenly over its gaps:

    hop(route)      = route.distance / (len(route.stations) - 1)
    distance(a, b)  = hop(route) × |index(b) − index(a)|

Three cases, checked in order:
  1. Same station             → 0.
  2. Both on one route        → interpolated along the FIRST route that
                                contains both.
  3. Only one of them known   → whole-route-length approximation
                                hop(route) × len(route.stations), minimised
                                over every route that contains either one.
                                This is a rough cost, not a shortest path:
                                no traversal across routes is attempted.
  4. Neither known            → DEFAULT_DISTANCE (off-network).

Station ordering
────────────────
`stations` lists every distinct station name in first-seen order across the
routes. That order defines the row/column indices of the PheromoneMatrix and
the pool the ants draw filler destinations from, so it must be stable.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from railops.shared.models import Route

DEFAULT_DISTANCE: float = 500.0
"""Distance used when neither station appears on any route.
A policy value for "unknown / off-network", not a measurement. Large
enough that ants prefer any on-network pairing over an unknown one.
"""


class StationGraph:
    """
    Immutable view over a route set.

    Used by:
        Ant         → distance() for the heuristic and the allocation record.
        Colony      → stations for the pheromone matrix and filler draws.

    distance() is called O(rakes × trains) times per colony, so results are
    memoised per ordered pair. The route set never changes after
    construction, which keeps the cache valid for the object's lifetime.
    """

    def __init__(
        self,
        routes: Sequence[Route],
        default_distance: float = DEFAULT_DISTANCE,
    ) -> None:
        if default_distance < 0.0:
            raise ValueError(
                f"default_distance must be ≥ 0, got {default_distance}"
            )
        self._routes: Tuple[Route, ...] = tuple(routes)
        self._default_distance = default_distance

        # First-seen order, duplicates dropped
        self._stations: List[str] = list(
            dict.fromkeys(s for route in self._routes for s in route.stations)
        )
        self._station_index: Dict[str, int] = {
            name: i for i, name in enumerate(self._stations)
        }

        # Per-route station → position lookups, built once
        self._positions: List[Dict[str, int]] = [
            {name: i for i, name in reversed(list(enumerate(route.stations)))}
            for route in self._routes
        ]

        self._cache: Dict[Tuple[str, str], float] = {}

    # ── Lookups ───────────────────────────────────────────────────────────────

    @property
    def stations(self) -> List[str]:
        """All distinct station names, first-seen order. Returns a copy."""
        return list(self._stations)

    @property
    def default_distance(self) -> float:
        return self._default_distance

    def index_of(self, station: str) -> Optional[int]:
        """Position of `station` in `stations`, or None if off-network."""
        return self._station_index.get(station)

    def __contains__(self, station: object) -> bool:
        return station in self._station_index

    def __len__(self) -> int:
        return len(self._stations)

    # ── Distance ──────────────────────────────────────────────────────────────

    def distance(self, station_a: str, station_b: str) -> float:
        """
        Travel distance between two named stations.

        Never raises for unknown names: an off-network pair costs
        `default_distance`. See the module docstring for the four cases.
        """
        if station_a == station_b:
            return 0.0

        key = (station_a, station_b)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = self._resolve(station_a, station_b)
        self._cache[key] = result
        return result

    def _resolve(self, station_a: str, station_b: str) -> float:
        # Case 2: a route containing both
        for route, positions in zip(self._routes, self._positions):
            index_a = positions.get(station_a)
            index_b = positions.get(station_b)
            if index_a is not None and index_b is not None:
                return _hop(route) * abs(index_b - index_a)

        # Case 3: whole-route-length approximation
        shortest: Optional[float] = None
        for route, positions in zip(self._routes, self._positions):
            if station_a in positions or station_b in positions:
                estimate = _hop(route) * len(route.stations)
                if shortest is None or estimate < shortest:
                    shortest = estimate

        if shortest is not None:
            return shortest

        # Case 4: off-network
        return self._default_distance

    def __repr__(self) -> str:
        return (
            f"StationGraph(routes={len(self._routes)}, "
            f"stations={len(self._stations)}, "
            f"default_distance={self._default_distance})"
        )


def _hop(route: Route) -> float:
    """Average distance between consecutive stations on `route`."""
    return route.distance / (len(route.stations) - 1)
