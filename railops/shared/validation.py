"""
railops/shared/validation.py
────────────────────────────
Parameter validation: the gate before a colony is allowed to run.

Pydantic (AcoParameters) already rejects bad values at construction time.
This module adds the checks again on model instances, because pydantic
does not re-validate on attribute assignment: a caller can build a valid
AcoParameters and then set `evaporation_rate = 1.5` on it. A rate outside
[0, 1] would make trails negative or grow them on every "evaporation",
so the colony refuses to start instead of producing nonsense.

What it checks
───────────────
  1. iterations is a positive integer.
  2. evaporation_rate is in [0, 1].
  3. pheromone_strength is a positive finite number.

Raises InvalidParametersError (a ValueError) on the first failing check.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Union

from pydantic import ValidationError

from railops.shared.models import AcoParameters

logger = logging.getLogger(__name__)


class InvalidParametersError(ValueError):
    """
    Raised when optimisation parameters are out of range.

    Attributes:
        reason: Human-readable explanation of what was rejected.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


def validate_parameters(
    params: Union[AcoParameters, Mapping[str, Any]],
) -> AcoParameters:
    """
    Return a checked AcoParameters.

    Args:
        params: An AcoParameters instance, or a mapping with snake_case or
                camelCase keys (e.g. a JSON request body).

    Raises:
        InvalidParametersError: with a descriptive reason.
    """
    if not isinstance(params, AcoParameters):
        try:
            params = AcoParameters.model_validate(dict(params))
        except ValidationError as e:
            logger.warning("Rejected optimisation parameters: %s", e)
            raise InvalidParametersError(
                f"Invalid optimisation parameters: {e}"
            ) from e

    try:
        _check_iterations(params.iterations)
        _check_evaporation_rate(params.evaporation_rate)
        _check_pheromone_strength(params.pheromone_strength)
    except InvalidParametersError as e:
        logger.warning("Rejected optimisation parameters: %s", e.reason)
        raise

    return params


def check_iterations(iterations: int) -> None:
    """Public form of the iteration check, for per-call overrides."""
    _check_iterations(iterations)


# ── Individual checks ─────────────────────────────────────────────────────────

def _check_iterations(iterations: int) -> None:
    if isinstance(iterations, bool) or not isinstance(iterations, int):
        raise InvalidParametersError(
            f"iterations must be an integer, got {iterations!r}"
        )
    if iterations <= 0:
        raise InvalidParametersError(
            f"iterations must be > 0, got {iterations}"
        )


def _check_evaporation_rate(rate: float) -> None:
    if not (0.0 <= rate <= 1.0):
        raise InvalidParametersError(
            f"evaporation_rate must be within [0, 1], got {rate}"
        )


def _check_pheromone_strength(strength: float) -> None:
    if not math.isfinite(strength) or strength <= 0.0:
        raise InvalidParametersError(
            f"pheromone_strength must be a positive finite number, got {strength}"
        )
