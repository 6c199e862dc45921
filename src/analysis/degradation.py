"""
Battery Degradation Model
Linear capacity-fade trend and remaining useful life projection
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from sklearn.linear_model import LinearRegression

from .common import Provenance, r_squared
from .soh_calculator import SoHPoint

logger = logging.getLogger(__name__)

# Slopes below this are rounding noise on flat data
FLAT_SLOPE_EPSILON = 1e-9


@dataclass(frozen=True)
class DegradationModel:
    """Linear fit of SoH over cycle index"""
    slope_per_cycle: float     # % SoH per cycle, negative while degrading
    intercept_percent: float
    r_squared: float
    n_points: int

    @property
    def degradation_rate(self) -> float:
        """Absolute SoH change per cycle"""
        return abs(self.slope_per_cycle)

    @property
    def is_degrading(self) -> bool:
        return self.slope_per_cycle < -FLAT_SLOPE_EPSILON

    def predict(self, cycle: float) -> float:
        return self.slope_per_cycle * cycle + self.intercept_percent


@dataclass(frozen=True)
class RULProjection:
    """Remaining cycles until end-of-life"""
    cycles: int
    degradation_rate: float
    provenance: Provenance
    reason: Optional[str] = None


def fit_degradation(history: Sequence[SoHPoint]) -> Optional[DegradationModel]:
    """
    Ordinary least squares of SoH on cycle over the full history.

    Returns None when fewer than two points are available.
    """
    if len(history) < 2:
        return None

    X = np.array([p.cycle for p in history], dtype=float).reshape(-1, 1)
    y = np.array([p.soh for p in history], dtype=float)

    model = LinearRegression()
    model.fit(X, y)
    slope = float(model.coef_[0])
    intercept = float(model.intercept_)

    return DegradationModel(
        slope_per_cycle=slope,
        intercept_percent=intercept,
        r_squared=r_squared(y, model.predict(X)),
        n_points=len(history),
    )


def calculate_degradation_rate(history: Sequence[SoHPoint]) -> float:
    """Absolute SoH slope per cycle, 0 with fewer than two points"""
    model = fit_degradation(history)
    return model.degradation_rate if model else 0.0


class RULProjector:
    """
    Extrapolates the linear degradation trend to the end-of-life threshold.

    Fewer than ``min_points`` SoH points, or a flat/improving trend, yield
    ``default_cycles``, meaning no end-of-life is predicted in the near term.
    """

    def __init__(
        self,
        eol_soh_percent: float = 80.0,
        default_cycles: int = 1000,
        min_points: int = 3,
    ):
        self.eol_soh_percent = eol_soh_percent
        self.default_cycles = default_cycles
        self.min_points = min_points

    def project(
        self,
        history: Sequence[SoHPoint],
        current_soh: float,
        model: Optional[DegradationModel] = None,
    ) -> RULProjection:
        # A trend needs two points
        if len(history) < max(self.min_points, 2):
            return RULProjection(
                cycles=self.default_cycles,
                degradation_rate=calculate_degradation_rate(history),
                provenance=Provenance.DEFAULT,
                reason="insufficient_data",
            )

        model = model or fit_degradation(history)
        if not model.is_degrading:
            return RULProjection(
                cycles=self.default_cycles,
                degradation_rate=model.degradation_rate,
                provenance=Provenance.DEFAULT,
                reason="stable_trend",
            )

        remaining = (current_soh - self.eol_soh_percent) / model.degradation_rate
        return RULProjection(
            # Half-up rounding
            cycles=max(0, int(np.floor(remaining + 0.5))),
            degradation_rate=model.degradation_rate,
            provenance=Provenance.COMPUTED,
        )


def calculate_rul(
    history: Sequence[SoHPoint],
    current_soh: float,
    eol_soh_percent: float = 80.0,
    default_cycles: int = 1000,
) -> int:
    """Remaining useful life in cycles"""
    projector = RULProjector(eol_soh_percent=eol_soh_percent, default_cycles=default_cycles)
    return projector.project(history, current_soh).cycles
