"""
Health Grade and Status Classifier
Rule-based scoring of SoH, RUL, wear and degradation rate
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .common import Provenance
from .degradation import DegradationModel, RULProjection, RULProjector, fit_degradation
from .soh_calculator import SoHCurve


class HealthGrade(str, Enum):
    """Battery health grade classification"""
    A = "A"  # >= 85 points
    B = "B"  # >= 70 points
    C = "C"  # >= 50 points
    D = "D"


class BatteryStatus(str, Enum):
    """Alerting state"""
    HEALTHY = "Healthy"
    DEGRADING = "Degrading"
    CRITICAL = "Critical"


# (threshold, points), evaluated top-down
SOH_POINTS = [(95, 40), (90, 35), (85, 30), (80, 20)]
SOH_FLOOR_POINTS = 10
RUL_POINTS = [(500, 35), (300, 30), (200, 25), (100, 15)]
RUL_FLOOR_POINTS = 5
# Fewer cycles means less wear, so these bands are upper bounds
CYCLE_POINTS = [(100, 25), (300, 20), (500, 15), (800, 10)]
CYCLE_FLOOR_POINTS = 5

GRADE_THRESHOLDS = [
    (85, HealthGrade.A),
    (70, HealthGrade.B),
    (50, HealthGrade.C),
]


@dataclass(frozen=True)
class HealthAssessment:
    """Current health summary of one battery"""
    soh: float
    rul: int
    grade: HealthGrade
    status: BatteryStatus
    degradation_rate: float
    cycle_count: int
    soh_provenance: Provenance = Provenance.COMPUTED
    rul_provenance: Provenance = Provenance.COMPUTED


def grade_score(soh: float, rul: float, cycles: int) -> int:
    """Total of the SoH, RUL and cycle-count band points"""
    score = next((p for t, p in SOH_POINTS if soh >= t), SOH_FLOOR_POINTS)
    score += next((p for t, p in RUL_POINTS if rul >= t), RUL_FLOOR_POINTS)
    score += next((p for t, p in CYCLE_POINTS if cycles <= t), CYCLE_FLOOR_POINTS)
    return score


def calculate_grade(soh: float, rul: float, cycles: int) -> HealthGrade:
    """Letter grade from SoH, remaining life and cycle count"""
    score = grade_score(soh, rul, cycles)
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return HealthGrade.D


def calculate_status(soh: float, degradation_rate: float) -> BatteryStatus:
    """Categorical status from SoH and per-cycle degradation rate"""
    if soh >= 90 and degradation_rate < 0.1:
        return BatteryStatus.HEALTHY
    if soh >= 85 and degradation_rate < 0.2:
        return BatteryStatus.HEALTHY
    if soh >= 70:
        return BatteryStatus.DEGRADING
    return BatteryStatus.CRITICAL


def assess_health(
    curve: SoHCurve,
    cycle_count: int,
    projector: Optional[RULProjector] = None,
    model: Optional[DegradationModel] = None,
) -> HealthAssessment:
    """
    Combine SoH, degradation trend and wear into a HealthAssessment.

    Args:
        curve: SoH history, latest point is the current SoH
        cycle_count: Cycles completed so far
        projector: RUL projector, defaults to 80% end-of-life
        model: Pre-fitted degradation model for ``curve``

    Returns:
        HealthAssessment, recomputed from scratch on every call
    """
    projector = projector or RULProjector()
    model = model or fit_degradation(curve.points)
    soh = curve.latest_soh

    rul: RULProjection = projector.project(curve.points, soh, model)
    rate = model.degradation_rate if model else 0.0

    return HealthAssessment(
        soh=soh,
        rul=rul.cycles,
        grade=calculate_grade(soh, rul.cycles, cycle_count),
        status=calculate_status(soh, rate),
        degradation_rate=rate,
        cycle_count=cycle_count,
        soh_provenance=curve.provenance,
        rul_provenance=rul.provenance,
    )
