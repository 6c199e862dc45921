"""
State of Health (SoH) Calculator
Per-cycle capacity retention relative to an early-life baseline
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .common import Provenance, clamp
from .normalizer import Cycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SoHPoint:
    """Health of one cycle"""
    cycle: int
    soh: float  # 0-100


@dataclass(frozen=True)
class SoHCurve:
    """Ordered SoH history of one battery"""
    points: Tuple[SoHPoint, ...]
    baseline_capacity_mah: Optional[float]
    provenance: Provenance = Provenance.COMPUTED

    @property
    def latest(self) -> SoHPoint:
        return self.points[-1]

    @property
    def latest_soh(self) -> float:
        return self.points[-1].soh

    def __len__(self) -> int:
        return len(self.points)


class SoHCalculator:
    """
    Battery State of Health Calculator

    SoH of a cycle is its representative capacity (discharge capacity, or
    charge capacity when no discharge was recorded) divided by the baseline
    capacity. The baseline is the largest representative capacity among the
    first ``baseline_cycles`` valid cycles, so a single noisy formation cycle
    does not skew the whole curve.
    """

    def __init__(self, baseline_cycles: int = 3):
        """
        Initialize calculator.

        Args:
            baseline_cycles: Number of leading valid cycles used for the baseline
        """
        self.baseline_cycles = max(1, baseline_cycles)

    def estimate(self, cycles: Sequence[Cycle]) -> SoHCurve:
        """
        Build the SoH curve for a cycle-grouped dataset.

        Cycles without a valid capacity are skipped. When nothing is left the
        battery is assumed healthy: a single synthetic point at 100%.
        """
        valid = [
            (cycle.index, cycle.representative_capacity_mah)
            for cycle in cycles
            if cycle.representative_capacity_mah
        ]

        if not valid:
            logger.debug("No capacity data, assuming healthy battery")
            return SoHCurve(
                points=(SoHPoint(cycle=1, soh=100.0),),
                baseline_capacity_mah=None,
                provenance=Provenance.DEFAULT,
            )

        baseline = max(capacity for _, capacity in valid[: self.baseline_cycles])
        points = tuple(
            SoHPoint(cycle=index, soh=clamp(capacity / baseline * 100, 0.0, 100.0))
            for index, capacity in valid
        )
        return SoHCurve(points=points, baseline_capacity_mah=baseline)

    def calculate_soh(self, cycles: Sequence[Cycle]) -> float:
        """Latest SoH percentage"""
        return self.estimate(cycles).latest_soh

    def history(self, cycles: Sequence[Cycle]) -> List[SoHPoint]:
        return list(self.estimate(cycles).points)
