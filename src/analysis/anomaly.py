"""
Cycle Anomaly Detector
Per-cycle voltage, capacity and temperature irregularity checks
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

import numpy as np

from .common import r_squared
from .normalizer import Cycle

logger = logging.getLogger(__name__)


class AnomalyKind(str, Enum):
    VOLTAGE_DROP = "voltage_drop"
    CAPACITY_JUMP = "capacity_jump"
    TEMPERATURE_SPIKE = "temperature_spike"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class AnomalyThresholds:
    """
    Detection limits and per-detector confidences.

    The confidences are fixed constants, not calibrated probabilities.
    """
    voltage_high_ratio: float = 0.5
    voltage_medium_ratio: float = 0.7
    capacity_jump_ratio: float = 0.10
    temperature_medium_c: float = 60.0
    temperature_high_c: float = 80.0
    voltage_confidence: float = 0.85
    capacity_confidence: float = 0.75
    temperature_confidence: float = 0.90

    @classmethod
    def from_settings(cls, settings) -> "AnomalyThresholds":
        return cls(
            voltage_high_ratio=settings.anomaly_voltage_high_ratio,
            voltage_medium_ratio=settings.anomaly_voltage_medium_ratio,
            capacity_jump_ratio=settings.anomaly_capacity_jump_ratio,
            temperature_medium_c=settings.anomaly_temperature_medium_c,
            temperature_high_c=settings.anomaly_temperature_high_c,
            voltage_confidence=settings.anomaly_voltage_confidence,
            capacity_confidence=settings.anomaly_capacity_confidence,
            temperature_confidence=settings.anomaly_temperature_confidence,
        )


@dataclass(frozen=True)
class AnomalyEvent:
    """Single flagged irregularity"""
    cycle: int
    kind: AnomalyKind
    severity: Severity
    confidence: float
    description: str
    timestamp: Optional[Any] = None


@dataclass(frozen=True)
class Pattern:
    """Dataset-level behaviour"""
    type: str
    description: str
    strength: float


@dataclass
class AnomalyReport:
    """Result of one detection run"""
    anomalies: List[AnomalyEvent] = field(default_factory=list)
    patterns: List[Pattern] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


class AnomalyDetector:
    """
    Statistical anomaly checks on cycle-grouped data.

    Each cycle is judged against its own samples; there is no long-term
    baseline window. Capacity jumps compare consecutive cycles.
    """

    MIN_TREND_CYCLES = 5

    def __init__(self, thresholds: AnomalyThresholds = AnomalyThresholds()):
        self.thresholds = thresholds

    def detect(self, cycles: Sequence[Cycle]) -> AnomalyReport:
        """Run every detector, voltage events first, then capacity, then temperature."""
        report = AnomalyReport()
        if not cycles:
            return report

        report.anomalies.extend(self.detect_voltage_drops(cycles))
        report.anomalies.extend(self.detect_capacity_jumps(cycles))
        report.anomalies.extend(self.detect_temperature_spikes(cycles))
        report.patterns.extend(self.identify_patterns(cycles))
        report.recommendations.extend(
            self._generate_recommendations(report.anomalies, report.patterns)
        )

        if report.anomalies:
            logger.info(f"Detected {len(report.anomalies)} anomalies over {len(cycles)} cycles")
        return report

    def detect_voltage_drops(self, cycles: Sequence[Cycle]) -> List[AnomalyEvent]:
        t = self.thresholds
        events = []
        for cycle in cycles:
            voltages = cycle.voltages
            if not voltages:
                continue

            avg_voltage = sum(voltages) / len(voltages)
            min_voltage = min(voltages)
            if min_voltage >= avg_voltage * t.voltage_medium_ratio:
                continue

            severity = (
                Severity.HIGH if min_voltage < avg_voltage * t.voltage_high_ratio
                else Severity.MEDIUM
            )
            events.append(AnomalyEvent(
                cycle=cycle.index,
                kind=AnomalyKind.VOLTAGE_DROP,
                severity=severity,
                confidence=t.voltage_confidence,
                description=f"Voltage drop detected: {min_voltage:.2f}V (avg: {avg_voltage:.2f}V)",
                timestamp=cycle.started_at,
            ))
        return events

    def detect_capacity_jumps(self, cycles: Sequence[Cycle]) -> List[AnomalyEvent]:
        t = self.thresholds
        capacities = [
            (cycle, cycle.representative_capacity_mah)
            for cycle in cycles
            if cycle.representative_capacity_mah
        ]

        events = []
        for (_, previous), (cycle, current) in zip(capacities, capacities[1:]):
            increase = current - previous
            if increase > previous * t.capacity_jump_ratio:
                events.append(AnomalyEvent(
                    cycle=cycle.index,
                    kind=AnomalyKind.CAPACITY_JUMP,
                    severity=Severity.MEDIUM,
                    confidence=t.capacity_confidence,
                    description=f"Unusual capacity increase: {increase:.0f}mAh",
                    timestamp=cycle.started_at,
                ))
        return events

    def detect_temperature_spikes(self, cycles: Sequence[Cycle]) -> List[AnomalyEvent]:
        t = self.thresholds
        events = []
        for cycle in cycles:
            max_temp = cycle.max_temperature_c
            if max_temp is None or max_temp <= t.temperature_medium_c:
                continue

            events.append(AnomalyEvent(
                cycle=cycle.index,
                kind=AnomalyKind.TEMPERATURE_SPIKE,
                severity=Severity.HIGH if max_temp > t.temperature_high_c else Severity.MEDIUM,
                confidence=t.temperature_confidence,
                description=f"High temperature detected: {max_temp:.1f}°C",
                timestamp=cycle.started_at,
            ))
        return events

    def identify_patterns(self, cycles: Sequence[Cycle]) -> List[Pattern]:
        """Capacity fade trend, reported only when the fitted slope is negative"""
        points = [
            (cycle.index, cycle.representative_capacity_mah)
            for cycle in cycles
            if cycle.representative_capacity_mah
        ]
        if len(points) < self.MIN_TREND_CYCLES:
            return []

        x = np.array([p[0] for p in points], dtype=float)
        y = np.array([p[1] for p in points], dtype=float)
        slope, intercept = np.polyfit(x, y, 1)
        if slope >= 0:
            return []

        strength = max(0.0, r_squared(y, slope * x + intercept))
        return [Pattern(
            type="trend",
            description="Gradual capacity degradation observed",
            strength=round(strength, 3),
        )]

    def _generate_recommendations(
        self,
        anomalies: Sequence[AnomalyEvent],
        patterns: Sequence[Pattern],
    ) -> List[str]:
        kinds = {a.kind for a in anomalies}
        recs = []

        if AnomalyKind.TEMPERATURE_SPIKE in kinds:
            recs.append("Consider improving thermal management to prevent overheating")

        if AnomalyKind.VOLTAGE_DROP in kinds:
            recs.append("Monitor for potential cell imbalance or internal resistance increase")

        if AnomalyKind.CAPACITY_JUMP in kinds:
            recs.append("Verify capacity sensor calibration and cycler accounting")

        if any(p.type == "trend" and p.strength > 0.7 for p in patterns):
            recs.append("Regular maintenance schedule recommended based on degradation trend")

        return recs
