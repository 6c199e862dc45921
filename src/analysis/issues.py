"""
Battery Issue Analysis
Turns a health assessment and raw voltages into actionable findings
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

import numpy as np

from .classifier import HealthAssessment
from .metrics import Chemistry
from .normalizer import Cycle


class IssueSeverity(str, Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class IssueCategory(str, Enum):
    PERFORMANCE = "Performance"
    SAFETY = "Safety"
    MAINTENANCE = "Maintenance"
    OPERATIONAL = "Operational"


@dataclass(frozen=True)
class BatteryIssue:
    """Single finding with cause and remedy"""
    id: str
    severity: IssueSeverity
    category: IssueCategory
    title: str
    description: str
    cause: str
    recommendation: str
    affected_metrics: List[str] = field(default_factory=list)


class IssueAnalyzer:
    """
    Rule-based issue finder.

    Limits follow common Li-ion datasheet values.
    """

    OVERVOLTAGE_V = 4.3
    DEEP_DISCHARGE_V = 2.5
    VOLTAGE_STD_LIMIT_V = 0.5
    HIGH_CYCLE_COUNT = 2000

    def analyze(
        self,
        battery_id: str,
        assessment: HealthAssessment,
        cycles: Sequence[Cycle],
        chemistry: Chemistry,
    ) -> List[BatteryIssue]:
        issues = []
        soh, rul, cycle_count = assessment.soh, assessment.rul, assessment.cycle_count

        if soh < 80:
            issues.append(BatteryIssue(
                id=f"{battery_id}-soh-critical",
                severity=IssueSeverity.CRITICAL,
                category=IssueCategory.PERFORMANCE,
                title="Critical State of Health Degradation",
                description=f"Battery SoH has dropped to {soh:.1f}%, below the 80% threshold",
                cause="Excessive cycling, high temperature exposure or deep discharge cycles",
                recommendation="Replace battery for critical applications",
                affected_metrics=["SoH", "RUL", "Capacity"],
            ))
        elif soh < 90:
            issues.append(BatteryIssue(
                id=f"{battery_id}-soh-warning",
                severity=IssueSeverity.WARNING,
                category=IssueCategory.PERFORMANCE,
                title="Moderate State of Health Degradation",
                description=f"Battery SoH is {soh:.1f}%, showing signs of aging",
                cause="Normal aging accelerated by operating conditions or usage patterns",
                recommendation="Plan for replacement within 6-12 months",
                affected_metrics=["SoH", "RUL"],
            ))

        if rul < 100:
            issues.append(BatteryIssue(
                id=f"{battery_id}-rul-critical",
                severity=IssueSeverity.CRITICAL,
                category=IssueCategory.OPERATIONAL,
                title="Low Remaining Useful Life",
                description=f"Only {rul} cycles remaining before end-of-life",
                cause="High degradation rate due to stress factors or poor operating conditions",
                recommendation="Replace within the next 50 cycles",
                affected_metrics=["RUL", "Reliability"],
            ))
        elif rul < 300:
            issues.append(BatteryIssue(
                id=f"{battery_id}-rul-warning",
                severity=IssueSeverity.WARNING,
                category=IssueCategory.MAINTENANCE,
                title="Reduced Remaining Useful Life",
                description=f"{rul} cycles remaining, entering end-of-life phase",
                cause="Progressive capacity fade and increased internal resistance",
                recommendation="Schedule replacement and monitor performance closely",
                affected_metrics=["RUL", "Performance"],
            ))

        if cycle_count > self.HIGH_CYCLE_COUNT:
            issues.append(BatteryIssue(
                id=f"{battery_id}-cycles-high",
                severity=IssueSeverity.WARNING,
                category=IssueCategory.MAINTENANCE,
                title="High Cycle Count",
                description=f"Battery has completed {cycle_count} cycles",
                cause="Extended usage leading to cumulative degradation",
                recommendation="Increase monitoring frequency and prepare for replacement",
                affected_metrics=["Cycles", "Reliability"],
            ))

        issues.extend(self._voltage_issues(battery_id, cycles))
        issues.extend(self._chemistry_issues(battery_id, chemistry, soh, cycle_count))
        return issues

    def _voltage_issues(self, battery_id: str, cycles: Sequence[Cycle]) -> List[BatteryIssue]:
        voltages = [v for c in cycles for v in c.voltages]
        if not voltages:
            return []

        issues = []
        max_voltage, min_voltage = max(voltages), min(voltages)

        if max_voltage > self.OVERVOLTAGE_V:
            issues.append(BatteryIssue(
                id=f"{battery_id}-overvoltage",
                severity=IssueSeverity.CRITICAL,
                category=IssueCategory.SAFETY,
                title="Overvoltage Detected",
                description=f"Maximum voltage of {max_voltage:.2f}V exceeds safe limits",
                cause="Charging system malfunction or improper voltage settings",
                recommendation="Review charging parameters and cycler calibration",
                affected_metrics=["Voltage", "Safety"],
            ))

        if min_voltage < self.DEEP_DISCHARGE_V:
            issues.append(BatteryIssue(
                id=f"{battery_id}-undervoltage",
                severity=IssueSeverity.CRITICAL,
                category=IssueCategory.SAFETY,
                title="Deep Discharge Detected",
                description=f"Minimum voltage of {min_voltage:.2f}V indicates deep discharge",
                cause="Over-discharge protection failure or excessive load",
                recommendation="Review discharge cutoff settings",
                affected_metrics=["Voltage", "Capacity", "Lifespan"],
            ))

        std = float(np.std(voltages))
        if std > self.VOLTAGE_STD_LIMIT_V:
            issues.append(BatteryIssue(
                id=f"{battery_id}-voltage-instability",
                severity=IssueSeverity.WARNING,
                category=IssueCategory.PERFORMANCE,
                title="Voltage Instability",
                description=f"High voltage variation (sigma={std:.3f}V) detected",
                cause="Internal resistance increase, connection issues or cell imbalance",
                recommendation="Check connections and perform internal resistance testing",
                affected_metrics=["Voltage", "Performance"],
            ))

        return issues

    def _chemistry_issues(
        self,
        battery_id: str,
        chemistry: Chemistry,
        soh: float,
        cycle_count: int,
    ) -> List[BatteryIssue]:
        if chemistry == Chemistry.LFP and soh < 85:
            return [BatteryIssue(
                id=f"{battery_id}-lfp-degradation",
                severity=IssueSeverity.INFO,
                category=IssueCategory.PERFORMANCE,
                title="LFP Chemistry Degradation Pattern",
                description="LFP cells typically hold capacity long, then drop suddenly",
                cause="LFP-specific mechanisms including iron dissolution",
                recommendation="Perform a full capacity test to verify actual degradation",
                affected_metrics=["SoH", "Capacity"],
            )]

        if chemistry == Chemistry.NMC and cycle_count > 1000 and soh > 90:
            return [BatteryIssue(
                id=f"{battery_id}-nmc-performance",
                severity=IssueSeverity.INFO,
                category=IssueCategory.PERFORMANCE,
                title="Excellent NMC Performance",
                description="Battery performs better than expected for its cycle count",
                cause="Favourable operating conditions and thermal management",
                recommendation="Document and replicate current operating conditions",
                affected_metrics=["Performance", "Lifespan"],
            )]

        return []
