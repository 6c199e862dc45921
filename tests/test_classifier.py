"""
Tests for health grade and status classification
"""
import pytest

from src.analysis.classifier import (
    BatteryStatus,
    HealthGrade,
    assess_health,
    calculate_grade,
    calculate_status,
    grade_score,
)
from src.analysis.common import Provenance
from src.analysis.soh_calculator import SoHCurve, SoHPoint

GRADE_RANK = {HealthGrade.A: 3, HealthGrade.B: 2, HealthGrade.C: 1, HealthGrade.D: 0}


class TestGrade:
    """Point based letter grade"""

    @pytest.mark.parametrize("soh,rul,cycles,expected", [
        (100.0, 1000, 0, HealthGrade.A),
        (95.0, 500, 100, HealthGrade.A),
        (94.99, 499, 101, HealthGrade.A),
        (89.99, 499, 101, HealthGrade.B),
        (85.0, 200, 500, HealthGrade.B),
        (84.99, 200, 500, HealthGrade.C),
        (80.0, 100, 500, HealthGrade.C),
        (80.0, 100, 800, HealthGrade.D),
        (79.0, 99, 801, HealthGrade.D),
    ])
    def test_grade_boundaries(self, soh, rul, cycles, expected):
        assert calculate_grade(soh, rul, cycles) == expected

    def test_score_components(self):
        assert grade_score(95.0, 500, 100) == 100
        assert grade_score(50.0, 0, 5000) == 20
        assert grade_score(90.0, 300, 300) == 35 + 30 + 20

    def test_monotonic_in_each_input(self):
        sohs = [60, 80, 85, 90, 95, 100]
        ruls = [0, 100, 200, 300, 500, 1000]
        cycle_counts = [2000, 800, 500, 300, 100, 0]

        for rul in ruls:
            for cycles in cycle_counts:
                ranks = [GRADE_RANK[calculate_grade(s, rul, cycles)] for s in sohs]
                assert ranks == sorted(ranks)
        for soh in sohs:
            for cycles in cycle_counts:
                ranks = [GRADE_RANK[calculate_grade(soh, r, cycles)] for r in ruls]
                assert ranks == sorted(ranks)
        for soh in sohs:
            for rul in ruls:
                ranks = [GRADE_RANK[calculate_grade(soh, rul, c)] for c in cycle_counts]
                assert ranks == sorted(ranks)


class TestStatus:
    """Healthy / Degrading / Critical"""

    @pytest.mark.parametrize("soh,rate,expected", [
        (95.0, 0.05, BatteryStatus.HEALTHY),
        (90.0, 0.1, BatteryStatus.HEALTHY),
        (88.0, 0.15, BatteryStatus.HEALTHY),
        (88.0, 0.25, BatteryStatus.DEGRADING),
        (86.0, 0.2, BatteryStatus.DEGRADING),
        (82.0, 0.05, BatteryStatus.DEGRADING),
        (70.0, 5.0, BatteryStatus.DEGRADING),
        (60.0, 0.0, BatteryStatus.CRITICAL),
        (60.0, 3.0, BatteryStatus.CRITICAL),
        (69.99, 0.0, BatteryStatus.CRITICAL),
    ])
    def test_status_rules(self, soh, rate, expected):
        assert calculate_status(soh, rate) == expected


class TestAssessHealth:
    """Combined assessment"""

    def test_declining_curve(self):
        curve = SoHCurve(
            points=(SoHPoint(1, 100.0), SoHPoint(2, 99.0), SoHPoint(3, 98.0)),
            baseline_capacity_mah=2500.0,
        )

        assessment = assess_health(curve, cycle_count=3)

        assert assessment.soh == 98.0
        assert assessment.rul == 18
        assert assessment.degradation_rate == pytest.approx(1.0)
        assert assessment.status == BatteryStatus.DEGRADING
        assert assessment.grade == HealthGrade.B
        assert assessment.rul_provenance == Provenance.COMPUTED

    def test_synthetic_curve(self):
        curve = SoHCurve(
            points=(SoHPoint(1, 100.0),),
            baseline_capacity_mah=None,
            provenance=Provenance.DEFAULT,
        )

        assessment = assess_health(curve, cycle_count=0)

        assert assessment.soh == 100.0
        assert assessment.rul == 1000
        assert assessment.degradation_rate == 0.0
        assert assessment.status == BatteryStatus.HEALTHY
        assert assessment.grade == HealthGrade.A
        assert assessment.soh_provenance == Provenance.DEFAULT
        assert assessment.rul_provenance == Provenance.DEFAULT
