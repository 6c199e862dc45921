"""
Tests for cycle metrics and issue analysis
"""
import pytest

from src.analysis.classifier import BatteryStatus, HealthAssessment, HealthGrade
from src.analysis.issues import IssueAnalyzer, IssueCategory, IssueSeverity
from src.analysis.metrics import (
    Chemistry,
    capacity_fade_rate,
    detect_chemistry,
    summarize_cycles,
    voltage_stability,
)
from src.analysis.normalizer import Cycle, DataNormalizer, Phase, RawSample
from src.analysis.soh_calculator import SoHCalculator


def normalize(records):
    dataset = DataNormalizer().normalize(records)
    return dataset.cycles, SoHCalculator().estimate(dataset.cycles)


def make_assessment(soh: float = 95.0, rul: int = 1000, cycles: int = 10) -> HealthAssessment:
    return HealthAssessment(
        soh=soh,
        rul=rul,
        grade=HealthGrade.A,
        status=BatteryStatus.HEALTHY,
        degradation_rate=0.0,
        cycle_count=cycles,
    )


def voltage_cycle(*voltages: float) -> Cycle:
    return Cycle.from_samples(1, [
        RawSample(row=i, phase=Phase.DISCHARGE, voltage_v=v, current_a=-1.0, capacity_mah=100.0)
        for i, v in enumerate(voltages)
    ])


class TestCycleMetrics:
    """Dataset summary figures"""

    def test_summary(self, cycler_records):
        cycles, curve = normalize(cycler_records([2500.0, 2450.0, 2400.0, 2350.0, 2300.0]))

        metrics = summarize_cycles(cycles, curve)

        assert metrics.total_cycles == 5
        assert metrics.max_discharge_capacity_mah == pytest.approx(2500.0)
        assert metrics.coulombic_efficiency == pytest.approx(100 / 1.01)
        assert metrics.first_cycle_efficiency == pytest.approx(100 / 1.01)
        assert metrics.average_discharge_voltage == pytest.approx(3.5)
        assert metrics.capacity_fade_rate == pytest.approx(2.0)
        assert metrics.voltage_stability == pytest.approx(0.0, abs=1e-9)
        assert metrics.cycle_at_80_percent_soh is None
        assert metrics.temperature_profile.mean == pytest.approx(25.0)
        assert metrics.energy_throughput_wh == 0.0
        assert metrics.chemistry == Chemistry.NMC

    def test_cycle_reaching_end_of_life(self, cycler_records):
        cycles, curve = normalize(cycler_records([2500.0, 2400.0, 2100.0, 1950.0, 1900.0]))

        metrics = summarize_cycles(cycles, curve)

        assert metrics.cycle_at_80_percent_soh == 4

    def test_fade_rate_needs_two_cycles(self, cycler_records):
        cycles, _ = normalize(cycler_records([2500.0]))

        assert capacity_fade_rate(cycles) == 0.0

    def test_voltage_stability(self):
        assert voltage_stability([4.0]) == 0.0
        assert voltage_stability([4.0, 4.2]) == pytest.approx(0.1 / 4.1 * 100)

    @pytest.mark.parametrize("voltages,expected", [
        ([3.2, 3.3, 3.35], Chemistry.LFP),
        ([3.6, 3.65], Chemistry.NMC),
        ([3.0, 3.9], Chemistry.NMC),
        ([], Chemistry.NMC),
    ])
    def test_detect_chemistry(self, voltages, expected):
        assert detect_chemistry(voltages) == expected


class TestIssueAnalyzer:
    """Rule-based findings"""

    def setup_method(self):
        self.analyzer = IssueAnalyzer()

    def test_healthy_battery_has_no_issues(self):
        cycle = voltage_cycle(3.7, 3.8, 3.9)

        issues = self.analyzer.analyze("cell-1", make_assessment(), [cycle], Chemistry.NMC)

        assert issues == []

    def test_worn_battery(self):
        cycle = voltage_cycle(3.7, 3.8, 3.9)
        assessment = make_assessment(soh=75.0, rul=50, cycles=2500)

        issues = self.analyzer.analyze("cell-1", assessment, [cycle], Chemistry.NMC)

        assert [i.id for i in issues] == [
            "cell-1-soh-critical",
            "cell-1-rul-critical",
            "cell-1-cycles-high",
        ]
        assert issues[0].severity == IssueSeverity.CRITICAL

    def test_warning_bands(self):
        cycle = voltage_cycle(3.7, 3.8)
        assessment = make_assessment(soh=88.0, rul=250)

        issues = self.analyzer.analyze("b", assessment, [cycle], Chemistry.NMC)

        assert [i.severity for i in issues] == [IssueSeverity.WARNING, IssueSeverity.WARNING]
        assert issues[1].category == IssueCategory.MAINTENANCE

    def test_overvoltage_and_deep_discharge(self):
        cycles = [voltage_cycle(4.35, 4.2), voltage_cycle(2.4, 2.45)]

        issues = self.analyzer.analyze("b", make_assessment(), cycles, Chemistry.NMC)
        ids = [i.id for i in issues]

        assert "b-overvoltage" in ids
        assert "b-undervoltage" in ids
        assert "b-voltage-instability" in ids
        assert issues[ids.index("b-overvoltage")].category == IssueCategory.SAFETY

    def test_lfp_degradation_note(self):
        cycle = voltage_cycle(3.2, 3.3)

        issues = self.analyzer.analyze("b", make_assessment(soh=84.0), [cycle], Chemistry.LFP)

        assert issues[-1].id == "b-lfp-degradation"
        assert issues[-1].severity == IssueSeverity.INFO

    def test_nmc_performance_note(self):
        cycle = voltage_cycle(3.7, 3.8)

        issues = self.analyzer.analyze("b", make_assessment(soh=95.0, cycles=1500), [cycle], Chemistry.NMC)

        assert [i.id for i in issues] == ["b-nmc-performance"]
