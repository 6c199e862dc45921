"""
Tests for Degradation Model and RUL projection
"""
import pytest

from src.analysis.common import Provenance
from src.analysis.degradation import (
    RULProjector,
    calculate_degradation_rate,
    calculate_rul,
    fit_degradation,
)
from src.analysis.soh_calculator import SoHPoint


def points(*pairs):
    return [SoHPoint(cycle=c, soh=s) for c, s in pairs]


class TestDegradationFit:
    """Linear SoH trend"""

    def test_perfect_line(self):
        model = fit_degradation(points((1, 100.0), (2, 99.0), (3, 98.0), (4, 97.0)))

        assert model.slope_per_cycle == pytest.approx(-1.0)
        assert model.intercept_percent == pytest.approx(101.0)
        assert model.r_squared == pytest.approx(1.0)
        assert model.n_points == 4
        assert model.is_degrading
        assert model.predict(10) == pytest.approx(91.0)

    def test_needs_two_points(self):
        assert fit_degradation(points((1, 100.0))) is None
        assert calculate_degradation_rate(points((1, 100.0))) == 0.0

    def test_rate_is_absolute(self):
        rate = calculate_degradation_rate(points((1, 90.0), (2, 92.0), (3, 94.0)))

        assert rate == pytest.approx(2.0)


class TestRULProjector:
    """Remaining useful life"""

    def setup_method(self):
        self.projector = RULProjector(eol_soh_percent=80.0, default_cycles=1000)

    def test_linear_decline(self):
        history = points((1, 100.0), (2, 99.0), (3, 98.0))

        projection = self.projector.project(history, current_soh=98.0)

        assert projection.cycles == 18
        assert projection.degradation_rate == pytest.approx(1.0)
        assert projection.provenance == Provenance.COMPUTED
        assert projection.reason is None

    def test_insufficient_history_defaults(self):
        history = points((1, 100.0), (2, 90.0))

        projection = self.projector.project(history, current_soh=90.0)

        assert projection.cycles == 1000
        assert projection.provenance == Provenance.DEFAULT
        assert projection.reason == "insufficient_data"

    def test_flat_trend_defaults(self):
        history = points((1, 95.0), (2, 95.0), (3, 95.0), (4, 95.0))

        projection = self.projector.project(history, current_soh=95.0)

        assert projection.cycles == 1000
        assert projection.reason == "stable_trend"

    def test_improving_trend_defaults(self):
        history = points((1, 90.0), (2, 91.0), (3, 92.0))

        assert calculate_rul(history, 92.0) == 1000

    def test_below_end_of_life_is_zero(self):
        history = points((1, 85.0), (2, 80.0), (3, 75.0))

        assert calculate_rul(history, 75.0) == 0

    def test_rounds_to_nearest_cycle(self):
        # 17.6 cycles left at 1% per cycle
        history = points((1, 100.0), (2, 99.0), (3, 98.0))

        assert calculate_rul(history, 97.6) == 18

    def test_shift_invariance(self):
        base = [(c, 100.0 - 0.5 * c) for c in range(1, 11)]
        shifted = [(c + 500, s) for c, s in base]

        assert calculate_rul(points(*base), 95.0) == calculate_rul(points(*shifted), 95.0)

    def test_custom_end_of_life(self):
        history = points((1, 100.0), (2, 99.0), (3, 98.0))

        assert calculate_rul(history, 98.0, eol_soh_percent=70.0) == 28

    def test_min_points_configurable(self):
        projector = RULProjector(min_points=5)
        history = points((1, 100.0), (2, 99.0), (3, 98.0), (4, 97.0))

        assert projector.project(history, 97.0).provenance == Provenance.DEFAULT

    def test_single_point_with_low_min_points(self):
        projector = RULProjector(min_points=1)

        projection = projector.project(points((1, 95.0)), 95.0)

        assert projection.cycles == 1000
        assert projection.reason == "insufficient_data"
