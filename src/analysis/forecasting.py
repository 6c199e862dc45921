"""
Multi-Model SoH Forecaster
Fits several degradation curve families and projects the best one forward
"""
import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence, Tuple

import numpy as np
from scipy.optimize import curve_fit
from sklearn.linear_model import LinearRegression

from .common import Provenance, clamp, r_squared
from .soh_calculator import SoHPoint

logger = logging.getLogger(__name__)


class ForecastKind(str, Enum):
    LINEAR = "linear"
    POLYNOMIAL = "polynomial"
    EXPONENTIAL_DECAY = "exponential_decay"
    TREND_HEURISTIC = "trend_heuristic"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Prediction:
    """Projected SoH at one future cycle"""
    cycle: int
    predicted_soh: float
    confidence: float
    anomaly_score: float
    risk_level: RiskLevel


@dataclass(frozen=True)
class ForecastModel:
    """Winning model and its horizon of predictions"""
    kind: ForecastKind
    accuracy: float
    predictions: Tuple[Prediction, ...]
    provenance: Provenance = Provenance.COMPUTED
    parameters: Tuple[float, ...] = field(default=())


@dataclass(frozen=True)
class _Candidate:
    kind: ForecastKind
    accuracy: float
    parameters: Tuple[float, ...]
    predict: Callable[[int], float]          # step -> SoH
    confidence: Callable[[int], float]       # step -> unclamped confidence


class MultiModelForecaster:
    """
    Forecasts future SoH from a SoH history.

    Candidate families, evaluated in this order:
    1. Linear least squares, accuracy is R^2
    2. Quadratic least squares, accuracy is R^2
    3. Exponential decay towards an asymptote, a*exp(-b*x) + c
    4. Trend-plus-volatility extrapolation over the recent window

    The candidate with the highest accuracy wins; ties keep the earlier
    family. All fits are deterministic.
    """

    POLYNOMIAL_DEGREE = 2
    TREND_WINDOW = 10
    ANOMALY_WINDOW = 5
    MIN_CONFIDENCE = 0.1

    # Per-step confidence decay by family
    LINEAR_DECAY = 0.01
    POLYNOMIAL_DECAY = 0.008
    EXPONENTIAL_DECAY = 0.005
    TREND_DECAY = 0.006
    TREND_VOLATILITY_PENALTY = 0.1

    def __init__(
        self,
        min_points: int = 5,
        fallback_confidence: float = 0.5,
    ):
        """
        Initialize forecaster.

        Args:
            min_points: Minimum history length for model fitting
            fallback_confidence: Confidence of the flat fallback forecast
        """
        self.min_points = min_points
        self.fallback_confidence = fallback_confidence

    def forecast(self, history: Sequence[SoHPoint], horizon: int = 100) -> ForecastModel:
        """
        Project SoH ``horizon`` cycles past the last observed cycle.

        Args:
            history: SoH points ordered by cycle
            horizon: Number of future cycles

        Returns:
            ForecastModel of the best fitting family
        """
        horizon = max(0, int(horizon))
        if len(history) < self.min_points:
            return self._fallback(history, horizon)

        x = np.array([p.cycle for p in history], dtype=float)
        y = np.array([p.soh for p in history], dtype=float)

        candidates = [
            self._fit_linear(x, y),
            self._fit_polynomial(x, y),
            self._fit_exponential(x, y),
            self._fit_trend(x, y),
        ]
        best = candidates[0]
        for candidate in candidates[1:]:
            if candidate.accuracy > best.accuracy:
                best = candidate

        logger.debug(
            "Forecast candidates: "
            + ", ".join(f"{c.kind.value}={c.accuracy:.3f}" for c in candidates)
        )
        return self._project(best, history, horizon)

    def _project(
        self,
        candidate: _Candidate,
        history: Sequence[SoHPoint],
        horizon: int,
    ) -> ForecastModel:
        last_cycle = history[-1].cycle
        mean, std = _recent_stats(history, self.ANOMALY_WINDOW)

        predictions = []
        for step in range(1, horizon + 1):
            soh = max(0.0, float(candidate.predict(step)))
            confidence = max(self.MIN_CONFIDENCE, float(candidate.confidence(step)))
            predictions.append(Prediction(
                cycle=last_cycle + step,
                predicted_soh=soh,
                confidence=confidence,
                anomaly_score=abs(soh - mean) / (std or 1.0),
                risk_level=calculate_risk_level(soh, confidence),
            ))

        return ForecastModel(
            kind=candidate.kind,
            accuracy=candidate.accuracy,
            predictions=tuple(predictions),
            parameters=candidate.parameters,
        )

    def _fit_linear(self, x: np.ndarray, y: np.ndarray) -> _Candidate:
        model = LinearRegression()
        model.fit(x.reshape(-1, 1), y)
        slope = float(model.coef_[0])
        intercept = float(model.intercept_)
        accuracy = clamp(r_squared(y, slope * x + intercept), 0.0, 1.0)
        last = x[-1]

        return _Candidate(
            kind=ForecastKind.LINEAR,
            accuracy=accuracy,
            parameters=(slope, intercept),
            predict=lambda i: slope * (last + i) + intercept,
            confidence=lambda i: accuracy - i * self.LINEAR_DECAY,
        )

    def _fit_polynomial(self, x: np.ndarray, y: np.ndarray) -> _Candidate:
        # Centre cycles for a well conditioned Vandermonde matrix
        center = x.mean()
        coefficients = np.polyfit(x - center, y, self.POLYNOMIAL_DEGREE)
        accuracy = clamp(r_squared(y, np.polyval(coefficients, x - center)), 0.0, 1.0)
        last = x[-1]

        return _Candidate(
            kind=ForecastKind.POLYNOMIAL,
            accuracy=accuracy,
            parameters=tuple(float(c) for c in coefficients),
            predict=lambda i: np.polyval(coefficients, last + i - center),
            confidence=lambda i: accuracy - i * self.POLYNOMIAL_DECAY,
        )

    def _fit_exponential(self, x: np.ndarray, y: np.ndarray) -> _Candidate:
        origin = x[0]
        t = x - origin
        amplitude = max(float(y.max() - y.min()), 1.0)
        p0 = (amplitude, 1.0 / max(float(t[-1]), 1.0), float(y.max()) - amplitude)
        bounds = ([0.0, 0.0, -100.0], [200.0, 1.0, 100.0])

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                params, _ = curve_fit(_exp_decay, t, y, p0=p0, bounds=bounds, maxfev=10000)
        except (RuntimeError, ValueError) as e:
            logger.warning(f"Exponential decay fit failed: {e}")
            return _Candidate(
                kind=ForecastKind.EXPONENTIAL_DECAY,
                accuracy=0.0,
                parameters=(),
                predict=lambda i: y[-1],
                confidence=lambda i: 0.0,
            )

        a, b, c = (float(p) for p in params)
        accuracy = clamp(r_squared(y, _exp_decay(t, a, b, c)), 0.0, 1.0)
        last = t[-1]

        return _Candidate(
            kind=ForecastKind.EXPONENTIAL_DECAY,
            accuracy=accuracy,
            parameters=(a, b, c),
            predict=lambda i: _exp_decay(last + i, a, b, c),
            confidence=lambda i: accuracy - i * self.EXPONENTIAL_DECAY,
        )

    def _fit_trend(self, x: np.ndarray, y: np.ndarray) -> _Candidate:
        """
        Closed-form extrapolation over the recent window.

        trend is the change between the window halves per cycle (per-sample
        change over the mean cycle spacing), volatility the population
        standard deviation of the window around its trend line. Accuracy is
        the R^2 of that trend line at the actual cycle positions.
        """
        size = min(self.TREND_WINDOW, len(y))
        window = y[-size:]
        cycles = x[-size:]
        spacing = float(np.diff(cycles).mean()) if size > 1 else 1.0
        trend = _half_trend(window) / (spacing or 1.0)
        fitted = window.mean() + trend * (cycles - cycles.mean())
        volatility = float(np.std(window - fitted))
        accuracy = clamp(r_squared(window, fitted), 0.0, 1.0)
        last_soh = float(y[-1])

        return _Candidate(
            kind=ForecastKind.TREND_HEURISTIC,
            accuracy=accuracy,
            parameters=(trend, volatility),
            predict=lambda i: last_soh + trend * i - volatility * np.sqrt(i),
            confidence=lambda i: (
                accuracy - i * self.TREND_DECAY - volatility * self.TREND_VOLATILITY_PENALTY
            ),
        )

    def _fallback(self, history: Sequence[SoHPoint], horizon: int) -> ForecastModel:
        """Flat extrapolation of the last known SoH"""
        last_cycle = history[-1].cycle if history else 0
        last_soh = history[-1].soh if history else 100.0
        mean, std = _recent_stats(history, self.ANOMALY_WINDOW)

        predictions = tuple(
            Prediction(
                cycle=last_cycle + step,
                predicted_soh=last_soh,
                confidence=self.fallback_confidence,
                anomaly_score=abs(last_soh - mean) / (std or 1.0),
                risk_level=_fallback_risk_level(last_soh),
            )
            for step in range(1, horizon + 1)
        )
        return ForecastModel(
            kind=ForecastKind.LINEAR,
            accuracy=self.fallback_confidence,
            predictions=predictions,
            provenance=Provenance.DEFAULT,
            parameters=(0.0, last_soh),
        )


def calculate_risk_level(predicted_soh: float, confidence: float) -> RiskLevel:
    if predicted_soh > 85 and confidence > 0.7:
        return RiskLevel.LOW
    if predicted_soh > 75 and confidence > 0.5:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def _fallback_risk_level(predicted_soh: float) -> RiskLevel:
    # Fallback confidence is fixed, so risk follows SoH alone
    if predicted_soh > 80:
        return RiskLevel.LOW
    if predicted_soh > 70:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def _exp_decay(t, a, b, c):
    return a * np.exp(-b * t) + c


def _half_trend(values: np.ndarray) -> float:
    if len(values) < 2:
        return 0.0
    half = len(values) // 2
    return float((values[half:].mean() - values[:half].mean()) / (len(values) / 2))


def _recent_stats(history: Sequence[SoHPoint], window: int) -> Tuple[float, float]:
    if not history:
        return 100.0, 0.0
    recent = np.array([p.soh for p in history[-window:]], dtype=float)
    return float(recent.mean()), float(recent.std())
