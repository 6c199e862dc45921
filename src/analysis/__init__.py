"""
CellSight Analysis Module
Cycler data normalization, SoH, RUL, anomalies and forecasting
"""
from .normalizer import DataNormalizer, MissingFieldError, Phase
from .soh_calculator import SoHCalculator, SoHCurve, SoHPoint
from .degradation import RULProjector, calculate_rul, fit_degradation
from .classifier import HealthAssessment, calculate_grade, calculate_status
from .anomaly import AnomalyDetector, AnomalyThresholds
from .forecasting import ForecastModel, MultiModelForecaster

__all__ = [
    "DataNormalizer",
    "MissingFieldError",
    "Phase",
    "SoHCalculator",
    "SoHCurve",
    "SoHPoint",
    "RULProjector",
    "calculate_rul",
    "fit_degradation",
    "HealthAssessment",
    "calculate_grade",
    "calculate_status",
    "AnomalyDetector",
    "AnomalyThresholds",
    "ForecastModel",
    "MultiModelForecaster",
]
