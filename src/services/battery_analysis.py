"""
Battery Analysis Service
Runs the full cycler-data analysis pipeline for one battery
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..analysis.anomaly import AnomalyDetector, AnomalyReport, AnomalyThresholds
from ..analysis.classifier import HealthAssessment, assess_health
from ..analysis.degradation import DegradationModel, RULProjector, fit_degradation
from ..analysis.forecasting import ForecastModel, MultiModelForecaster
from ..analysis.issues import BatteryIssue, IssueAnalyzer
from ..analysis.metrics import CycleMetrics, summarize_cycles
from ..analysis.normalizer import DataNormalizer, FieldMapping
from ..analysis.soh_calculator import SoHCalculator, SoHCurve
from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything derived from one dataset"""
    battery_id: str
    mapping: FieldMapping
    soh_curve: SoHCurve
    degradation: Optional[DegradationModel]
    assessment: HealthAssessment
    anomalies: AnomalyReport
    forecast: ForecastModel
    metrics: CycleMetrics
    issues: List[BatteryIssue] = field(default_factory=list)
    sample_count: int = 0
    skipped_rows: int = 0
    analyzed_at: datetime = field(default_factory=datetime.utcnow)


class BatteryAnalyzer:
    """
    Battery health analyzer for raw cycler records

    Pipeline: normalize -> SoH curve -> degradation fit -> RUL, grade and
    status -> forecast. Anomaly detection runs on the cycles directly.
    Every call is stateless; identical records give identical results.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.settings = settings
        self.normalizer = DataNormalizer(
            detect_units=settings.detect_units,
            header_scan_rows=settings.header_scan_rows,
        )
        self.soh_calculator = SoHCalculator(baseline_cycles=settings.baseline_cycles)
        self.rul_projector = RULProjector(
            eol_soh_percent=settings.eol_soh_percent,
            default_cycles=settings.default_rul_cycles,
            min_points=settings.min_rul_points,
        )
        self.anomaly_detector = AnomalyDetector(AnomalyThresholds.from_settings(settings))
        self.forecaster = MultiModelForecaster(
            min_points=settings.forecast_min_points,
            fallback_confidence=settings.forecast_fallback_confidence,
        )
        self.issue_analyzer = IssueAnalyzer()

    def analyze(
        self,
        records: Sequence[Mapping[str, Any]],
        battery_id: str = "battery",
        horizon: Optional[int] = None,
    ) -> AnalysisResult:
        """
        Analyze battery health from raw cycler rows

        Args:
            records: Rows keyed by vendor column names
            battery_id: Identifier used in issue ids and logs
            horizon: Forecast horizon in cycles, defaults to settings

        Returns:
            AnalysisResult with SoH curve, assessment, anomalies and forecast

        Raises:
            MissingFieldError: voltage, current or capacity column not found
        """
        dataset = self.normalizer.normalize(records)
        curve = self.soh_calculator.estimate(dataset.cycles)
        model = fit_degradation(curve.points)

        assessment = assess_health(
            curve,
            cycle_count=dataset.cycle_count,
            projector=self.rul_projector,
            model=model,
        )
        anomalies = self.anomaly_detector.detect(dataset.cycles)
        forecast = self.forecast(curve, horizon)
        metrics = summarize_cycles(
            dataset.cycles, curve, eol_soh_percent=self.settings.eol_soh_percent
        )
        issues = self.issue_analyzer.analyze(
            battery_id, assessment, dataset.cycles, metrics.chemistry
        )

        logger.info(
            f"Analyzed {battery_id}: {len(dataset.cycles)} cycles, "
            f"SoH {assessment.soh:.1f}%, RUL {assessment.rul}, "
            f"grade {assessment.grade.value}, {assessment.status.value}"
        )

        return AnalysisResult(
            battery_id=battery_id,
            mapping=dataset.mapping,
            soh_curve=curve,
            degradation=model,
            assessment=assessment,
            anomalies=anomalies,
            forecast=forecast,
            metrics=metrics,
            issues=issues,
            sample_count=len(dataset.samples),
            skipped_rows=dataset.skipped_rows,
        )

    def forecast(self, curve: SoHCurve, horizon: Optional[int] = None) -> ForecastModel:
        """Forecast from an existing SoH curve"""
        if horizon is None:
            horizon = self.settings.forecast_horizon
        return self.forecaster.forecast(curve.points, horizon)


class ForecastRegistry:
    """
    Active forecast per battery.

    Storing a forecast replaces the previous one for that battery.
    """

    def __init__(self):
        self._models: Dict[str, ForecastModel] = {}

    def put(self, battery_id: str, model: ForecastModel) -> ForecastModel:
        self._models[battery_id] = model
        return model

    def get(self, battery_id: str) -> Optional[ForecastModel]:
        return self._models.get(battery_id)

    def clear(self) -> None:
        self._models.clear()
