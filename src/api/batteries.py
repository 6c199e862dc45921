"""
Batteries API
Cycler data analysis, health reports and SoH forecasts
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from ..analysis.anomaly import AnomalyKind, Severity
from ..analysis.classifier import BatteryStatus, HealthGrade
from ..analysis.common import Provenance
from ..analysis.forecasting import ForecastKind, RiskLevel
from ..analysis.issues import IssueCategory, IssueSeverity
from ..analysis.metrics import Chemistry
from ..analysis.normalizer import MissingFieldError
from ..config import get_settings
from ..services.battery_analysis import AnalysisResult, BatteryAnalyzer, ForecastRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batteries")


# ============ Models ============

class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class AnalyzeRequest(BaseModel):
    """Raw cycler rows for one battery"""
    records: List[Dict[str, Any]] = Field(..., example=[
        {"Cycle_Number": 1, "Volt": 3.7, "Amp": 1.0, "Cap_mAh": 2500, "Temp": 25}
    ])
    horizon: Optional[int] = Field(default=None, ge=0, le=5000)


class SoHPointResponse(_FromAttributes):
    cycle: int
    soh: float


class AssessmentResponse(_FromAttributes):
    soh: float
    rul: int
    grade: HealthGrade
    status: BatteryStatus
    degradation_rate: float
    cycle_count: int
    soh_provenance: Provenance
    rul_provenance: Provenance


class DegradationResponse(_FromAttributes):
    slope_per_cycle: float
    intercept_percent: float
    r_squared: float
    n_points: int


class AnomalyResponse(_FromAttributes):
    cycle: int
    kind: AnomalyKind
    severity: Severity
    confidence: float
    description: str


class PatternResponse(_FromAttributes):
    type: str
    description: str
    strength: float


class PredictionResponse(_FromAttributes):
    cycle: int
    predicted_soh: float
    confidence: float
    anomaly_score: float
    risk_level: RiskLevel


class ForecastResponse(_FromAttributes):
    kind: ForecastKind
    accuracy: float
    provenance: Provenance
    predictions: List[PredictionResponse]


class IssueResponse(_FromAttributes):
    id: str
    severity: IssueSeverity
    category: IssueCategory
    title: str
    description: str
    cause: str
    recommendation: str
    affected_metrics: List[str]


class TemperatureProfileResponse(_FromAttributes):
    mean: float
    min: float
    max: float


class MetricsResponse(_FromAttributes):
    total_cycles: int
    max_discharge_capacity_mah: Optional[float]
    coulombic_efficiency: Optional[float]
    first_cycle_efficiency: Optional[float]
    average_discharge_voltage: Optional[float]
    average_max_voltage: Optional[float]
    capacity_fade_rate: float
    voltage_stability: float
    cycle_at_80_percent_soh: Optional[int]
    temperature_profile: Optional[TemperatureProfileResponse]
    energy_throughput_wh: float
    chemistry: Chemistry


class AnalysisResponse(BaseModel):
    """Battery analysis report"""
    battery_id: str
    analyzed_at: datetime
    field_bindings: Dict[str, str]
    units: Dict[str, str]
    sample_count: int
    skipped_rows: int
    soh_history: List[SoHPointResponse]
    assessment: AssessmentResponse
    degradation: Optional[DegradationResponse]
    anomalies: List[AnomalyResponse]
    patterns: List[PatternResponse]
    recommendations: List[str]
    issues: List[IssueResponse]
    metrics: MetricsResponse
    forecast: ForecastResponse


# ============ In-Memory Storage ============

_results: Dict[str, AnalysisResult] = {}
_forecasts = ForecastRegistry()


def _build_response(result: AnalysisResult) -> AnalysisResponse:
    return AnalysisResponse(
        battery_id=result.battery_id,
        analyzed_at=result.analyzed_at,
        field_bindings=dict(result.mapping.bindings),
        units=dict(result.mapping.units),
        sample_count=result.sample_count,
        skipped_rows=result.skipped_rows,
        soh_history=[SoHPointResponse.model_validate(p) for p in result.soh_curve.points],
        assessment=AssessmentResponse.model_validate(result.assessment),
        degradation=(
            DegradationResponse.model_validate(result.degradation)
            if result.degradation else None
        ),
        anomalies=[AnomalyResponse.model_validate(a) for a in result.anomalies.anomalies],
        patterns=[PatternResponse.model_validate(p) for p in result.anomalies.patterns],
        recommendations=list(result.anomalies.recommendations),
        issues=[IssueResponse.model_validate(i) for i in result.issues],
        metrics=MetricsResponse.model_validate(result.metrics),
        forecast=ForecastResponse.model_validate(_forecasts.get(result.battery_id)),
    )


# ============ Endpoints ============

@router.post("/{battery_id}/analyze", response_model=AnalysisResponse, status_code=201)
def analyze_battery(battery_id: str, request: AnalyzeRequest):
    """
    Analyze raw cycler data for a battery.

    Columns are matched against known vendor aliases; voltage, current and
    capacity are required. The stored report and forecast are replaced.
    """
    settings = get_settings()
    if len(request.records) > settings.max_records_per_request:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {settings.max_records_per_request} records per request",
        )

    try:
        result = BatteryAnalyzer(settings).analyze(
            request.records, battery_id=battery_id, horizon=request.horizon
        )
    except MissingFieldError as e:
        logger.warning(f"Analysis of {battery_id} rejected: {e}")
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "missing": list(e.missing), "columns": list(e.columns)},
        )

    _results[battery_id] = result
    _forecasts.put(battery_id, result.forecast)
    return _build_response(result)


@router.get("/{battery_id}/report", response_model=AnalysisResponse)
async def get_report(battery_id: str):
    """Get the latest analysis report of a battery"""
    if battery_id not in _results:
        raise HTTPException(status_code=404, detail="Battery not analyzed")
    return _build_response(_results[battery_id])


@router.get("/{battery_id}/forecast", response_model=ForecastResponse)
async def get_forecast(battery_id: str):
    """Get the active SoH forecast of a battery"""
    model = _forecasts.get(battery_id)
    if model is None:
        raise HTTPException(status_code=404, detail="No forecast for battery")
    return ForecastResponse.model_validate(model)


@router.post("/{battery_id}/forecast", response_model=ForecastResponse, status_code=201)
def regenerate_forecast(
    battery_id: str,
    horizon: Optional[int] = Query(default=None, ge=0, le=5000),
):
    """
    Regenerate the forecast from the stored SoH history, replacing the active one.
    Without ``horizon`` the configured forecast horizon is used.
    """
    if battery_id not in _results:
        raise HTTPException(status_code=404, detail="Battery not analyzed")

    model = BatteryAnalyzer(get_settings()).forecast(_results[battery_id].soh_curve, horizon)
    _forecasts.put(battery_id, model)
    return ForecastResponse.model_validate(model)
