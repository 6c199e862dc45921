"""
CellSight Configuration Management
Analysis thresholds, model parameters and API settings
"""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    app_name: str = "CellSight"
    app_env: str = "development"
    debug: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api/v1"
    max_records_per_request: int = 500_000

    # Normalizer
    detect_units: bool = True
    header_scan_rows: int = 10

    # SoH / RUL
    baseline_cycles: int = 3
    eol_soh_percent: float = 80.0
    default_rul_cycles: int = 1000
    min_rul_points: int = 3

    # Forecasting
    forecast_horizon: int = 100
    forecast_min_points: int = 5
    forecast_fallback_confidence: float = 0.5

    # Anomaly detection (uncalibrated defaults, tune per chemistry)
    anomaly_voltage_high_ratio: float = 0.5
    anomaly_voltage_medium_ratio: float = 0.7
    anomaly_capacity_jump_ratio: float = 0.10
    anomaly_temperature_medium_c: float = 60.0
    anomaly_temperature_high_c: float = 80.0
    anomaly_voltage_confidence: float = 0.85
    anomaly_capacity_confidence: float = 0.75
    anomaly_temperature_confidence: float = 0.90

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
