"""
Services module
"""
from .battery_analysis import AnalysisResult, BatteryAnalyzer, ForecastRegistry

__all__ = ["BatteryAnalyzer", "AnalysisResult", "ForecastRegistry"]
