"""
Pytest configuration
"""
from typing import Callable, Dict, List, Optional, Sequence

import pytest


@pytest.fixture(autouse=True)
def env_setup(monkeypatch):
    """Set up test environment variables"""
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DEBUG", "false")


def build_cycler_records(
    capacities: Sequence[float],
    temperature: float = 25.0,
    temperatures: Optional[Sequence[float]] = None,
    steps: int = 4,
) -> List[Dict]:
    """
    Synthetic cycler export with one charge and one discharge step per cycle.

    Columns use vendor style names (Cycle_Number, Volt, Amp, Cap_mAh, Temp).
    Discharge capacity of cycle ``i`` ramps up to ``capacities[i]``.
    """
    records = []
    for i, capacity in enumerate(capacities):
        temp = temperatures[i] if temperatures is not None else temperature
        for step in range(1, steps + 1):
            records.append({
                "Cycle_Number": i + 1,
                "Volt": 3.6 + 0.5 * step / steps,
                "Amp": 1.0,
                "Cap_mAh": capacity * 1.01 * step / steps,
                "Temp": temp,
            })
        for step in range(1, steps + 1):
            records.append({
                "Cycle_Number": i + 1,
                "Volt": 4.0 - 0.8 * step / steps,
                "Amp": -1.0,
                "Cap_mAh": capacity * step / steps,
                "Temp": temp,
            })
    return records


@pytest.fixture
def cycler_records() -> Callable[..., List[Dict]]:
    """Factory for synthetic cycler rows"""
    return build_cycler_records
