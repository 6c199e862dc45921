"""
Cycle Metrics
Dataset-level electrochemical summary figures
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .normalizer import Cycle
from .soh_calculator import SoHCurve


class Chemistry(str, Enum):
    LFP = "LFP"
    NMC = "NMC"


@dataclass(frozen=True)
class TemperatureProfile:
    mean: float
    min: float
    max: float


@dataclass(frozen=True)
class CycleMetrics:
    """Summary metrics of one cycled cell"""
    total_cycles: int
    max_discharge_capacity_mah: Optional[float]
    coulombic_efficiency: Optional[float]        # mean over cycles, %
    first_cycle_efficiency: Optional[float]      # %
    average_discharge_voltage: Optional[float]
    average_max_voltage: Optional[float]
    capacity_fade_rate: float                    # % of first capacity per cycle
    voltage_stability: float                     # CV of per-cycle max voltage, %
    cycle_at_80_percent_soh: Optional[int]
    temperature_profile: Optional[TemperatureProfile]
    energy_throughput_wh: float
    chemistry: Chemistry


def summarize_cycles(
    cycles: Sequence[Cycle],
    curve: SoHCurve,
    eol_soh_percent: float = 80.0,
) -> CycleMetrics:
    """Compute summary metrics for a cycle-grouped dataset"""
    discharge = [c.max_discharge_capacity_mah for c in cycles if c.max_discharge_capacity_mah > 0]
    efficiencies = [c.coulombic_efficiency for c in cycles if c.coulombic_efficiency is not None]
    discharge_voltages = [c.avg_discharge_voltage_v for c in cycles if c.avg_discharge_voltage_v]
    max_voltages = [c.max_voltage_v for c in cycles if c.max_voltage_v]
    voltages = [v for c in cycles for v in c.voltages]
    temps = [
        s.temperature_c for c in cycles for s in c.samples if s.temperature_c is not None
    ]
    energies = [s.energy_wh for c in cycles for s in c.samples if s.energy_wh is not None]

    below_eol = next(
        (p.cycle for p in curve.points if p.soh < eol_soh_percent and curve.baseline_capacity_mah),
        None,
    )

    return CycleMetrics(
        total_cycles=cycles[-1].index if cycles else 0,
        max_discharge_capacity_mah=max(discharge) if discharge else None,
        coulombic_efficiency=float(np.mean(efficiencies)) if efficiencies else None,
        first_cycle_efficiency=cycles[0].coulombic_efficiency if cycles else None,
        average_discharge_voltage=float(np.mean(discharge_voltages)) if discharge_voltages else None,
        average_max_voltage=float(np.mean(max_voltages)) if max_voltages else None,
        capacity_fade_rate=capacity_fade_rate(cycles),
        voltage_stability=voltage_stability(max_voltages),
        cycle_at_80_percent_soh=below_eol,
        temperature_profile=TemperatureProfile(
            mean=float(np.mean(temps)), min=min(temps), max=max(temps)
        ) if temps else None,
        energy_throughput_wh=float(np.sum(np.abs(energies))) if energies else 0.0,
        chemistry=detect_chemistry(voltages),
    )


def capacity_fade_rate(cycles: Sequence[Cycle]) -> float:
    """Percent of the first discharge capacity lost per cycle"""
    valid = [(c.index, c.max_discharge_capacity_mah) for c in cycles if c.max_discharge_capacity_mah > 0]
    if len(valid) < 2:
        return 0.0

    (first_cycle, first), (last_cycle, last) = valid[0], valid[-1]
    span = last_cycle - first_cycle
    return (first - last) / first / span * 100 if span > 0 else 0.0


def voltage_stability(voltages: Sequence[float]) -> float:
    """Coefficient of variation in percent"""
    if len(voltages) < 2:
        return 0.0
    values = np.asarray(voltages, dtype=float)
    return float(values.std() / values.mean() * 100)


def detect_chemistry(voltages: Sequence[float]) -> Chemistry:
    """LFP cells sit on a low, flat plateau"""
    if not voltages:
        return Chemistry.NMC
    if max(voltages) < 3.8 and float(np.mean(voltages)) < 3.3:
        return Chemistry.LFP
    return Chemistry.NMC
