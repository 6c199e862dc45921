"""
Cycler Data Normalizer
Maps vendor-specific cycler exports onto canonical samples and cycles
"""
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


CURRENT_EPSILON_A = 0.001
MIN_ABBREVIATION_LENGTH = 3

MANDATORY_QUANTITIES = ("voltage", "current", "capacity")
OPTIONAL_QUANTITIES = ("cycle", "phase", "temperature", "energy", "time")
# Capacity binds before current so "Amp-hr" style columns are not taken as current
RESOLUTION_ORDER = ("voltage", "capacity", "current") + OPTIONAL_QUANTITIES

# Current columns never carry an hour unit
_HOUR_UNIT = re.compile(r"(?:hr|ah|\.h)(?![a-z])")


class Phase(str, Enum):
    """Closed set of cycling step phases"""
    CHARGE = "charge"
    DISCHARGE = "discharge"
    REST = "rest"
    UNKNOWN = "unknown"


class MissingFieldError(ValueError):
    """A mandatory quantity could not be bound to any source column"""

    def __init__(self, missing: Sequence[str], columns: Sequence[str]):
        self.missing = tuple(missing)
        self.columns = tuple(columns)
        super().__init__(
            f"Could not resolve required field(s) {', '.join(self.missing)} "
            f"from columns {list(self.columns)}"
        )


@dataclass(frozen=True)
class FieldAliases:
    """
    Ordered alias substrings per canonical quantity.

    Aliases are matched against lowercased column names with spaces and
    dashes folded to underscores. A column matches when it contains the
    alias, or, failing that, when the alias contains the column name.
    Earlier aliases win; for one alias the first column in dataset order.
    """
    voltage: Tuple[str, ...] = (
        "voltage", "volt", "potential", "ewe", "ecell", "vbat", "vcell",
        "u(v)", "v(v)",
    )
    current: Tuple[str, ...] = (
        "current", "curr", "amp", "amperage", "ibat", "icell", "i(a)", "i(ma)",
        "i/ma", "i/a", "<i>",
    )
    capacity: Tuple[str, ...] = (
        "capacity", "cap", "mah", "ah", "amp_hr", "amphr", "a_h", "ma.h",
        "q_discharge", "q_charge", "qd", "qc",
    )
    cycle: Tuple[str, ...] = (
        "cycle_index", "cycle_number", "cycle_id", "cycle_no", "cyc_no",
        "cycle", "cyc", "loop",
    )
    phase: Tuple[str, ...] = (
        "step_type", "step_name", "phase", "mode", "regime", "control_mode",
        "state",
    )
    temperature: Tuple[str, ...] = (
        "temperature", "temp", "celsius", "thermocouple", "t(c)",
    )
    energy: Tuple[str, ...] = ("energy", "wh", "watt_hr", "watthr")
    time: Tuple[str, ...] = (
        "timestamp", "datetime", "date_time", "test_time", "elapsed", "time",
        "duration", "(sec)",
    )

    def for_quantity(self, quantity: str) -> Tuple[str, ...]:
        return getattr(self, quantity)


DEFAULT_ALIASES = FieldAliases()


# Vendor step vocabularies. Exact codes first, then substrings; discharge
# words must be tested before charge words.
_PHASE_CODES = {
    "c": Phase.CHARGE, "cc": Phase.CHARGE, "cv": Phase.CHARGE,
    "cccv": Phase.CHARGE, "cc_cv": Phase.CHARGE, "ch": Phase.CHARGE,
    "d": Phase.DISCHARGE, "dc": Phase.DISCHARGE, "dis": Phase.DISCHARGE,
    "r": Phase.REST, "oc": Phase.REST, "ocv": Phase.REST,
}
_PHASE_WORDS = (
    (Phase.DISCHARGE, ("discharg", "dchg", "disch", "dischg")),
    (Phase.CHARGE, ("charg", "chg", "chrg")),
    (Phase.REST, ("rest", "relax", "pause", "idle", "open_circuit", "wait")),
)

# Scale factors onto canonical units (V, A, mAh)
_UNIT_SCALES = {
    "voltage": {"V": 1.0, "mV": 0.001},
    "current": {"A": 1.0, "mA": 0.001},
    "capacity": {"mAh": 1.0, "Ah": 1000.0},
}
_CANONICAL_UNITS = {"voltage": "V", "current": "A", "capacity": "mAh"}


@dataclass(frozen=True)
class FieldMapping:
    """Dataset-wide binding of canonical quantities to source columns"""
    columns: Tuple[str, ...]
    bindings: Dict[str, str] = field(default_factory=dict)
    units: Dict[str, str] = field(default_factory=dict)

    def column_for(self, quantity: str) -> Optional[str]:
        return self.bindings.get(quantity)

    def scale_for(self, quantity: str) -> float:
        unit = self.units.get(quantity, _CANONICAL_UNITS.get(quantity))
        return _UNIT_SCALES.get(quantity, {}).get(unit, 1.0)

    @property
    def has_cycle_column(self) -> bool:
        return "cycle" in self.bindings


@dataclass(frozen=True)
class RawSample:
    """One canonical measurement row"""
    row: int
    phase: Phase
    voltage_v: Optional[float]      # > 0 when present
    current_a: Optional[float]
    capacity_mah: Optional[float]   # absolute cumulative step capacity
    cycle_index: Optional[int] = None
    temperature_c: Optional[float] = None
    energy_wh: Optional[float] = None
    timestamp: Optional[Any] = None


@dataclass(frozen=True)
class Cycle:
    """Samples sharing one charge/discharge repetition"""
    index: int
    samples: Tuple[RawSample, ...]
    max_charge_capacity_mah: float
    max_discharge_capacity_mah: float
    avg_charge_voltage_v: Optional[float]
    avg_discharge_voltage_v: Optional[float]
    avg_voltage_v: Optional[float]
    min_voltage_v: Optional[float]
    max_voltage_v: Optional[float]
    min_temperature_c: Optional[float]
    max_temperature_c: Optional[float]

    @classmethod
    def from_samples(cls, index: int, samples: Sequence[RawSample]) -> "Cycle":
        charge = [s for s in samples if s.phase == Phase.CHARGE]
        discharge = [s for s in samples if s.phase == Phase.DISCHARGE]
        voltages = [s.voltage_v for s in samples if s.voltage_v]
        temps = [s.temperature_c for s in samples if s.temperature_c is not None]

        return cls(
            index=index,
            samples=tuple(samples),
            max_charge_capacity_mah=_max_capacity(charge),
            max_discharge_capacity_mah=_max_capacity(discharge),
            avg_charge_voltage_v=_mean([s.voltage_v for s in charge if s.voltage_v]),
            avg_discharge_voltage_v=_mean([s.voltage_v for s in discharge if s.voltage_v]),
            avg_voltage_v=_mean(voltages),
            min_voltage_v=min(voltages) if voltages else None,
            max_voltage_v=max(voltages) if voltages else None,
            min_temperature_c=min(temps) if temps else None,
            max_temperature_c=max(temps) if temps else None,
        )

    @property
    def voltages(self) -> List[float]:
        return [s.voltage_v for s in self.samples if s.voltage_v]

    @property
    def representative_capacity_mah(self) -> Optional[float]:
        """Discharge capacity, charge capacity as fallback"""
        if self.max_discharge_capacity_mah > 0:
            return self.max_discharge_capacity_mah
        if self.max_charge_capacity_mah > 0:
            return self.max_charge_capacity_mah
        return None

    @property
    def coulombic_efficiency(self) -> Optional[float]:
        if self.max_charge_capacity_mah <= 0 or self.max_discharge_capacity_mah <= 0:
            return None
        return self.max_discharge_capacity_mah / self.max_charge_capacity_mah * 100

    @property
    def started_at(self) -> Optional[Any]:
        for sample in self.samples:
            if sample.timestamp is not None:
                return sample.timestamp
        return None


@dataclass(frozen=True)
class NormalizedDataset:
    """Output of one normalization run"""
    mapping: FieldMapping
    samples: Tuple[RawSample, ...]
    cycles: Tuple[Cycle, ...]
    skipped_rows: int = 0

    @property
    def cycle_count(self) -> int:
        return self.cycles[-1].index if self.cycles else 0


class DataNormalizer:
    """
    Normalizes loosely structured cycler rows.

    Column binding is a two-phase process: ``resolve`` inspects the dataset
    once and fixes the column for every quantity (plus unit scales), then
    ``apply`` converts every row with that fixed mapping.
    """

    def __init__(
        self,
        aliases: FieldAliases = DEFAULT_ALIASES,
        detect_units: bool = True,
        header_scan_rows: int = 10,
    ):
        self.aliases = aliases
        self.detect_units = detect_units
        self.header_scan_rows = header_scan_rows

    def normalize(self, records: Sequence[Mapping[str, Any]]) -> NormalizedDataset:
        """Resolve, apply and group a dataset into cycles."""
        mapping = self.resolve(records)
        samples = self.apply(records, mapping)
        cycles = group_cycles(samples)
        skipped = len(records) - len(samples)
        if skipped:
            logger.debug(f"Skipped {skipped} rows without usable measurements")
        return NormalizedDataset(
            mapping=mapping,
            samples=tuple(samples),
            cycles=tuple(cycles),
            skipped_rows=skipped,
        )

    def resolve(self, records: Sequence[Mapping[str, Any]]) -> FieldMapping:
        """
        Bind canonical quantities to source columns.

        Raises:
            MissingFieldError: voltage, current or capacity has no column
        """
        columns = self._collect_columns(records)
        bindings: Dict[str, str] = {}
        claimed = set()

        for quantity in RESOLUTION_ORDER:
            column = self._match(quantity, columns, claimed)
            if column is not None:
                bindings[quantity] = column
                claimed.add(column)

        missing = [q for q in MANDATORY_QUANTITIES if q not in bindings]
        if missing:
            raise MissingFieldError(missing, columns)

        units = {
            quantity: self._detect_unit(quantity, bindings[quantity], records)
            for quantity in _UNIT_SCALES
        }
        logger.info(f"Resolved fields {bindings} with units {units}")
        return FieldMapping(columns=columns, bindings=bindings, units=units)

    def apply(
        self,
        records: Sequence[Mapping[str, Any]],
        mapping: FieldMapping,
    ) -> List[RawSample]:
        """Convert rows using a previously resolved mapping."""
        v_col = mapping.column_for("voltage")
        i_col = mapping.column_for("current")
        q_col = mapping.column_for("capacity")
        cycle_col = mapping.column_for("cycle")
        phase_col = mapping.column_for("phase")
        temp_col = mapping.column_for("temperature")
        energy_col = mapping.column_for("energy")
        time_col = mapping.column_for("time")

        v_scale = mapping.scale_for("voltage")
        i_scale = mapping.scale_for("current")
        q_scale = mapping.scale_for("capacity")

        samples = []
        cycle_indices: List[Optional[int]] = []
        last_cycle: Optional[int] = None

        for row_number, record in enumerate(records):
            voltage = _to_float(record.get(v_col))
            current = _to_float(record.get(i_col))
            capacity = _to_float(record.get(q_col))
            if voltage is None and current is None and capacity is None:
                continue

            voltage = voltage * v_scale if voltage is not None else None
            if voltage is not None and voltage <= 0:
                voltage = None
            current = current * i_scale if current is not None else None
            capacity = abs(capacity) * q_scale if capacity is not None else None

            if cycle_col is not None:
                value = _to_float(record.get(cycle_col))
                if value is not None:
                    last_cycle = int(value)
                cycle_indices.append(last_cycle)

            phase = None
            if phase_col is not None:
                phase = classify_phase(record.get(phase_col))
            if phase is None:
                phase = infer_phase(current)

            samples.append(RawSample(
                row=row_number,
                phase=phase,
                voltage_v=voltage,
                current_a=current,
                capacity_mah=capacity,
                temperature_c=_to_float(record.get(temp_col)) if temp_col else None,
                energy_wh=_to_float(record.get(energy_col)) if energy_col else None,
                timestamp=_to_timestamp(record.get(time_col)) if time_col else None,
            ))

        if cycle_col is not None:
            samples = _assign_cycles(samples, cycle_indices)

        return samples

    def _collect_columns(self, records: Sequence[Mapping[str, Any]]) -> Tuple[str, ...]:
        """Ordered union of keys over the leading rows"""
        columns: Dict[str, None] = {}
        for record in records[: self.header_scan_rows]:
            for key in record.keys():
                columns.setdefault(str(key), None)
        return tuple(columns)

    def _match(self, quantity: str, columns: Sequence[str], claimed: set) -> Optional[str]:
        normalized = [(column, _fold(column)) for column in columns if column not in claimed]
        if quantity == "current":
            normalized = [(c, f) for c, f in normalized if not _HOUR_UNIT.search(f)]
        aliases = self.aliases.for_quantity(quantity)

        for alias in aliases:
            for column, folded in normalized:
                if alias in folded:
                    return column

        # Abbreviated headers such as "Cur" or "Pot" contained in an alias
        for alias in aliases:
            for column, folded in normalized:
                if len(folded) >= MIN_ABBREVIATION_LENGTH and folded in alias:
                    return column
        return None

    def _detect_unit(
        self,
        quantity: str,
        column: str,
        records: Sequence[Mapping[str, Any]],
    ) -> str:
        canonical = _CANONICAL_UNITS[quantity]
        if not self.detect_units:
            return canonical

        # "mA.h" style headers
        folded = _fold(column).replace(".", "")
        for unit in sorted(_UNIT_SCALES[quantity], key=len, reverse=True):
            if re.search(rf"(?<![a-z]){unit.lower()}(?![a-z])", folded):
                return unit

        values = [_to_float(r.get(column)) for r in records]
        values = np.array([v for v in values if v is not None and v != 0], dtype=float)
        if values.size == 0:
            return canonical

        if quantity == "capacity":
            return "mAh" if np.mean(np.abs(values)) > 100 else "Ah"
        if quantity == "voltage":
            return "mV" if np.max(values) > 100 else "V"
        return "mA" if np.mean(np.abs(values)) > 10 else "A"


def classify_phase(value: Any) -> Optional[Phase]:
    """
    Map a vendor step label onto ``Phase``.

    Returns None for blank or purely numeric labels (step counters) so the
    caller can infer from current.
    """
    if value is None:
        return None
    label = _fold(str(value))
    if not any(ch.isalpha() for ch in label):
        return None
    if label in _PHASE_CODES:
        return _PHASE_CODES[label]
    for phase, words in _PHASE_WORDS:
        if any(word in label for word in words):
            return phase
    return Phase.UNKNOWN


def infer_phase(current_a: Optional[float]) -> Phase:
    """Phase from current sign"""
    if current_a is None:
        return Phase.UNKNOWN
    if current_a > CURRENT_EPSILON_A:
        return Phase.CHARGE
    if current_a < -CURRENT_EPSILON_A:
        return Phase.DISCHARGE
    return Phase.REST


def group_cycles(samples: Sequence[RawSample]) -> List[Cycle]:
    """
    Group samples into cycles.

    Uses explicit cycle indices when samples carry them, otherwise opens a
    new cycle on every discharge -> charge transition.
    """
    if not samples:
        return []

    if samples[0].cycle_index is not None:
        groups: Dict[int, List[RawSample]] = {}
        for sample in samples:
            groups.setdefault(sample.cycle_index, []).append(sample)
        return [Cycle.from_samples(index, groups[index]) for index in sorted(groups)]

    cycles = []
    index = 1
    current: List[RawSample] = []
    previous = None

    for sample in samples:
        if sample.phase == Phase.CHARGE and previous == Phase.DISCHARGE and current:
            cycles.append(Cycle.from_samples(index, current))
            index += 1
            current = []
        if sample.phase in (Phase.CHARGE, Phase.DISCHARGE):
            previous = sample.phase
        current.append(sample)

    cycles.append(Cycle.from_samples(index, current))
    return cycles


def _assign_cycles(
    samples: List[RawSample],
    indices: List[Optional[int]],
) -> List[RawSample]:
    known = [i for i in indices if i is not None]
    if not known:
        # Cycle column present but empty: fall back to positional grouping
        return samples

    # Rows before the first labelled row join the first cycle
    first = known[0]
    filled = [first if i is None else i for i in indices]
    # Zero-based counters are shifted so the first cycle is 1
    offset = 1 - min(filled) if min(filled) < 1 else 0

    return [
        RawSample(
            row=s.row,
            phase=s.phase,
            voltage_v=s.voltage_v,
            current_a=s.current_a,
            capacity_mah=s.capacity_mah,
            cycle_index=index + offset,
            temperature_c=s.temperature_c,
            energy_wh=s.energy_wh,
            timestamp=s.timestamp,
        )
        for s, index in zip(samples, filled)
    ]


def _fold(name: str) -> str:
    return re.sub(r"[\s\-]+", "_", name.strip().lower())


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            try:
                number = float(text.replace(",", "."))
            except ValueError:
                return None
    return None if math.isnan(number) or math.isinf(number) else number


def _to_timestamp(value: Any) -> Optional[Any]:
    if value is None or value == "":
        return None
    number = _to_float(value)
    return number if number is not None else str(value)


def _max_capacity(samples: Sequence[RawSample]) -> float:
    values = [s.capacity_mah for s in samples if s.capacity_mah]
    return max(values) if values else 0.0


def _mean(values: Sequence[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None
