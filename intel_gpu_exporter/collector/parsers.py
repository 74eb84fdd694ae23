from __future__ import annotations

from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from .errors import FieldFormatError, ShapeError
from .models import EngineLoad, TelemetrySnapshot

# -----------------------------
# Column layout of `intel_gpu_top -c`
# -----------------------------

ENGINE_KINDS = ("busy", "sema", "wait")

# metric kind -> suffix intel_gpu_top prints in the header
_KIND_SUFFIX = {"busy": "%", "sema": "se", "wait": "wa"}


class Column(NamedTuple):
    label: str
    scalar: Optional[str] = None                   # TelemetrySnapshot field
    engine: Optional[Tuple[str, str]] = None       # (engine name, metric kind)


def _engine_columns(*names: str) -> List[Column]:
    return [
        Column(f"{name} {_KIND_SUFFIX[kind]}", engine=(name, kind))
        for name in names
        for kind in ENGINE_KINDS
    ]


COLUMNS: Tuple[Column, ...] = (
    Column("Freq MHz req", scalar="freq_requested_mhz"),
    Column("Freq MHz act", scalar="freq_actual_mhz"),
    Column("IRQ /s", scalar="irq_per_sec"),
    Column("RC6 %", scalar="rc6_percent"),
    *_engine_columns("RCS", "BCS", "VCS", "VECS"),
)

FIELD_COUNT = len(COLUMNS)
HEADER_LABELS = frozenset(c.label for c in COLUMNS)
ENGINE_NAMES = tuple(dict.fromkeys(c.engine[0] for c in COLUMNS if c.engine))

# -----------------------------
# Helpers
# -----------------------------

def _to_float(index: int, raw: str) -> float:
    # float() takes Python literals like "1_000"; intel_gpu_top never prints them
    if "_" in raw:
        raise FieldFormatError(index, raw)
    try:
        return float(raw)
    except ValueError:
        raise FieldFormatError(index, raw) from None


def is_header(record: Sequence[str]) -> bool:
    """True when every field is one of the known header labels (any order)."""
    return bool(record) and all(field.strip() in HEADER_LABELS for field in record)

# -----------------------------
# Public API
# -----------------------------

def parse_record(record: Sequence[str]) -> TelemetrySnapshot:
    """Turn one CSV row into a TelemetrySnapshot.

    Raises ShapeError when the row does not have exactly FIELD_COUNT fields
    and FieldFormatError when a field is not a number. Nothing is built
    until every field has parsed.
    """
    if len(record) != FIELD_COUNT:
        raise ShapeError(len(record), FIELD_COUNT)

    scalars: Dict[str, float] = {}
    engines: Dict[str, Dict[str, float]] = {}
    for i, (column, raw) in enumerate(zip(COLUMNS, record)):
        value = _to_float(i, raw)
        if column.scalar:
            scalars[column.scalar] = value
        else:
            name, kind = column.engine
            engines.setdefault(name, {})[f"{kind}_percent"] = value

    return TelemetrySnapshot(
        **scalars,
        engines={name: EngineLoad(**load) for name, load in engines.items()},
    )
