# collector/models.py
from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, ConfigDict


class EngineLoad(BaseModel):
    """Utilization of one engine class, all three values from the same row."""

    model_config = ConfigDict(frozen=True)

    busy_percent: float
    sema_percent: float
    wait_percent: float


class TelemetrySnapshot(BaseModel):
    """One parsed `intel_gpu_top -c` row."""

    model_config = ConfigDict(frozen=True)

    freq_requested_mhz: float
    freq_actual_mhz: float
    irq_per_sec: float
    rc6_percent: float
    engines: Dict[str, EngineLoad]
