from __future__ import annotations

import logging
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from .models import TelemetrySnapshot

log = logging.getLogger(__name__)

CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsSink:
    """Last-value store for GPU telemetry, exposed as Prometheus gauges.

    Every observe() overwrites the previous values; nothing is kept beyond
    the most recent snapshot.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.freq_requested = Gauge(
            "intel_gpu_freq_mhz_requested",
            "Intel GPU requested frequency in MHz",
            registry=self.registry,
        )
        self.freq_actual = Gauge(
            "intel_gpu_freq_mhz_actual",
            "Intel GPU actual frequency in MHz",
            registry=self.registry,
        )
        self.irq_per_sec = Gauge(
            "intel_gpu_irq_per_sec",
            "Intel GPU IRQs per second",
            registry=self.registry,
        )
        self.rc6_percent = Gauge(
            "intel_gpu_rc6_percent",
            "Intel GPU RC6 power state percentage",
            registry=self.registry,
        )
        self.engine_percent = Gauge(
            "intel_gpu_engine_percent",
            "Intel GPU engine busy percentage",
            labelnames=("engine", "type"),
            registry=self.registry,
        )
        self.observed = 0

    def observe(self, snapshot: TelemetrySnapshot) -> None:
        """Store one snapshot. Never raises."""
        try:
            self.freq_requested.set(snapshot.freq_requested_mhz)
            self.freq_actual.set(snapshot.freq_actual_mhz)
            self.irq_per_sec.set(snapshot.irq_per_sec)
            self.rc6_percent.set(snapshot.rc6_percent)
            for name, engine in snapshot.engines.items():
                self.engine_percent.labels(engine=name, type="busy").set(engine.busy_percent)
                self.engine_percent.labels(engine=name, type="sema").set(engine.sema_percent)
                self.engine_percent.labels(engine=name, type="wait").set(engine.wait_percent)
        except Exception as exc:
            log.error("Failed to update metrics: %s", exc)
            return
        self.observed += 1

    def render(self) -> bytes:
        """Prometheus text exposition of the current values."""
        return generate_latest(self.registry)
