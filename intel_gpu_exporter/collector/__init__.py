"""intel_gpu_exporter.collector
Streams `intel_gpu_top -c` output into Prometheus gauges.

Modules
-------
parsers: column table and `parse_record` (one CSV row -> TelemetrySnapshot)
reader : MetricsReader, a lazy iterator of snapshots over a byte stream
poller : GPUTopSupervisor, owns the intel_gpu_top process and feeds the sink
sink   : MetricsSink, last-value Prometheus gauges
models : TelemetrySnapshot / EngineLoad
errors : ShapeError, FieldFormatError, LaunchError, StreamFault
"""

from .errors import ExporterError, FieldFormatError, LaunchError, ShapeError, StreamFault
from .models import EngineLoad, TelemetrySnapshot
from .parsers import COLUMNS, HEADER_LABELS, parse_record
from .poller import GPUTopSupervisor, SupervisorState
from .reader import MetricsReader, read_metrics
from .sink import MetricsSink

__all__ = [
    "COLUMNS",
    "EngineLoad",
    "ExporterError",
    "FieldFormatError",
    "GPUTopSupervisor",
    "HEADER_LABELS",
    "LaunchError",
    "MetricsReader",
    "MetricsSink",
    "ShapeError",
    "StreamFault",
    "SupervisorState",
    "TelemetrySnapshot",
    "parse_record",
    "read_metrics",
]
