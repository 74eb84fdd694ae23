"""Prometheus exporter for Intel GPU statistics from `intel_gpu_top`."""

__version__ = "0.1.0"
