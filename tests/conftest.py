from __future__ import annotations

import io

import pytest

from intel_gpu_exporter.collector.sink import MetricsSink


@pytest.fixture
def stream():
    """Build a byte stream from text lines."""
    def _make(*lines: str) -> io.BytesIO:
        return io.BytesIO("\n".join(lines).encode())
    return _make


@pytest.fixture
def sink():
    return MetricsSink()
