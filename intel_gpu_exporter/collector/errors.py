# collector/errors.py
from __future__ import annotations


class ExporterError(Exception):
    """Base class for everything the collector raises."""


class ShapeError(ExporterError):
    """Row has the wrong number of fields (usually a row cut off mid-write)."""

    def __init__(self, got: int, want: int):
        super().__init__(f"unexpected number of fields: got {got}, want {want}")
        self.got = got
        self.want = want


class FieldFormatError(ExporterError):
    """A field is not a floating-point number."""

    def __init__(self, index: int, raw: str):
        super().__init__(f"error parsing field {index} ({raw!r})")
        self.index = index
        self.raw = raw


class LaunchError(ExporterError):
    """The telemetry command could not be started."""


class StreamFault(ExporterError):
    """Reading the command output failed for a reason other than EOF."""
