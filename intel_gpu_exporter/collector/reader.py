# collector/reader.py
"""
Streaming reader for `intel_gpu_top -c` output.

MetricsReader pulls one CSV row per requested snapshot from a byte stream:

* header rows are dropped wherever they show up
* rows with the wrong field count (a row cut off mid-write) are skipped
* rows with a non-numeric field are logged and skipped
* any other read failure ends the sequence and is kept on `reader.fault`
"""

from __future__ import annotations

import csv
import io
import logging
import threading
from typing import BinaryIO, Iterator, List, Optional

from .errors import FieldFormatError, ShapeError, StreamFault
from .models import TelemetrySnapshot
from .parsers import is_header, parse_record

log = logging.getLogger(__name__)


class MetricsReader:
    """Lazy, single-pass iterator of TelemetrySnapshot over a byte stream."""

    def __init__(self, stream: BinaryIO, cancel: Optional[threading.Event] = None):
        self._text: Optional[io.TextIOWrapper] = io.TextIOWrapper(
            stream, encoding="utf-8", newline=""
        )
        self._rows: Optional[Iterator[List[str]]] = csv.reader(self._text)
        self._cancel = cancel
        self.fault: Optional[StreamFault] = None
        self.rows_read = 0
        self.snapshots = 0
        self.skipped = 0

    def __iter__(self) -> "MetricsReader":
        return self

    def __next__(self) -> TelemetrySnapshot:
        while self._rows is not None:
            if self._cancel is not None and self._cancel.is_set():
                log.debug("Reader cancelled after %d rows", self.rows_read)
                break

            try:
                record = next(self._rows)
            except StopIteration:
                break
            except (OSError, ValueError, csv.Error) as exc:
                log.error("Error reading CSV: %s", exc)
                self.fault = StreamFault(str(exc))
                self.fault.__cause__ = exc
                break

            self.rows_read += 1
            if is_header(record):
                continue

            try:
                snapshot = parse_record(record)
            except ShapeError as exc:
                # intel_gpu_top flushes partial rows; not a data problem
                log.debug("Incomplete record, skipping: %s (%s)", record, exc)
                self.skipped += 1
                continue
            except FieldFormatError as exc:
                log.warning("Malformed record, skipping: field %d = %r", exc.index, exc.raw)
                self.skipped += 1
                continue

            self.snapshots += 1
            return snapshot

        self.close()
        raise StopIteration

    def close(self) -> None:
        """Stop producing and drop the decode buffer; the byte stream stays open."""
        if self._text is None:
            return
        text, self._text, self._rows = self._text, None, None
        try:
            text.detach()
        except ValueError:
            # underlying pipe already closed (process killed)
            log.debug("Stream already closed when releasing reader")

    def __del__(self) -> None:
        # a dropped TextIOWrapper would close the caller's stream
        if getattr(self, "_text", None) is not None:
            self.close()

    @property
    def closed(self) -> bool:
        return self._text is None

    def __enter__(self) -> "MetricsReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def read_metrics(stream: BinaryIO, cancel: Optional[threading.Event] = None) -> MetricsReader:
    """Convenience wrapper: `for snap in read_metrics(proc.stdout): ...`"""
    return MetricsReader(stream, cancel=cancel)
