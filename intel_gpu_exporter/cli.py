#!/usr/bin/env python
"""
intel-gpu-exporter serve [--port N] [--address A] [--log-level L] [--command CMD]

Example:
    intel-gpu-exporter serve --port 9101
    curl localhost:9101/metrics
"""
from __future__ import annotations

import contextlib
import logging
import signal
import threading
from types import FrameType
from typing import Iterator, Optional

import typer
import uvicorn
from pydantic import ValidationError

from intel_gpu_exporter.api import create_app
from intel_gpu_exporter.collector.poller import GPUTopSupervisor
from intel_gpu_exporter.collector.sink import MetricsSink
from intel_gpu_exporter.config import Settings

log = logging.getLogger(__name__)

app = typer.Typer(add_completion=False)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@app.callback()
def main() -> None:
    """Prometheus exporter for intel_gpu_top."""


class ExporterServer(uvicorn.Server):
    """uvicorn server that hands SIGINT/SIGTERM to the supervisor.

    Stock uvicorn re-raises the captured signal once serving stops, which
    would kill us before intel_gpu_top is drained.
    """

    def __init__(self, config: uvicorn.Config, supervisor: GPUTopSupervisor):
        super().__init__(config)
        self.supervisor = supervisor
        self.stopped_by_signal = False

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        self.stopped_by_signal = True
        self.supervisor.cancel()
        super().handle_exit(sig, frame)

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        if threading.current_thread() is not threading.main_thread():
            yield
            return
        original = {sig: signal.signal(sig, self.handle_exit) for sig in HANDLED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in original.items():
                signal.signal(sig, handler)


def _stop_server_when_done(supervisor: GPUTopSupervisor, server: uvicorn.Server) -> None:
    supervisor.wait()
    if not server.should_exit:
        log.info("Context cancelled, shutting down...")
    server.should_exit = True


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, min=1, max=65535, help="Port to expose metrics on [env PORT]"),
    address: Optional[str] = typer.Option(None, help="Address to listen on [env LISTEN_ADDRESS]"),
    log_level: Optional[str] = typer.Option(None, help="debug|info|warn|error [env LOG_LEVEL]"),
    command: Optional[str] = typer.Option(None, help="Telemetry command [env INTEL_GPU_TOP_CMD]"),
):
    try:
        settings = Settings.from_env(port=port, address=address, log_level=log_level, command=command)
    except ValidationError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(2)

    logging.basicConfig(
        level=settings.logging_level,
        format="%(asctime)s  %(levelname)s %(message)s",
    )

    sink = MetricsSink()
    supervisor = GPUTopSupervisor(sink, settings.command)
    server = ExporterServer(
        uvicorn.Config(
            create_app(sink, supervisor),
            host=settings.address,
            port=settings.port,
            log_level=settings.logging_level.lower(),
            log_config=None,
        ),
        supervisor,
    )

    supervisor.start()
    threading.Thread(target=_stop_server_when_done, args=(supervisor, server), daemon=True).start()

    log.info("Intel GPU Exporter starting on %s:%d/metrics", settings.address, settings.port)
    try:
        server.run()
    finally:
        source_lost = supervisor.wait(0) and not server.stopped_by_signal
        supervisor.cancel()
        if not supervisor.wait(timeout=10):
            log.warning("Supervisor did not stop within 10s")
        log.info("Intel GPU Exporter stopped")
    if source_lost:
        # non-zero so the service manager restarts us
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
