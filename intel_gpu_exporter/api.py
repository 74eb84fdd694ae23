# intel_gpu_exporter/api.py
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Response
from pydantic import BaseModel

from intel_gpu_exporter.collector.poller import GPUTopSupervisor, SupervisorState
from intel_gpu_exporter.collector.sink import CONTENT_TYPE, MetricsSink


# ---------- I/O schema -------------------------------------------------
class HealthResponse(BaseModel):
    state: str
    running: bool
    observed: int


# ---------- FastAPI ----------------------------------------------------
def create_app(sink: MetricsSink, supervisor: Optional[GPUTopSupervisor] = None) -> FastAPI:
    app = FastAPI(title="Intel GPU Exporter")

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=sink.render(), media_type=CONTENT_TYPE)

    @app.get("/healthz", response_model=HealthResponse)
    def healthz(response: Response) -> HealthResponse:
        state = supervisor.state if supervisor is not None else SupervisorState.STARTING
        if state is SupervisorState.TERMINATED:
            response.status_code = 503
        return HealthResponse(
            state=state.value,
            running=supervisor is not None and supervisor.is_running,
            observed=sink.observed,
        )

    return app
