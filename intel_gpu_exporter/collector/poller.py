# collector/poller.py
from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from enum import Enum
from typing import Optional, Sequence, Union

import psutil

from .errors import LaunchError
from .reader import MetricsReader
from .sink import MetricsSink

log = logging.getLogger(__name__)

DEFAULT_COMMAND = "intel_gpu_top -c"
EXIT_GRACE_SEC = 5


class SupervisorState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class GPUTopSupervisor:
    """Keeps one `intel_gpu_top -c` process alive and feeds its rows to a sink.

    STARTING -> RUNNING -> DRAINING -> TERMINATED. Whatever ends the run
    (launch failure, the command exiting, a read fault or cancel()) sets the
    shared `cancelled` event, so the host stops too.
    """

    def __init__(
        self,
        sink: MetricsSink,
        command: Union[str, Sequence[str]] = DEFAULT_COMMAND,
        cancelled: Optional[threading.Event] = None,
    ):
        self.sink = sink
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("empty telemetry command")
        self.cancelled = cancelled if cancelled is not None else threading.Event()
        self._state = SupervisorState.STARTING
        self.reader: Optional[MetricsReader] = None
        self._proc: Optional[subprocess.Popen] = None
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()

    # ---------- lifecycle ---------------------------------------------
    def start(self) -> "GPUTopSupervisor":
        """Run the supervisor on a background thread."""
        if self._thread is not None:
            raise RuntimeError("Supervisor already started")
        self._thread = threading.Thread(target=self.run, name="intel-gpu-top", daemon=True)
        self._thread.start()
        return self

    def cancel(self) -> None:
        if not self.cancelled.is_set():
            log.info("Cancellation requested")
        self.cancelled.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until TERMINATED; False if the timeout expired first."""
        return self._done.wait(timeout)

    @property
    def state(self) -> SupervisorState:
        return self._state

    @state.setter
    def state(self, new: SupervisorState) -> None:
        if new is not self._state:
            log.debug("Supervisor state %s -> %s", self._state.value, new.value)
        self._state = new

    @property
    def is_running(self) -> bool:
        return self.state is SupervisorState.RUNNING

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.returncode if self._proc is not None else None

    # ---------- state machine -----------------------------------------
    def run(self) -> None:
        try:
            self._run()
        finally:
            self.cancelled.set()
            self.state = SupervisorState.TERMINATED
            self._done.set()
            log.info("Supervisor terminated")

    def _run(self) -> None:
        self.state = SupervisorState.STARTING
        if self.cancelled.is_set():
            return
        try:
            proc = self._launch()
        except LaunchError as exc:
            log.error("%s", exc)
            return
        self._proc = proc
        try:
            # taken now so a later kill cannot hit a reused pid
            handle = psutil.Process(proc.pid)
        except psutil.NoSuchProcess:
            handle = None

        watcher = threading.Thread(target=self._kill_on_cancel, args=(proc, handle), daemon=True)
        watcher.start()

        self.state = SupervisorState.RUNNING
        with MetricsReader(proc.stdout, cancel=self.cancelled) as reader:
            self.reader = reader
            for snapshot in reader:
                if self.cancelled.is_set():
                    break
                self.sink.observe(snapshot)

        if self.cancelled.is_set():
            self.state = SupervisorState.DRAINING
            log.info("Context cancelled, stopping metrics collection")
        else:
            if reader.fault is not None:
                log.error("Reading %s failed: %s", self.command[0], reader.fault)
            else:
                log.warning("%s output ended", self.command[0])
            # let it exit by itself before the watcher gets to kill it
            try:
                proc.wait(timeout=EXIT_GRACE_SEC)
            except subprocess.TimeoutExpired:
                log.warning("%s still running after its output ended", self.command[0])

        self.cancelled.set()
        returncode = proc.wait()
        watcher.join()
        proc.stdout.close()
        log.info("%s exited with status %s", self.command[0], returncode)

    def _launch(self) -> subprocess.Popen:
        log.info("Starting %s", " ".join(self.command))
        try:
            return subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise LaunchError(f"Error starting {self.command[0]}: {exc}") from exc

    def _kill_on_cancel(self, proc: subprocess.Popen, handle: Optional[psutil.Process]) -> None:
        self.cancelled.wait()
        if handle is None or proc.poll() is not None:
            return
        log.info("Terminating %s (pid %d) due to cancellation", self.command[0], proc.pid)
        try:
            handle.kill()
        except psutil.NoSuchProcess:
            log.debug("%s exited before it could be killed", self.command[0])
