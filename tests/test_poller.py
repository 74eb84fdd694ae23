# tests/test_poller.py
import logging
import subprocess
import sys
import threading
import time
from types import SimpleNamespace

import psutil
import pytest

from intel_gpu_exporter.collector import poller
from intel_gpu_exporter.collector.errors import StreamFault
from intel_gpu_exporter.collector.poller import GPUTopSupervisor, SupervisorState

from samples import HEADER, ROW_1, ROW_2, ROW_3


def _fake_gpu_top(*lines, then="", exit_code=0):
    """Command that prints `lines` like intel_gpu_top -c would."""
    text = "\n".join(lines) + "\n"
    script = f"import sys, time; sys.stdout.write({text!r}); sys.stdout.flush(); {then or 'pass'}; sys.exit({exit_code})"
    return [sys.executable, "-c", script]


def _until(cond, timeout=10.0):
    deadline = time.monotonic() + timeout
    while not cond():
        if time.monotonic() > deadline:
            return False
        time.sleep(0.02)
    return True


def test_forwards_rows_in_order_then_terminates(sink):
    seen = []
    real_observe = sink.observe
    sink.observe = lambda snap: (seen.append(snap.freq_requested_mhz), real_observe(snap))

    sup = GPUTopSupervisor(sink, _fake_gpu_top(HEADER, ROW_1, ROW_2, HEADER, ROW_3))
    sup.run()

    assert seen == [1200.0, 1300.0, 1400.0]
    assert sup.state is SupervisorState.TERMINATED
    assert sup.cancelled.is_set()
    assert sup.returncode == 0
    assert sup.wait(0)


def test_process_exit_triggers_shutdown(sink):
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1, exit_code=3)).start()
    assert sup.wait(10)
    assert sup.cancelled.is_set()
    assert sup.returncode == 3
    assert sink.observed == 1


def test_launch_failure(sink):
    sup = GPUTopSupervisor(sink, "/nonexistent/intel_gpu_top -c")
    sup.run()
    assert sup.state is SupervisorState.TERMINATED
    assert sup.cancelled.is_set()
    assert sup.returncode is None
    assert sink.observed == 0


def test_cancel_kills_running_process(sink):
    sup = GPUTopSupervisor(sink, _fake_gpu_top(HEADER, ROW_1, then="time.sleep(60)")).start()
    assert _until(lambda: sink.observed == 1)
    assert sup.is_running

    sup.cancel()
    sup.cancel()

    assert sup.wait(10)
    assert sup.state is SupervisorState.TERMINATED
    assert sup.returncode != 0
    assert sup.reader.closed


def test_shared_token_is_observed(sink):
    token = threading.Event()
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1, then="time.sleep(60)"), cancelled=token)
    sup.start()
    assert _until(lambda: sink.observed == 1)

    token.set()
    assert sup.wait(10)
    assert sup.returncode != 0


def test_cancel_before_start_never_launches(sink):
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1))
    sup.cancel()
    sup.run()
    assert sup.state is SupervisorState.TERMINATED
    assert sup.returncode is None
    assert sink.observed == 0


def test_start_twice(sink):
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1)).start()
    with pytest.raises(RuntimeError):
        sup.start()
    assert sup.wait(10)


def test_command_string_is_split(sink):
    sup = GPUTopSupervisor(sink, "intel_gpu_top -c -d 'drm:/dev/dri/card1'")
    assert sup.command == ["intel_gpu_top", "-c", "-d", "drm:/dev/dri/card1"]
    assert sup.state is SupervisorState.STARTING


def test_empty_command(sink):
    with pytest.raises(ValueError):
        GPUTopSupervisor(sink, "  ")


def test_cancel_passes_through_draining(sink, caplog):
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1, then="time.sleep(60)"))
    with caplog.at_level(logging.DEBUG, logger="intel_gpu_exporter.collector.poller"):
        sup.start()
        assert _until(lambda: sink.observed == 1)
        sup.cancel()
        assert sup.wait(10)

    transitions = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Supervisor state")]
    assert transitions == [
        "Supervisor state starting -> running",
        "Supervisor state running -> draining",
        "Supervisor state draining -> terminated",
    ]


def test_read_fault_shuts_down_and_kills_child(sink, monkeypatch, caplog):
    monkeypatch.setattr(poller, "EXIT_GRACE_SEC", 0.2)
    garbage = "sys.stdout.buffer.write(bytes([255, 254, 10])); sys.stdout.flush(); time.sleep(60)"
    sup = GPUTopSupervisor(sink, _fake_gpu_top(ROW_1, then=garbage))

    with caplog.at_level(logging.WARNING):
        sup.run()

    assert isinstance(sup.reader.fault, StreamFault)
    assert sup.cancelled.is_set()
    assert sup.state is SupervisorState.TERMINATED
    assert sup.returncode != 0
    assert not psutil.pid_exists(sup._proc.pid)
    assert "still running after its output ended" in caplog.text


def test_kill_after_reap_does_not_signal_reused_pid(sink, caplog):
    child = subprocess.Popen([sys.executable, "-c", "pass"])
    handle = psutil.Process(child.pid)
    child.wait()

    # poll() has not caught up yet, as when the supervisor thread reaps concurrently
    racing = SimpleNamespace(pid=child.pid, poll=lambda: None)
    sup = GPUTopSupervisor(sink, "intel_gpu_top -c")
    sup.cancel()
    with caplog.at_level(logging.DEBUG, logger="intel_gpu_exporter.collector.poller"):
        sup._kill_on_cancel(racing, handle)

    assert "exited before it could be killed" in caplog.text
