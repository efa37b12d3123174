"""Fakes for testing supervisors without real processes."""

import signal
from pathlib import Path
from typing import Any

import anyio
import pytest
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from dpr.supervisor import ServiceConfig

FAST_SIGTERM_TIMEOUT = 0.2
FAST_SIGKILL_TIMEOUT = 0.02


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.unit)


class FakeProcess:
    """Stands in for anyio.abc.Process.

    Output is fed with emit() and the exit is triggered with exit().
    Signals are recorded; any signal not in ``ignore`` ends the process
    with the negative signal number, like a real process killed by it.
    """

    def __init__(self, pid: int = 4242, *, ignore: tuple[signal.Signals, ...] = ()) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.signals: list[signal.Signals] = []
        self.signal_times: list[float] = []
        self.closed = False
        self.ignore = ignore
        self._exited = anyio.Event()
        self._senders: dict[str, MemoryObjectSendStream[bytes]] = {}
        receivers: dict[str, MemoryObjectReceiveStream[bytes]] = {}
        for name in ("stdout", "stderr"):
            send, receive = anyio.create_memory_object_stream[bytes](100)
            self._senders[name] = send
            receivers[name] = receive
        self.stdin = None
        self.stdout = receivers["stdout"]
        self.stderr = receivers["stderr"]

    def emit(self, data: str, stream: str = "stdout") -> None:
        self._senders[stream].send_nowait(data.encode())

    def emit_bytes(self, data: bytes, stream: str = "stdout") -> None:
        self._senders[stream].send_nowait(data)

    def exit(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        for sender in self._senders.values():
            sender.close()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    def send_signal(self, sig: signal.Signals) -> None:
        self.signals.append(sig)
        self.signal_times.append(anyio.current_time())
        if sig not in self.ignore:
            self.exit(-sig)

    def terminate(self) -> None:
        self.send_signal(signal.SIGTERM)

    def kill(self) -> None:
        self.send_signal(signal.SIGKILL)

    async def aclose(self) -> None:
        self.closed = True
        self.stdout.close()
        self.stderr.close()

    async def __aenter__(self) -> "FakeProcess":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class FakeSpawner:
    """Replacement for anyio.open_process that hands out FakeProcesses.

    Queued outcomes are used in order: a FakeProcess is returned, an
    OSError is raised. Once the queue is empty, fresh FakeProcesses are
    created.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.processes: list[FakeProcess] = []
        self.queue: list[FakeProcess | OSError] = []

    async def __call__(self, command: str, **kwargs: Any) -> FakeProcess:
        self.calls.append((command, kwargs))
        await anyio.sleep(0)
        outcome = self.queue.pop(0) if self.queue else FakeProcess(pid=1000 + len(self.calls))
        if isinstance(outcome, OSError):
            raise outcome
        self.processes.append(outcome)
        return outcome

    def commands(self) -> list[str]:
        return [command for command, _ in self.calls]

    async def process(self, index: int = 0, timeout: float = 1.0) -> FakeProcess:
        """Wait until the ``index``-th process has been spawned."""
        with anyio.fail_after(timeout):
            while len(self.processes) <= index:
                await anyio.sleep(0.001)
        return self.processes[index]


@pytest.fixture
def spawner(monkeypatch: pytest.MonkeyPatch) -> FakeSpawner:
    fake = FakeSpawner()
    monkeypatch.setattr(anyio, "open_process", fake)
    return fake


@pytest.fixture
def fast_ladder(monkeypatch: pytest.MonkeyPatch) -> None:
    """Shrink the stop-ladder timeouts so escalation tests run quickly.

    The two timeouts differ so tests can tell which one was waited on.
    """
    monkeypatch.setattr("dpr.supervisor._supervisor.SIGTERM_TIMEOUT", FAST_SIGTERM_TIMEOUT)
    monkeypatch.setattr("dpr.supervisor._supervisor.SIGKILL_TIMEOUT", FAST_SIGKILL_TIMEOUT)
    monkeypatch.setattr("dpr.supervisor._orchestrator.KILL_GRACE_PERIOD", 0.01)


def make_service(service_id: str, **overrides: Any) -> ServiceConfig:
    """Create a ServiceConfig with a dummy start command."""
    overrides.setdefault("start", f"run-{service_id}")
    return ServiceConfig(id=service_id, **overrides)
