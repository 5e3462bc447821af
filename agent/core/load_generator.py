"""Time-boxed concurrent write/read throughput generator."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from common.exceptions import UnreachableTargetError
from common.utils import Timer, format_byte_rate, format_size

logger = logging.getLogger(__name__)


class Writable(Protocol):
    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...


class Readable(Protocol):
    def read(self, size: int) -> bytes: ...

    def close(self) -> None: ...


class DataConnection(Protocol):
    """A single worker's private connection to the target."""

    def open_for_write(self, name: str) -> Writable: ...

    def open_for_read(self, name: str) -> Readable: ...

    def close(self) -> None: ...


class DataConnector(Protocol):
    """Protocol-specific access to one target resource.

    ``connect`` is called once per worker; connections are never shared
    between workers.
    """

    protocol: str
    name_prefix: str
    write_size: int
    read_size: int

    def verify_reachable(self) -> bool: ...

    def connect(self) -> DataConnection: ...

    def close(self) -> None: ...


class LoadPhase(str, Enum):
    IDLE = "idle"
    WRITING = "writing"
    READING = "reading"


def compute_rate(total_bytes: int, duration: float) -> float:
    """Bytes per second over the nominal test window."""
    if duration <= 0:
        raise ValueError(f"Test duration must be positive, got {duration}")
    return total_bytes / duration


class PhaseAccumulator:
    """Per-phase totals. Each worker adds exactly once, when it exits."""

    def __init__(self):
        self._lock = threading.Lock()
        self._bytes = 0
        self._workers = 0
        self._failed = 0

    def add(self, nbytes: int, failed: bool = False) -> None:
        with self._lock:
            self._bytes += nbytes
            self._workers += 1
            if failed:
                self._failed += 1

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._bytes

    @property
    def workers_reported(self) -> int:
        with self._lock:
            return self._workers

    @property
    def failed_workers(self) -> int:
        with self._lock:
            return self._failed


@dataclass
class PhaseResult:
    """Totals of one write or read phase."""
    phase: LoadPhase
    total_bytes: int
    duration: float
    elapsed: float
    workers: int
    failed_workers: int

    @property
    def rate(self) -> float:
        return compute_rate(self.total_bytes, self.duration)


def _close_quietly(resource, what: str) -> None:
    if resource is None:
        return
    try:
        resource.close()
    except Exception as e:
        logger.warning(f"Failed to close {what}: {e}")


class LoadGenerator:
    """Drive N parallel workers through a write phase then a read phase.

    Each phase runs for a fixed wall-clock window. The coordinator sets a
    stop event once the window has elapsed and joins every worker; a worker
    that is inside an I/O call finishes it first, so the measured elapsed time
    can run slightly past the window. Rates always use the nominal window.
    There is no per-operation timeout: a hung connection hangs the phase.
    """

    def __init__(self, connector: DataConnector, concurrency: int, target: str = ""):
        if concurrency < 1:
            raise ValueError(f"Concurrency must be at least 1, got {concurrency}")

        self.connector = connector
        self.concurrency = concurrency
        self.target = target

        self.phase = LoadPhase.IDLE
        self.objects_written = 0
        self.bytes_written = 0
        self.bytes_read = 0
        self.last_write: Optional[PhaseResult] = None
        self.last_read: Optional[PhaseResult] = None

        try:
            reachable = connector.verify_reachable()
        except Exception as e:
            raise UnreachableTargetError(
                f"{connector.protocol} target {target or '<unknown>'} is not reachable: {e}"
            ) from e
        if not reachable:
            raise UnreachableTargetError(
                f"{connector.protocol} target {target or '<unknown>'} is not reachable"
            )

    def object_name(self, index: int) -> str:
        return f"{self.connector.name_prefix}{index}"

    def run_write_test(self, duration: float) -> float:
        """Write for ``duration`` seconds and return bytes/s."""
        names = [self.object_name(i) for i in range(1, self.concurrency + 1)]
        result = self._run_phase(LoadPhase.WRITING, self._write_worker, names, duration)

        self.last_write = result
        self.bytes_written = result.total_bytes
        if result.total_bytes > 0:
            self.objects_written = self.concurrency

        logger.info(f"{self.connector.protocol} write throughput = {format_byte_rate(result.rate)}")
        return result.rate

    def run_read_test(self, duration: float) -> float:
        """Read back the written objects for ``duration`` seconds and return bytes/s."""
        if self.objects_written == 0:
            logger.error(f"Unable to perform {self.connector.protocol} read test, no objects written")
            return 0.0

        names = [self.object_name(i) for i in range(1, self.objects_written + 1)]
        result = self._run_phase(LoadPhase.READING, self._read_worker, names, duration)

        self.last_read = result
        self.bytes_read = result.total_bytes

        logger.info(f"{self.connector.protocol} read throughput = {format_byte_rate(result.rate)}")
        return result.rate

    def _run_phase(
        self,
        phase: LoadPhase,
        worker: Callable[[str, threading.Event, PhaseAccumulator], None],
        names: list[str],
        duration: float,
    ) -> PhaseResult:
        if duration <= 0:
            raise ValueError(f"Test duration must be positive, got {duration}")

        stop = threading.Event()
        accumulator = PhaseAccumulator()
        threads = [
            threading.Thread(
                target=worker,
                args=(name, stop, accumulator),
                name=f"{self.connector.protocol}-{phase.value}-{name}",
                daemon=True,
            )
            for name in names
        ]

        logger.info(
            f"Starting {self.connector.protocol} {phase.value} phase on {self.target}: "
            f"{len(threads)} workers for {duration}s"
        )
        self.phase = phase
        try:
            with Timer() as timer:
                for thread in threads:
                    thread.start()
                time.sleep(duration)
                stop.set()
                for thread in threads:
                    thread.join()
        finally:
            stop.set()
            self.phase = LoadPhase.IDLE

        result = PhaseResult(
            phase=phase,
            total_bytes=accumulator.total_bytes,
            duration=duration,
            elapsed=timer.elapsed_seconds,
            workers=len(threads),
            failed_workers=accumulator.failed_workers,
        )
        logger.info(
            f"{phase.value} phase moved {format_size(result.total_bytes)} in "
            f"{result.elapsed:.2f}s (window {duration}s), "
            f"{result.failed_workers}/{result.workers} workers failed"
        )
        return result

    def _write_worker(self, name: str, stop: threading.Event, accumulator: PhaseAccumulator) -> None:
        payload = os.urandom(self.connector.write_size)
        written = 0
        failed = False
        connection = None
        handle = None
        try:
            connection = self.connector.connect()
            handle = connection.open_for_write(name)
            while not stop.is_set():
                written += handle.write(payload)
        except Exception as e:
            failed = True
            logger.error(f"Write worker for {name} failed: {e}")
        finally:
            _close_quietly(handle, name)
            _close_quietly(connection, f"connection for {name}")
            accumulator.add(written, failed)

    def _read_worker(self, name: str, stop: threading.Event, accumulator: PhaseAccumulator) -> None:
        size = self.connector.read_size
        read = 0
        failed = False
        connection = None
        try:
            connection = self.connector.connect()
            while not stop.is_set():
                handle = connection.open_for_read(name)
                try:
                    while not stop.is_set():
                        chunk = handle.read(size)
                        if not chunk:
                            break
                        read += len(chunk)
                finally:
                    _close_quietly(handle, name)
        except Exception as e:
            failed = True
            logger.error(f"Read worker for {name} failed: {e}")
        finally:
            _close_quietly(connection, f"connection for {name}")
            accumulator.add(read, failed)

    def close(self) -> None:
        self.connector.close()

    def __enter__(self) -> "LoadGenerator":
        return self

    def __exit__(self, *args) -> None:
        self.close()
