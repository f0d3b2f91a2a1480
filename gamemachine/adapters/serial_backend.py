"""gamemachine/adapters/serial_backend.py

Async serial backend used by the radio and GNSS workers.

This module owns the concrete asyncio/pyserial integration. Each backend
runs its own event loop in a daemon thread; callers on worker threads get
a blocking, byte-oriented API with per-call timeouts, fed by a bounded
thread-safe queue.
"""

from __future__ import annotations

import asyncio
import importlib
import queue
import threading
import time
from typing import Callable

_QUEUE_SIZE = 65536
_OPEN_TIMEOUT_S = 5.0
_WRITE_TIMEOUT_S = 2.0


class _AsyncSerialProtocol(asyncio.Protocol):
    """Protocol that pushes received bytes into a thread-safe queue."""

    def __init__(
        self,
        read_queue: queue.Queue[int],
        on_connection_lost: Callable[[Exception | None], None],
    ) -> None:
        self._read_queue = read_queue
        self._on_connection_lost = on_connection_lost
        self.transport: asyncio.Transport | None = None
        self.dropped = 0

    def connection_made(self, transport: asyncio.BaseTransport) -> None:  # type: ignore[override]
        self.transport = transport  # type: ignore[assignment]

    def data_received(self, data: bytes) -> None:  # type: ignore[override]
        for b in data:
            try:
                self._read_queue.put_nowait(b)
            except queue.Full:
                self.dropped += 1

    def connection_lost(self, exc: Exception | None) -> None:  # type: ignore[override]
        self._on_connection_lost(exc)


class AsyncSerialBackend:
    """Manage a serial connection in a dedicated asyncio loop."""

    def __init__(self, logger: Callable[..., None]):
        self._logger = logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._transport: asyncio.Transport | None = None
        self._protocol: _AsyncSerialProtocol | None = None
        self._read_queue: queue.Queue[int] = queue.Queue(maxsize=_QUEUE_SIZE)
        self._serial_asyncio = None
        self._baudrate = 0
        self._port = ""

    def _load_serial_asyncio(self):
        if self._serial_asyncio is None:
            self._serial_asyncio = importlib.import_module("serial_asyncio")
        return self._serial_asyncio

    @staticmethod
    def _serial_loop_worker(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        loop.run_forever()

    @property
    def baudrate(self) -> int:
        return self._baudrate

    @property
    def is_open(self) -> bool:
        return self._loop is not None and self._transport is not None

    def stop(self) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            if self._transport is not None:
                loop.call_soon_threadsafe(self._transport.close)
            loop.call_soon_threadsafe(loop.stop)

        if self._thread is not None:
            self._thread.join(timeout=1.5)

        if loop is not None and not loop.is_running() and not loop.is_closed():
            loop.close()

        if self._protocol is not None and self._protocol.dropped:
            self._logger(1, "Serial %s dropped %d input bytes (queue full)", self._port, self._protocol.dropped)

        self._loop = None
        self._thread = None
        self._transport = None
        self._protocol = None

    def start(
        self,
        port: str,
        baudrate: int = 9600,
        bytesize: int = 8,
        parity: str = "N",
        stopbits: int = 1,
    ) -> bool:
        self.stop()
        self._read_queue = queue.Queue(maxsize=_QUEUE_SIZE)
        self._port = port

        try:
            serial_asyncio = self._load_serial_asyncio()
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._serial_loop_worker,
                args=(self._loop,),
                name=f"serial-{port}",
                daemon=True,
            )
            self._thread.start()

            def _on_lost(exc: Exception | None) -> None:
                self._transport = None
                if exc:
                    self._logger(1, "Serial connection lost on %s: %s", port, exc)

            async def _open():
                return await serial_asyncio.create_serial_connection(
                    self._loop,
                    lambda: _AsyncSerialProtocol(self._read_queue, _on_lost),
                    port,
                    baudrate=baudrate,
                    bytesize=bytesize,
                    parity=parity,
                    stopbits=stopbits,
                )

            fut = asyncio.run_coroutine_threadsafe(_open(), self._loop)
            self._transport, self._protocol = fut.result(timeout=_OPEN_TIMEOUT_S)
            self._baudrate = baudrate
            self._logger(3, "Serial %s opened at %d baud (%d%s%d)", port, baudrate, bytesize, parity, stopbits)
            return True
        except Exception as e:  # pragma: no cover - depends on env
            self._logger(0, "init_serial(asyncio) failed for %s: %s", port, e)
            self.stop()
            return False

    def read(self, size: int, timeout: float = 0.1) -> bytes:
        """Read up to ``size`` bytes; returns what arrived before ``timeout`` seconds."""

        if self._loop is None or size <= 0:
            return b""
        out = bytearray()
        deadline = time.monotonic() + timeout
        while len(out) < size:
            remaining = deadline - time.monotonic()
            try:
                if remaining <= 0:
                    out.append(self._read_queue.get_nowait())
                else:
                    out.append(self._read_queue.get(timeout=remaining))
            except queue.Empty:
                break
        return bytes(out)

    def read_byte(self, timeout: float = 0.1) -> int | None:
        data = self.read(1, timeout)
        return data[0] if data else None

    def available(self) -> int:
        if self._loop is None:
            return 0
        return self._read_queue.qsize()

    def reset_input_buffer(self) -> None:
        while True:
            try:
                self._read_queue.get_nowait()
            except queue.Empty:
                return

    def write(self, data: bytes) -> int:
        if self._loop is None or self._transport is None:
            return 0
        payload = bytes(data)

        async def _write() -> int:
            if self._transport is None:
                return 0
            self._transport.write(payload)
            return len(payload)

        try:
            fut = asyncio.run_coroutine_threadsafe(_write(), self._loop)
            return fut.result(timeout=_WRITE_TIMEOUT_S)
        except Exception as e:  # pragma: no cover - depends on env
            self._logger(0, "write_serial failed on %s: %s", self._port, e)
            return 0


__all__ = ["AsyncSerialBackend", "_AsyncSerialProtocol"]
