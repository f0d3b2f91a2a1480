"""gamemachine/application/radio.py

Radio worker: owns the E220 module and moves datagrams between the air
and two bounded mailboxes.

The supervisor only touches :meth:`RadioWorker.send_message` and
:meth:`RadioWorker.receive_message`; everything that talks to the UART
runs on the worker thread once :meth:`RadioWorker.start` returned.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable, Optional

from config import RadioSettings

from ..adapters.ebyte_e220 import EbyteLoraE220
from ..domain import AsmConfig, Status
from ..logging_utils import logprintf
from ..ports import GpioLinePort, SerialLinePort

GpioFactory = Callable[[int], GpioLinePort]


class RadioWorker:
    def __init__(
        self,
        settings: RadioSettings,
        asm_config: AsmConfig,
        serial: SerialLinePort,
        gpio_factory: GpioFactory,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings
        self._asm_config = asm_config
        self._serial = serial
        self._gpio_factory = gpio_factory
        self._sleep = sleep

        self._inbox: "queue.Queue[bytes]" = queue.Queue(maxsize=settings.mailbox_size)
        self._outbox: "queue.Queue[bytes]" = queue.Queue(maxsize=settings.mailbox_size)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self.lora: Optional[EbyteLoraE220] = None

    def _line(self, gpio_id: Optional[int]) -> Optional[GpioLinePort]:
        return None if gpio_id is None else self._gpio_factory(gpio_id)

    # --- lifecycle ----------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Open the UART, bring the module to NORMAL mode and sync its address.

        Returns ``False`` when the module cannot be used; the worker thread
        is only started on success.
        """

        s = self._settings
        if not self._serial.start(s.port, baudrate=s.baudrate):
            logprintf(0, "Radio: cannot open %s", s.port)
            return False

        self.lora = EbyteLoraE220(
            self._serial,
            aux=self._line(s.aux_gpio),
            m0=self._line(s.m0_gpio),
            m1=self._line(s.m1_gpio),
            band_offset=s.band_offset,
            sleep=self._sleep,
        )
        if not self.lora.begin():
            logprintf(0, "Radio: module did not enter NORMAL mode")
            self._release()
            return False

        status = self.sync_address()
        if status == Status.WRONG_UART_CONFIG:
            logprintf(0, "Radio: %s", status.description)
            self._release()
            return False

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="asm-radio", daemon=True)
        self._thread.start()
        return True

    def sync_address(self) -> Status:
        """Program the host address when the module is blank or differs.

        After a write the configuration is read back; ``HARDWARE`` means the
        module answered but did not keep the address.
        """

        assert self.lora is not None
        current = self.lora.get_configuration()
        if not current.ok or current.configuration is None:
            logprintf(1, "Radio: cannot read configuration (%s)", current.status.description)
            return current.status

        cfg = current.configuration
        wanted = (self._asm_config.address_high, self._asm_config.address_low)
        if cfg.address != 0 and (cfg.address_high, cfg.address_low) == wanted:
            logprintf(2, "Radio: address 0x%02X%02X already configured", *wanted)
            return Status.SUCCESS

        updated = cfg.model_copy(update={"address_high": wanted[0], "address_low": wanted[1]})
        result = self.lora.set_configuration(updated)
        if not result.ok:
            logprintf(1, "Radio: cannot configure address (%s)", result.status.description)
            return result.status

        check = self.lora.get_configuration()
        if not check.ok or check.configuration is None:
            logprintf(1, "Radio: cannot read back configuration (%s)", check.status.description)
            return check.status
        if (check.configuration.address_high, check.configuration.address_low) != wanted:
            logprintf(1, "Radio: module kept address 0x%04X instead of 0x%02X%02X", check.configuration.address, *wanted)
            return Status.HARDWARE

        logprintf(2, "Radio: new address 0x%02X%02X configured", *wanted)
        return Status.SUCCESS

    def terminate(self, timeout: Optional[float] = None) -> bool:
        """Stop the loop and release the module; ``False`` if the join timed out."""

        self._stop.set()
        joined = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            joined = not self._thread.is_alive()
            if not joined:
                logprintf(1, "Radio: worker did not stop within %.1f s", timeout or 0.0)
            self._thread = None
        self._release()
        return joined

    def _release(self) -> None:
        self._ready.clear()
        if self.lora is not None:
            self.lora.end()
            self.lora = None
        self._serial.stop()

    # --- mailboxes ------------------------------------------------------------

    def send_message(self, payload: bytes) -> bool:
        """Queue one datagram for broadcast on the configured channel."""

        try:
            self._outbox.put_nowait(bytes(payload))
        except queue.Full:
            logprintf(1, "Radio: outbox full, dropping %d bytes", len(payload))
            return False
        return True

    def receive_message(self) -> Optional[bytes]:
        try:
            return self._inbox.get_nowait()
        except queue.Empty:
            return None

    def inbox_size(self) -> int:
        return self._inbox.qsize()

    def outbox_size(self) -> int:
        return self._outbox.qsize()

    # --- worker loop ----------------------------------------------------------

    def run_once(self) -> None:
        """One receive/transmit cycle."""

        lora = self.lora
        if lora is None:
            return
        response = lora.receive_message()
        if response.ok:
            try:
                self._inbox.put_nowait(response.data)
            except queue.Full:
                logprintf(1, "Radio: inbox full, dropping %d bytes", len(response.data))
        elif response.status != Status.NO_RESPONSE_FROM_DEVICE:
            logprintf(3, "Radio: receive failed (%s)", response.status.description)

        try:
            payload = self._outbox.get_nowait()
        except queue.Empty:
            return
        status = lora.send_broadcast_fixed_message(self._settings.channel, payload)
        if status != Status.SUCCESS:
            logprintf(1, "Radio: send failed (%s)", status.description)

    def _run(self) -> None:
        logprintf(2, "Radio: Started")
        self._ready.set()
        interval = self._settings.loop_ms / 1000.0
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(interval)
        logprintf(2, "Radio: Terminated")


__all__ = ["RadioWorker"]
