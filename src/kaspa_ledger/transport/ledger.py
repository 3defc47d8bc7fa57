"""
Transport to a physical device over USB HID, or to an emulator over TCP,
using ledgerblue.
"""

from __future__ import annotations

import asyncio
from typing import Any

from ledgerblue.commException import CommException
from loguru import logger

from kaspa_ledger.errors import TransportError
from kaspa_ledger.transport.base import Transport, build_apdu

# Default APDU port of the Speculos emulator
DEFAULT_TCP_PORT = 9999


class LedgerTransport(Transport):
    """
    Wraps a ledgerblue dongle.

    ledgerblue's exchange() blocks and already strips the status word, raising
    CommException on anything other than 0x9000. Exchanges run in a worker
    thread so the event loop is not blocked while the user confirms on device.
    """

    def __init__(self, dongle: Any):
        self._dongle = dongle

    @classmethod
    def open_hid(cls, debug: bool = False) -> LedgerTransport:
        from ledgerblue.comm import getDongle

        logger.info("Opening HID device")
        try:
            return cls(getDongle(debug))
        except CommException as e:
            raise TransportError(f"Failed to open device: {e.message}", e.sw) from e

    @classmethod
    def open_tcp(
        cls, host: str = "127.0.0.1", port: int = DEFAULT_TCP_PORT, debug: bool = False
    ) -> LedgerTransport:
        from ledgerblue.commTCP import getDongle

        logger.info(f"Connecting to emulator at {host}:{port}")
        try:
            return cls(getDongle(host, port, debug))
        except OSError as e:
            raise TransportError(f"Failed to connect to {host}:{port}: {e}") from e

    async def send(self, cla: int, ins: int, p1: int, p2: int, payload: bytes = b"") -> bytes:
        apdu = build_apdu(cla, ins, p1, p2, payload)
        logger.debug(f"=> {apdu.hex()}")

        try:
            reply = await asyncio.to_thread(self._dongle.exchange, apdu)
        except CommException as e:
            raise TransportError(f"Device returned status {e.sw:04x}: {e.message}", e.sw) from e
        except OSError as e:
            raise TransportError(f"Device I/O failed: {e}") from e

        logger.debug(f"<= {bytes(reply).hex()}")
        return bytes(reply)

    async def close(self) -> None:
        await asyncio.to_thread(self._dongle.close)
