"""
Transport interface between the host and the device application.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kaspa_ledger.constants import MAX_APDU_PAYLOAD
from kaspa_ledger.errors import TransportError


def build_apdu(cla: int, ins: int, p1: int, p2: int, payload: bytes = b"") -> bytes:
    """Frame a short APDU: [CLA][INS][P1][P2][Lc][payload]."""
    if len(payload) > MAX_APDU_PAYLOAD:
        raise ValueError(f"APDU payload of {len(payload)} bytes exceeds {MAX_APDU_PAYLOAD}")
    return bytes([cla, ins, p1, p2, len(payload)]) + payload


def split_status(response: bytes) -> tuple[bytes, int]:
    """Split a raw reply into (payload, status_word)."""
    if len(response) < 2:
        raise TransportError(f"Reply too short to carry a status word: {response.hex()}")
    return response[:-2], int.from_bytes(response[-2:], "big")


class Transport(ABC):
    """
    Byte-level link to the device.

    Implementations send one APDU at a time and return the reply payload with
    the status word stripped. Any status other than 0x9000 must raise
    TransportError instead of returning.
    """

    @abstractmethod
    async def send(self, cla: int, ins: int, p1: int, p2: int, payload: bytes = b"") -> bytes:
        """Exchange one APDU, returning the reply payload"""

    async def close(self) -> None:
        """Release the device"""
        pass

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
