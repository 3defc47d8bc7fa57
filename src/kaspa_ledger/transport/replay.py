"""
Record/replay transport for scripted device exchanges.

A script alternates host requests and device replies, both hex encoded:

    => e004000000
    <= 0105069000

Replies include the status word, exactly as the device sends them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from kaspa_ledger.constants import SW_OK
from kaspa_ledger.errors import TransportError
from kaspa_ledger.transport.base import Transport, build_apdu, split_status


@dataclass
class Exchange:
    apdu: bytes
    response: bytes


@dataclass
class RecordStore:
    exchanges: list[Exchange] = field(default_factory=list)
    position: int = 0

    @classmethod
    def from_string(cls, script: str) -> RecordStore:
        """
        Parse a "=> apdu" / "<= reply" script.

        Blank lines are ignored and whitespace inside hex is allowed.

        Raises:
            ValueError: If requests and replies do not alternate
        """
        exchanges: list[Exchange] = []
        pending: bytes | None = None

        for lineno, raw_line in enumerate(script.splitlines(), 1):
            line = raw_line.strip()
            if not line:
                continue

            marker, hex_data = line[:2], "".join(line[2:].split())
            if marker == "=>":
                if pending is not None:
                    raise ValueError(f"Line {lineno}: request without a reply before it")
                pending = bytes.fromhex(hex_data)
            elif marker == "<=":
                if pending is None:
                    raise ValueError(f"Line {lineno}: reply without a request")
                exchanges.append(Exchange(apdu=pending, response=bytes.fromhex(hex_data)))
                pending = None
            else:
                raise ValueError(f"Line {lineno}: expected '=>' or '<=', got {line!r}")

        if pending is not None:
            raise ValueError("Script ends with a request that has no reply")

        return cls(exchanges=exchanges)

    def next_exchange(self) -> Exchange:
        if self.position >= len(self.exchanges):
            raise TransportError("Replay script exhausted")
        exchange = self.exchanges[self.position]
        self.position += 1
        return exchange

    def is_complete(self) -> bool:
        return self.position == len(self.exchanges)


class ReplayTransport(Transport):
    """Transport that checks each APDU against a RecordStore and replays the reply."""

    def __init__(self, store: RecordStore):
        self.store = store

    @classmethod
    def from_string(cls, script: str) -> ReplayTransport:
        return cls(RecordStore.from_string(script))

    async def send(self, cla: int, ins: int, p1: int, p2: int, payload: bytes = b"") -> bytes:
        apdu = build_apdu(cla, ins, p1, p2, payload)
        exchange = self.store.next_exchange()

        if apdu != exchange.apdu:
            raise TransportError(
                f"Unexpected APDU {apdu.hex()}, script expects {exchange.apdu.hex()}"
            )

        logger.debug(f"=> {apdu.hex()}")
        logger.debug(f"<= {exchange.response.hex()}")

        data, status_word = split_status(exchange.response)
        if status_word != SW_OK:
            raise TransportError(f"Device returned status {status_word:04x}", status_word)
        return data
