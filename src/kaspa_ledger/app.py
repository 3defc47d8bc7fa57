"""
Client for the Kaspa device application.

All operations are request/response over a single Transport. The device is a
stateful single-threaded peripheral, so one KaspaApp serializes every
operation behind a lock. A failed SIGN_TX round aborts the whole signing
operation; it must be restarted from the header.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from kaspa_ledger.constants import (
    CLA,
    P1_CONFIRM,
    P1_HEADER,
    P1_INPUTS,
    P1_NEXT_SIGNATURE,
    P1_NON_CONFIRM,
    P1_OUTPUTS,
    P2_LAST,
    P2_MORE,
    SIGN_TX_PATH_COUNT,
    Instruction,
)
from kaspa_ledger.errors import ProtocolError
from kaspa_ledger.path import path_to_bytes
from kaspa_ledger.protocol import (
    InputSignature,
    MessageSignature,
    SigningPhase,
    SigningSession,
    encode_message_payload,
    parse_message_signature,
    parse_version,
)
from kaspa_ledger.transaction import Transaction
from kaspa_ledger.transport.base import Transport


class KaspaApp:
    """
    Kaspa application running on a hardware wallet.

    Example:
        async with KaspaApp(LedgerTransport.open_hid()) as app:
            signatures = await app.sign_transaction(tx)
            tx.apply_signatures(signatures)
    """

    def __init__(self, transport: Transport):
        if not isinstance(transport, Transport):
            raise TypeError("transport must be a kaspa_ledger.transport.Transport")
        self.transport = transport
        self._lock = asyncio.Lock()

    async def _send(
        self, instruction: Instruction, p1: int, payload: bytes = b"", p2: int = P2_LAST
    ) -> bytes:
        return await self.transport.send(CLA, instruction, p1, p2, payload)

    async def get_version(self) -> str:
        """Return the application version as "major.minor.patch"."""
        async with self._lock:
            reply = await self._send(Instruction.GET_VERSION, P1_NON_CONFIRM)
        return parse_version(reply)

    async def get_address(self, path: str, display: bool = False) -> bytes:
        """
        Get the address for a BIP32 path, e.g. "44'/111111'/0'/0/0".

        With display=True the device shows the address and waits for the user
        to confirm it. The reply is returned as-is.
        """
        path_bytes = path_to_bytes(path)
        p1 = P1_CONFIRM if display else P1_NON_CONFIRM

        async with self._lock:
            return await self._send(Instruction.GET_ADDRESS, p1, path_bytes)

    async def sign_message(
        self, message: str, address_type: int = 0, address_index: int = 0
    ) -> MessageSignature:
        """
        Sign a personal message with the key of a device address.

        The device can only display short messages (about 120 characters on
        Nano S, 200 on other models); longer ones are rejected by the device.
        """
        payload = encode_message_payload(message, address_type, address_index)

        async with self._lock:
            reply = await self._send(Instruction.SIGN_MESSAGE, P1_NON_CONFIRM, payload)
        return parse_message_signature(reply)

    async def sign_transaction(self, transaction: Transaction) -> list[InputSignature]:
        """
        Sign every input of a transaction.

        The transaction is not modified; merge the result with
        Transaction.apply_signatures().

        Returns:
            One InputSignature per input, in input order

        Raises:
            ProtocolError: If a device reply is malformed or a signature is missing
            TransportError: If any round fails at the transport level
        """
        if not isinstance(transaction, Transaction):
            raise TypeError("transaction must be a kaspa_ledger.transaction.Transaction")

        async with self._lock:
            signatures = await self._run_signing(transaction)

        logger.info(f"Device signed {len(signatures)} input(s)")
        return signatures

    async def _run_signing(self, transaction: Transaction) -> list[InputSignature]:
        session = SigningSession(
            input_count=len(transaction.inputs), output_count=len(transaction.outputs)
        )

        session.advance(SigningPhase.HEADER)
        header = bytes([SIGN_TX_PATH_COUNT]) + transaction.serialize()
        await self._send_expecting_empty(P1_HEADER, header, P2_MORE)

        for output in transaction.outputs:
            session.advance(SigningPhase.OUTPUTS)
            await self._send_expecting_empty(P1_OUTPUTS, output.serialize(), P2_MORE)

        reply = b""
        for inp in transaction.inputs:
            session.advance(SigningPhase.INPUTS)
            p2 = P2_LAST if session.last_input_sent else P2_MORE
            if p2 == P2_LAST:
                reply = await self._send(Instruction.SIGN_TX, P1_INPUTS, inp.serialize(), p2)
            else:
                await self._send_expecting_empty(P1_INPUTS, inp.serialize(), p2)

        while session.collect(reply):
            session.advance(SigningPhase.NEXT_SIGNATURE)
            reply = await self._send(Instruction.SIGN_TX, P1_NEXT_SIGNATURE)

        return session.finish()

    async def _send_expecting_empty(self, p1: int, payload: bytes, p2: int) -> None:
        reply = await self._send(Instruction.SIGN_TX, p1, payload, p2)
        if reply:
            raise ProtocolError(f"Unexpected data in SIGN_TX reply (p1={p1:#04x}): {reply.hex()}")

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> KaspaApp:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
