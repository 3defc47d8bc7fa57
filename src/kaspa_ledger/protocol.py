"""
SIGN_TX session state machine and device reply parsing.

A transaction is signed in a fixed sequence of APDU rounds:

    HEADER -> OUTPUTS (one per output) -> INPUTS (one per input)
           -> NEXT_SIGNATURE (zero or more) -> DONE

The reply to the last INPUTS round carries the first signature record, and
each NEXT_SIGNATURE reply carries one more. The device tracks which round it
expects next, so the host side refuses any other order before sending.

Signature record layout:

    [has_more:1][input_index:1][sig_len:1][signature:sig_len][sighash:rest]
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from kaspa_ledger.constants import MAX_UINT32, SIGNATURE_LENGTH
from kaspa_ledger.errors import ProtocolError


class SigningPhase(str, Enum):
    IDLE = "idle"
    HEADER = "header"
    OUTPUTS = "outputs"
    INPUTS = "inputs"
    NEXT_SIGNATURE = "next_signature"
    DONE = "done"


_TRANSITIONS: dict[SigningPhase, frozenset[SigningPhase]] = {
    SigningPhase.IDLE: frozenset({SigningPhase.HEADER}),
    SigningPhase.HEADER: frozenset({SigningPhase.OUTPUTS}),
    SigningPhase.OUTPUTS: frozenset({SigningPhase.OUTPUTS, SigningPhase.INPUTS}),
    SigningPhase.INPUTS: frozenset(
        {SigningPhase.INPUTS, SigningPhase.NEXT_SIGNATURE, SigningPhase.DONE}
    ),
    SigningPhase.NEXT_SIGNATURE: frozenset({SigningPhase.NEXT_SIGNATURE, SigningPhase.DONE}),
    SigningPhase.DONE: frozenset(),
}


@dataclass(frozen=True)
class InputSignature:
    """Signature produced by the device for one input."""

    input_index: int
    signature: str
    sighash: str | None = None


@dataclass(frozen=True)
class SignatureRecord:
    has_more: bool
    input_signature: InputSignature


@dataclass(frozen=True)
class MessageSignature:
    signature: str
    message_hash: str


def parse_signature_record(reply: bytes) -> SignatureRecord:
    """
    Parse one signature record from a SIGN_TX reply.

    Raises:
        ProtocolError: If the reply is truncated or the signature is not 64 bytes
    """
    if len(reply) < 3:
        raise ProtocolError(f"Signature reply too short: {reply.hex()}")

    has_more, input_index, sig_len = reply[0], reply[1], reply[2]

    if sig_len != SIGNATURE_LENGTH:
        raise ProtocolError(
            f"Expected signature length is {SIGNATURE_LENGTH}. "
            f"Received {sig_len} for input {input_index}"
        )

    end = 3 + sig_len
    if len(reply) < end:
        raise ProtocolError(
            f"Signature reply for input {input_index} truncated: "
            f"{len(reply) - 3} of {sig_len} bytes"
        )

    sighash = reply[end:]
    return SignatureRecord(
        has_more=bool(has_more),
        input_signature=InputSignature(
            input_index=input_index,
            signature=reply[3:end].hex(),
            sighash=sighash.hex() if sighash else None,
        ),
    )


def encode_message_payload(message: str, address_type: int, address_index: int) -> bytes:
    """Build the SIGN_MESSAGE payload: [type:1][index:4][msg_len:4][message]."""
    if address_type not in (0, 1):
        raise ValueError(f"address_type must be 0 or 1, got {address_type}")
    if not 0 <= address_index <= MAX_UINT32:
        raise ValueError(f"address_index must fit in 32 bits, got {address_index}")

    message_bytes = message.encode("utf-8")
    return (
        bytes([address_type])
        + address_index.to_bytes(4, "big")
        + len(message_bytes).to_bytes(4, "big")
        + message_bytes
    )


def parse_message_signature(reply: bytes) -> MessageSignature:
    """Parse a SIGN_MESSAGE reply: [sig_len:1][sig][hash_len:1][hash]."""
    if not reply:
        raise ProtocolError("Empty message signature reply")

    sig_len = reply[0]
    sig_end = 1 + sig_len
    if len(reply) < sig_end + 1:
        raise ProtocolError(f"Message signature reply truncated: {reply.hex()}")

    hash_len = reply[sig_end]
    hash_start = sig_end + 1
    if len(reply) != hash_start + hash_len:
        raise ProtocolError(
            f"Message signature reply has {len(reply)} bytes, "
            f"expected {hash_start + hash_len}"
        )

    return MessageSignature(
        signature=reply[1:sig_end].hex(),
        message_hash=reply[hash_start:].hex(),
    )


def parse_version(reply: bytes) -> str:
    if len(reply) != 3:
        raise ProtocolError(f"Version reply must be 3 bytes, got {len(reply)}")
    major, minor, patch = reply
    return f"{major}.{minor}.{patch}"


class SigningSession:
    """
    Host-side view of one SIGN_TX exchange.

    Every round is announced with advance() before it is sent; signature
    replies are fed to collect(). The session owns the collected results and
    hands them out once with finish().
    """

    def __init__(self, input_count: int, output_count: int):
        self.input_count = input_count
        self.output_count = output_count
        self.phase = SigningPhase.IDLE
        self.outputs_sent = 0
        self.inputs_sent = 0
        self.signature_rounds = 0
        self._pending_more = False
        self._signatures: dict[int, InputSignature] = {}

    @property
    def last_input_sent(self) -> bool:
        return self.inputs_sent == self.input_count

    def _check_guard(self, phase: SigningPhase) -> None:
        if phase == SigningPhase.OUTPUTS and self.outputs_sent >= self.output_count:
            raise ProtocolError(f"All {self.output_count} outputs already sent")

        if phase == SigningPhase.INPUTS:
            if self.outputs_sent < self.output_count:
                raise ProtocolError(
                    f"Only {self.outputs_sent} of {self.output_count} outputs sent before inputs"
                )
            if self.inputs_sent >= self.input_count:
                raise ProtocolError(f"All {self.input_count} inputs already sent")

        if phase in (SigningPhase.NEXT_SIGNATURE, SigningPhase.DONE):
            if not self.last_input_sent or self.signature_rounds == 0:
                raise ProtocolError("No signature received yet")
            if phase == SigningPhase.NEXT_SIGNATURE and not self._pending_more:
                raise ProtocolError("Device did not announce more signatures")
            if phase == SigningPhase.DONE and self._pending_more:
                raise ProtocolError("Device still has signatures to send")

    def advance(self, phase: SigningPhase) -> None:
        """
        Move to the next round.

        Raises:
            ProtocolError: If the round is not allowed from the current phase
        """
        if phase not in _TRANSITIONS[self.phase]:
            raise ProtocolError(f"Cannot go from {self.phase.value} to {phase.value}")

        self._check_guard(phase)

        if phase == SigningPhase.OUTPUTS:
            self.outputs_sent += 1
        elif phase == SigningPhase.INPUTS:
            self.inputs_sent += 1

        logger.debug(f"SIGN_TX phase {self.phase.value} -> {phase.value}")
        self.phase = phase

    def expects_signature(self) -> bool:
        """True if the reply to the current round carries a signature record."""
        return self.phase == SigningPhase.NEXT_SIGNATURE or (
            self.phase == SigningPhase.INPUTS and self.last_input_sent
        )

    def collect(self, reply: bytes) -> bool:
        """
        Record the signature carried by a reply.

        Returns:
            True if the device has more signatures to send

        Raises:
            ProtocolError: On a malformed record, an unknown or repeated input
                index, or more signature rounds than inputs
        """
        if not self.expects_signature():
            raise ProtocolError(f"No signature expected in phase {self.phase.value}")

        record = parse_signature_record(reply)
        sig = record.input_signature

        if sig.input_index >= self.input_count:
            raise ProtocolError(
                f"Signature for input {sig.input_index} but transaction has "
                f"{self.input_count} inputs"
            )
        if sig.input_index in self._signatures:
            raise ProtocolError(f"Duplicate signature for input {sig.input_index}")

        self._signatures[sig.input_index] = sig
        self.signature_rounds += 1

        if record.has_more and self.signature_rounds >= self.input_count:
            raise ProtocolError(
                f"Device announced more signatures after {self.signature_rounds} "
                f"for {self.input_count} inputs"
            )

        self._pending_more = record.has_more
        logger.debug(
            f"Signature for input {sig.input_index} received "
            f"({self.signature_rounds}/{self.input_count}, more={record.has_more})"
        )
        return record.has_more

    def finish(self) -> list[InputSignature]:
        """
        Close the session and return one signature per input, in input order.

        Raises:
            ProtocolError: If the device stopped before signing every input
        """
        self.advance(SigningPhase.DONE)

        missing = [i for i in range(self.input_count) if i not in self._signatures]
        if missing:
            raise ProtocolError(f"Device returned no signature for inputs {missing}")

        return [self._signatures[i] for i in range(self.input_count)]
