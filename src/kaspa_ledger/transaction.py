"""
Kaspa transaction model and its device wire encoding.

The device consumes the transaction in pieces:
- Header: version, output/input counts, change address and account
- One encoding per output
- One encoding per input

All integers are big-endian and fixed width. The same model also produces the
JSON body accepted by the Kaspa REST API once every input is signed.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kaspa_ledger.constants import (
    DEFAULT_ACCOUNT,
    HARDENED_OFFSET,
    MAX_APDU_PAYLOAD,
    MAX_INPUTS,
    MAX_OUTPUTS,
    MAX_UINT32,
    MAX_UINT64,
    NATIVE_SUBNETWORK_ID,
    SIGHASH_ALL,
    SIGNATURE_SCRIPT_PUSH,
)

if TYPE_CHECKING:
    from kaspa_ledger.protocol import InputSignature

HEX_PATTERN = r"^(?:[0-9a-fA-F]{2})+$"

# value(8) + prev_tx_id(32) + address_type(1) + address_index(4) + outpoint_index(1)
INPUT_ENCODING_LENGTH = 46

# version(2) + outputs(1) + inputs(1) + change type(1) + change index(4) + account(4)
HEADER_ENCODING_LENGTH = 13

# An encoded output (value(8) + script) must fit in one APDU
MAX_SCRIPT_LENGTH = MAX_APDU_PAYLOAD - 8


class ScriptPublicKey(BaseModel):
    """Output paid to an explicit script."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["script"] = "script"
    script_public_key: str = Field(..., pattern=HEX_PATTERN, max_length=2 * MAX_SCRIPT_LENGTH)

    @field_validator("script_public_key")
    @classmethod
    def normalize_hex(cls, v: str) -> str:
        return v.lower()

    def serialize(self) -> bytes:
        return bytes.fromhex(self.script_public_key)


class AddressRef(BaseModel):
    """Output paid to one of the device's own addresses (change-style outputs)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["address"] = "address"
    address_type: int = Field(..., ge=0, le=1)
    address_index: int = Field(..., ge=0, le=MAX_UINT32)

    def serialize(self) -> bytes:
        return bytes([self.address_type]) + self.address_index.to_bytes(4, "big")


OutputDestination = Annotated[ScriptPublicKey | AddressRef, Field(discriminator="kind")]


class TransactionInput(BaseModel):
    """A previous output being spent, plus the device address that owns it."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    value: int = Field(..., ge=0, le=MAX_UINT64)
    prev_tx_id: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    outpoint_index: int = Field(..., ge=0, le=0xFF)
    address_type: int = Field(..., ge=0, le=1)
    address_index: int = Field(..., ge=0, le=MAX_UINT32)
    signature: str | None = Field(default=None, pattern=r"^[0-9a-f]{128}$")
    sighash: str | None = Field(default=None, pattern=HEX_PATTERN)

    @field_validator("prev_tx_id")
    @classmethod
    def normalize_txid(cls, v: str) -> str:
        return v.lower()

    def serialize(self) -> bytes:
        return (
            self.value.to_bytes(8, "big")
            + bytes.fromhex(self.prev_tx_id)
            + bytes([self.address_type])
            + self.address_index.to_bytes(4, "big")
            + bytes([self.outpoint_index])
        )

    def to_api_json(self) -> dict[str, Any]:
        signature_script = (
            f"{SIGNATURE_SCRIPT_PUSH}{self.signature}{SIGHASH_ALL}" if self.signature else None
        )
        return {
            "previousOutpoint": {
                "transactionId": self.prev_tx_id,
                "index": self.outpoint_index,
            },
            "signatureScript": signature_script,
            "sequence": 0,
            "sigOpCount": 1,
        }


class TransactionOutput(BaseModel):
    """
    An output of the transaction.

    The destination is either an explicit script public key or an
    (address_type, address_index) reference to a device address. Both forms
    can be given flat:

        TransactionOutput(value=1000, script_public_key="20...ac")
        TransactionOutput(value=1000, address_type=1, address_index=5)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    value: int = Field(..., gt=0, le=MAX_UINT64)
    destination: OutputDestination

    @model_validator(mode="before")
    @classmethod
    def pack_flat_destination(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "destination" in data:
            return data

        data = dict(data)
        has_script = "script_public_key" in data
        address_keys = [k for k in ("address_type", "address_index") if k in data]

        if has_script and address_keys:
            raise ValueError(
                "Output takes either script_public_key or (address_type, address_index), not both"
            )

        if has_script:
            data["destination"] = {
                "kind": "script",
                "script_public_key": data.pop("script_public_key"),
            }
        elif address_keys:
            data["destination"] = {"kind": "address"} | {k: data.pop(k) for k in address_keys}
        else:
            raise ValueError(
                "Output needs a script_public_key or an (address_type, address_index) pair"
            )
        return data

    @property
    def script_public_key(self) -> str | None:
        if isinstance(self.destination, ScriptPublicKey):
            return self.destination.script_public_key
        return None

    def serialize(self) -> bytes:
        return self.value.to_bytes(8, "big") + self.destination.serialize()

    def to_api_json(self) -> dict[str, Any]:
        if self.script_public_key is None:
            raise ValueError("Outputs addressed by (address_type, address_index) have no script")
        return {
            "amount": self.value,
            "scriptPublicKey": {
                "version": 0,
                "scriptPublicKey": self.script_public_key,
            },
        }


class Transaction(BaseModel):
    """Transaction to be signed by the device."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    version: int = Field(default=0, ge=0, le=0xFFFF)
    inputs: tuple[TransactionInput, ...] = Field(..., min_length=1, max_length=MAX_INPUTS)
    outputs: tuple[TransactionOutput, ...] = Field(..., min_length=1, max_length=MAX_OUTPUTS)
    change_address_type: int = Field(default=0, ge=0, le=1)
    change_address_index: int = Field(default=0, ge=0, le=MAX_UINT32)
    # Hardened account index, 0x80000000 is account 0'
    account: int = Field(default=DEFAULT_ACCOUNT, ge=HARDENED_OFFSET, le=MAX_UINT32)

    def serialize(self) -> bytes:
        """Encode the header sent in the first SIGN_TX round."""
        return (
            self.version.to_bytes(2, "big")
            + bytes([len(self.outputs)])
            + bytes([len(self.inputs)])
            + bytes([self.change_address_type])
            + self.change_address_index.to_bytes(4, "big")
            + self.account.to_bytes(4, "big")
        )

    def apply_signatures(self, signatures: Iterable[InputSignature]) -> None:
        """
        Store signing results on the matching inputs.

        Every index is checked before any input is touched.

        Raises:
            ValueError: If a result refers to an input that does not exist
        """
        signatures = list(signatures)
        for sig in signatures:
            if not 0 <= sig.input_index < len(self.inputs):
                raise ValueError(
                    f"Signature for input {sig.input_index} but transaction has "
                    f"{len(self.inputs)} inputs"
                )

        for sig in signatures:
            inp = self.inputs[sig.input_index]
            inp.signature = sig.signature
            inp.sighash = sig.sighash

    def is_fully_signed(self) -> bool:
        return all(inp.signature is not None for inp in self.inputs)

    def to_api_json(self) -> dict[str, Any]:
        """Convert to the JSON body that the Kaspa REST API accepts."""
        return {
            "transaction": {
                "version": self.version,
                "inputs": [inp.to_api_json() for inp in self.inputs],
                "outputs": [out.to_api_json() for out in self.outputs],
                "lockTime": 0,
                "subnetworkId": NATIVE_SUBNETWORK_ID,
            }
        }
