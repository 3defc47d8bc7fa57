"""
kaspa_ledger - Host-side client for the Kaspa hardware wallet application

Builds transactions, drives the device signing protocol and decodes replies.
"""

__version__ = "0.3.0"

from kaspa_ledger.app import KaspaApp
from kaspa_ledger.errors import (
    ApiError,
    KaspaLedgerError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from kaspa_ledger.path import address_path, parse_path, path_to_bytes, serialize_path
from kaspa_ledger.protocol import (
    InputSignature,
    MessageSignature,
    SigningPhase,
    SigningSession,
)
from kaspa_ledger.transaction import (
    AddressRef,
    ScriptPublicKey,
    Transaction,
    TransactionInput,
    TransactionOutput,
)
from kaspa_ledger.transport import RecordStore, ReplayTransport, Transport

__all__ = [
    "AddressRef",
    "ApiError",
    "InputSignature",
    "KaspaApp",
    "KaspaLedgerError",
    "MessageSignature",
    "ProtocolError",
    "RecordStore",
    "ReplayTransport",
    "ScriptPublicKey",
    "SigningPhase",
    "SigningSession",
    "Transaction",
    "TransactionInput",
    "TransactionOutput",
    "Transport",
    "TransportError",
    "ValidationError",
    "address_path",
    "parse_path",
    "path_to_bytes",
    "serialize_path",
]
