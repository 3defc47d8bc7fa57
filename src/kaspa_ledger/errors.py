"""
Exception types raised by kaspa_ledger.
"""

from __future__ import annotations

from pydantic import ValidationError


class KaspaLedgerError(Exception):
    pass


class ProtocolError(KaspaLedgerError):
    """Device reply does not match the shape the protocol expects."""

    pass


class TransportError(KaspaLedgerError):
    """Exchange with the device failed or returned a non-success status word."""

    def __init__(self, message: str, status_word: int | None = None):
        super().__init__(message)
        self.status_word = status_word


class ApiError(KaspaLedgerError):
    pass


__all__ = [
    "ApiError",
    "KaspaLedgerError",
    "ProtocolError",
    "TransportError",
    "ValidationError",
]
