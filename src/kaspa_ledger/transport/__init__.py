"""
Device transports.

- Transport: interface used by KaspaApp
- ReplayTransport: scripted exchanges for tests and offline debugging
- LedgerTransport (kaspa_ledger.transport.ledger): USB HID and emulator TCP
  via ledgerblue
"""

from kaspa_ledger.transport.base import Transport, build_apdu, split_status
from kaspa_ledger.transport.replay import Exchange, RecordStore, ReplayTransport

__all__ = [
    "Exchange",
    "RecordStore",
    "ReplayTransport",
    "Transport",
    "build_apdu",
    "split_status",
]
