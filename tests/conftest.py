"""
Pytest configuration and fixtures for kaspa_ledger tests.
"""

from __future__ import annotations

import pytest

from kaspa_ledger.transaction import Transaction, TransactionInput, TransactionOutput
from tests.vectors import PREV_TX_ID, SCRIPT_PUBLIC_KEY


@pytest.fixture
def sample_input() -> TransactionInput:
    return TransactionInput(
        prev_tx_id=PREV_TX_ID,
        value=1100000,
        address_type=0,
        address_index=0,
        outpoint_index=0,
    )


@pytest.fixture
def sample_output() -> TransactionOutput:
    return TransactionOutput(value=1090000, script_public_key=SCRIPT_PUBLIC_KEY)


@pytest.fixture
def sample_tx(sample_input: TransactionInput, sample_output: TransactionOutput) -> Transaction:
    return Transaction(version=0, inputs=[sample_input], outputs=[sample_output])
