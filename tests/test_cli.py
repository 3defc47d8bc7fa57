"""
Tests for the kaspa-ledger command line.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from kaspa_ledger.cli import app
from kaspa_ledger.transport import ReplayTransport
from tests.vectors import (
    DEVICE_SIGNATURE,
    HEADER_APDU,
    INPUT_APDU,
    OUTPUT_APDU,
    PREV_TX_ID,
    SCRIPT_PUBLIC_KEY,
    SIGNATURE_REPLY,
)

runner = CliRunner()

QUIET = ["--log-level", "ERROR"]


def write_tx(tmp_path: Path) -> Path:
    tx_file = tmp_path / "tx.json"
    tx_file.write_text(
        json.dumps(
            {
                "inputs": [
                    {
                        "value": 1100000,
                        "prev_tx_id": PREV_TX_ID,
                        "outpoint_index": 0,
                        "address_type": 0,
                        "address_index": 0,
                    }
                ],
                "outputs": [{"value": 1090000, "script_public_key": SCRIPT_PUBLIC_KEY}],
            }
        )
    )
    return tx_file


class TestVersionCommand:
    """Tests for the version command."""

    def test_version(self) -> None:
        transport = ReplayTransport.from_string("=> e004000000\n<= 0105069000")
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["version", *QUIET])

        assert result.exit_code == 0
        assert "1.5.6" in result.stdout

    def test_device_error_exits_nonzero(self) -> None:
        transport = ReplayTransport.from_string("=> e004000000\n<= 6e00")
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["version", *QUIET])

        assert result.exit_code == 1


class TestAddressCommand:
    """Tests for the address command."""

    def test_display(self) -> None:
        transport = ReplayTransport.from_string(
            "=> e005010015058000002c8001b207800000000000000000000000\n<= deadbeef9000"
        )
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["address", "m/44'/111111'/0'/0/0", "--display", *QUIET])

        assert result.exit_code == 0
        assert "deadbeef" in result.stdout

    def test_bad_path(self) -> None:
        transport = ReplayTransport.from_string("")
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["address", "44'/x", *QUIET])

        assert result.exit_code == 1


class TestSignMessageCommand:
    """Tests for the sign-message command."""

    def test_sign_message(self) -> None:
        signature = "11" * 64
        message_hash = "22" * 32
        transport = ReplayTransport.from_string(
            "=> e007000015 00 00000000 0000000c 48656c6c6f204b6173706121\n"
            f"<= 40{signature}20{message_hash}9000"
        )
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["sign-message", "Hello Kaspa!", *QUIET])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "signature": signature,
            "messageHash": message_hash,
        }


class TestSignTxCommand:
    """Tests for the sign-tx command."""

    def test_sign_tx(self, tmp_path: Path) -> None:
        """Test signing prints the API JSON with the signature script."""
        transport = ReplayTransport.from_string(
            f"=> {HEADER_APDU}\n<= 9000\n"
            f"=> {OUTPUT_APDU}\n<= 9000\n"
            f"=> {INPUT_APDU}\n<= {SIGNATURE_REPLY}\n"
        )
        with patch("kaspa_ledger.cli.open_transport", return_value=transport):
            result = runner.invoke(app, ["sign-tx", str(write_tx(tmp_path)), *QUIET])

        assert result.exit_code == 0
        body = json.loads(result.stdout)
        signature_script = body["transaction"]["inputs"][0]["signatureScript"]
        assert signature_script == "41" + DEVICE_SIGNATURE + "01"
        assert transport.store.is_complete()

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["sign-tx", str(tmp_path / "nope.json"), *QUIET])
        assert result.exit_code == 1

    def test_invalid_transaction(self, tmp_path: Path) -> None:
        tx_file = tmp_path / "tx.json"
        tx_file.write_text(json.dumps({"inputs": [], "outputs": []}))

        result = runner.invoke(app, ["sign-tx", str(tx_file), *QUIET])
        assert result.exit_code == 1

    def test_address_output_rejected_before_device(self, tmp_path: Path) -> None:
        """Test an output without a script is refused before anything reaches the device."""
        tx_file = write_tx(tmp_path)
        data = json.loads(tx_file.read_text())
        data["outputs"].append({"value": 5000, "address_type": 1, "address_index": 3})
        tx_file.write_text(json.dumps(data))

        with patch("kaspa_ledger.cli.open_transport") as open_transport:
            result = runner.invoke(app, ["sign-tx", str(tx_file), *QUIET])

        assert result.exit_code == 1
        open_transport.assert_not_called()

    def test_broadcast(self, tmp_path: Path) -> None:
        """Test --broadcast submits the signed transaction."""
        transport = ReplayTransport.from_string(
            f"=> {HEADER_APDU}\n<= 9000\n"
            f"=> {OUTPUT_APDU}\n<= 9000\n"
            f"=> {INPUT_APDU}\n<= {SIGNATURE_REPLY}\n"
        )
        with (
            patch("kaspa_ledger.cli.open_transport", return_value=transport),
            patch(
                "kaspa_ledger.api.KaspaApiClient.submit_transaction", return_value="cd" * 32
            ) as submit,
        ):
            result = runner.invoke(
                app, ["sign-tx", str(write_tx(tmp_path)), "--broadcast", *QUIET]
            )

        assert result.exit_code == 0
        assert f"Transaction id: {'cd' * 32}" in result.stdout
        submit.assert_awaited_once()
