"""
Kaspa Ledger CLI - query the device app, get addresses and sign.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import ValidationError

from kaspa_ledger.app import KaspaApp
from kaspa_ledger.config import Settings, get_settings
from kaspa_ledger.errors import KaspaLedgerError
from kaspa_ledger.transaction import Transaction
from kaspa_ledger.transport.base import Transport

app = typer.Typer(
    name="kaspa-ledger",
    help="Kaspa hardware wallet client",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def open_transport(settings: Settings) -> Transport:
    from kaspa_ledger.transport.ledger import LedgerTransport

    if settings.transport == "tcp":
        return LedgerTransport.open_tcp(settings.tcp_host, settings.tcp_port, settings.debug_apdu)
    return LedgerTransport.open_hid(settings.debug_apdu)


def _load_settings(
    transport: str | None, host: str | None, port: int | None, log_level: str | None
) -> Settings:
    settings = get_settings()
    updates: dict[str, object] = {}
    if transport is not None:
        updates["transport"] = transport
    if host is not None:
        updates["tcp_host"] = host
    if port is not None:
        updates["tcp_port"] = port
    if log_level is not None:
        updates["log_level"] = log_level
    settings = Settings.model_validate(settings.model_dump() | updates)
    setup_logging(settings.log_level)
    return settings


def _run(coro: Coroutine[Any, Any, None]) -> None:
    try:
        asyncio.run(coro)
    except (KaspaLedgerError, ValueError) as e:
        logger.error(str(e))
        raise typer.Exit(1)


TransportOpt = typer.Option(None, "--transport", "-t", help="hid | tcp")
HostOpt = typer.Option(None, "--host", help="Emulator host (tcp transport)")
PortOpt = typer.Option(None, "--port", help="Emulator APDU port (tcp transport)")
LogLevelOpt = typer.Option(None, "--log-level", "-l")


@app.command()
def version(
    transport: str | None = TransportOpt,
    host: str | None = HostOpt,
    port: int | None = PortOpt,
    log_level: str | None = LogLevelOpt,
) -> None:
    """Show the version of the Kaspa app on the device."""
    settings = _load_settings(transport, host, port, log_level)

    async def _version() -> None:
        async with KaspaApp(open_transport(settings)) as kaspa:
            typer.echo(await kaspa.get_version())

    _run(_version())


@app.command()
def address(
    path: str = typer.Argument("44'/111111'/0'/0/0", help="BIP32 derivation path"),
    display: bool = typer.Option(False, "--display", "-d", help="Confirm address on device"),
    transport: str | None = TransportOpt,
    host: str | None = HostOpt,
    port: int | None = PortOpt,
    log_level: str | None = LogLevelOpt,
) -> None:
    """Get the address for a derivation path (raw reply, hex)."""
    settings = _load_settings(transport, host, port, log_level)

    async def _address() -> None:
        async with KaspaApp(open_transport(settings)) as kaspa:
            addr = await kaspa.get_address(path, display=display)
            typer.echo(addr.hex())

    _run(_address())


@app.command()
def sign_message(
    message: str = typer.Argument(..., help="Message to sign"),
    address_type: int = typer.Option(0, "--address-type", help="0 = receive, 1 = change"),
    address_index: int = typer.Option(0, "--address-index"),
    transport: str | None = TransportOpt,
    host: str | None = HostOpt,
    port: int | None = PortOpt,
    log_level: str | None = LogLevelOpt,
) -> None:
    """Sign a personal message."""
    settings = _load_settings(transport, host, port, log_level)

    async def _sign() -> None:
        async with KaspaApp(open_transport(settings)) as kaspa:
            result = await kaspa.sign_message(message, address_type, address_index)
            typer.echo(
                json.dumps({"signature": result.signature, "messageHash": result.message_hash})
            )

    _run(_sign())


@app.command()
def sign_tx(
    tx_file: Path = typer.Argument(..., help="Transaction JSON file"),
    broadcast: bool = typer.Option(False, "--broadcast", "-b", help="Submit to the REST API"),
    api_url: str | None = typer.Option(None, "--api-url", help="Kaspa REST API base URL"),
    transport: str | None = TransportOpt,
    host: str | None = HostOpt,
    port: int | None = PortOpt,
    log_level: str | None = LogLevelOpt,
) -> None:
    """Sign a transaction and print the API JSON (optionally submit it)."""
    settings = _load_settings(transport, host, port, log_level)

    if not tx_file.exists():
        logger.error(f"Transaction file not found: {tx_file}")
        raise typer.Exit(1)

    try:
        tx = Transaction.model_validate_json(tx_file.read_text())
    except ValidationError as e:
        logger.error(f"Invalid transaction: {e}")
        raise typer.Exit(1)

    # The signed result is printed as API JSON, which needs a script for every output
    address_outputs = [i for i, out in enumerate(tx.outputs) if out.script_public_key is None]
    if address_outputs:
        logger.error(
            f"Outputs {address_outputs} are addressed by (address_type, address_index); "
            "sign-tx needs script_public_key for every output"
        )
        raise typer.Exit(1)

    async def _sign() -> None:
        async with KaspaApp(open_transport(settings)) as kaspa:
            tx.apply_signatures(await kaspa.sign_transaction(tx))

        typer.echo(json.dumps(tx.to_api_json(), indent=2))

        if broadcast:
            from kaspa_ledger.api import KaspaApiClient

            async with KaspaApiClient(api_url or settings.api_url, settings.api_timeout) as api:
                txid = await api.submit_transaction(tx)
            typer.echo(f"Transaction id: {txid}")

    _run(_sign())


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
