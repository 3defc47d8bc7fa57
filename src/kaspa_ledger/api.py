"""
Kaspa REST API client for submitting signed transactions.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from kaspa_ledger.errors import ApiError
from kaspa_ledger.transaction import Transaction

DEFAULT_API_URL = "https://api.kaspa.org"
DEFAULT_API_TIMEOUT = 30.0


class KaspaApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_API_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def submit_transaction(self, transaction: Transaction) -> str:
        """
        Submit a fully signed transaction.

        Returns:
            Transaction id reported by the API

        Raises:
            ValueError: If an input is still unsigned
            ApiError: If the API rejects the transaction or cannot be reached
        """
        if not transaction.is_fully_signed():
            unsigned = [i for i, inp in enumerate(transaction.inputs) if inp.signature is None]
            raise ValueError(f"Inputs {unsigned} are not signed")

        body = transaction.to_api_json()

        try:
            response = await self.client.post("/transactions", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Transaction submission failed: {e}")
            raise ApiError(f"Failed to reach {self.base_url}: {e}") from e

        if response.is_error:
            raise ApiError(f"API rejected transaction ({response.status_code}): {response.text}")

        data: dict[str, Any] = response.json()
        txid = data.get("transactionId")
        if not txid:
            raise ApiError(f"API reply has no transactionId: {data}")

        logger.info(f"Transaction submitted: {txid}")
        return str(txid)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> KaspaApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
