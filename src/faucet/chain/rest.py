"""Ledger client that reads transfer history from the node's REST API.

Submissions still go through the chain binary, which holds the keyring.
History queries use GET /cosmos/tx/v1beta1/txs, which avoids spawning a
process per page.
"""

import logging
from typing import Optional

import httpx

from faucet.chain.base import TxPage
from faucet.chain.cli import ChainBinaryClient
from faucet.chain.txjson import parse_search_result
from faucet.errors import LedgerQueryError

logger = logging.getLogger(__name__)

TX_SEARCH_PATH = "/cosmos/tx/v1beta1/txs"


class RestChainClient(ChainBinaryClient):
    """Chain binary client with REST-backed history queries."""

    def __init__(
        self,
        rest_url: str,
        http_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ):
        """Initialize client.

        Args:
            rest_url: Node REST endpoint (e.g. https://api.constantine.archway.io)
            http_timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests)
            **kwargs: Passed to ChainBinaryClient
        """
        super().__init__(**kwargs)
        self.rest_url = rest_url.rstrip("/")
        self.http_timeout = http_timeout
        self._transport = transport

    def _search_params(self, sender: str, recipient: str, page: int, limit: int) -> list[tuple[str, str]]:
        params = [
            ("page", str(page)),
            ("limit", str(limit)),
            ("order_by", "ORDER_BY_ASC"),
        ]
        if self.query_syntax == "query":
            params.append(("query", f"message.sender='{sender}' AND transfer.recipient='{recipient}'"))
        else:
            params.append(("events", f"message.sender='{sender}'"))
            params.append(("events", f"transfer.recipient='{recipient}'"))
        return params

    async def query_transfers(
        self, sender: str, recipient: str, page: int, limit: int
    ) -> TxPage:
        try:
            async with httpx.AsyncClient(
                base_url=self.rest_url,
                timeout=self.http_timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(
                    TX_SEARCH_PATH, params=self._search_params(sender, recipient, page, limit)
                )
        except httpx.HTTPError as e:
            raise LedgerQueryError(f"transfer history request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Tx search API error: {response.status_code}")
            raise LedgerQueryError(
                f"transfer history request returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerQueryError(f"transfer history response is not JSON: {e}") from e

        return parse_search_result(data, page)
