"""Decoding of Cosmos SDK transaction JSON.

Handles both shapes the faucet sees:
- CLI `q txs` output: {"total_count": "2", "txs": [...]}
- REST /cosmos/tx/v1beta1/txs: {"tx_responses": [...], "total": "2", "pagination": {...}}

Older SDKs group message events under "logs"; newer ones only fill the
top-level "events" list.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from faucet.chain.base import LedgerEvent, LedgerTransaction, TxPage
from faucet.errors import LedgerQueryError

logger = logging.getLogger(__name__)


def load_json(output: str, what: str = "command output") -> Any:
    """Parse JSON from chain binary output.

    Some SDK versions print a "gas estimate: N" line ahead of the JSON body,
    so everything before the first brace is skipped.
    """
    text = output.strip()
    if not text:
        raise ValueError(f"empty {what}")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        start = min((i for i in (text.find("{"), text.find("[")) if i >= 0), default=-1)
        if start <= 0:
            raise ValueError(f"{what} is not JSON: {text[:200]!r}")
        return json.loads(text[start:])


def _parse_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise LedgerQueryError(f"malformed {name} in ledger response: {value!r}")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable tx timestamp: {value!r}")
        return None


def _parse_events(raw_events: Any) -> list[LedgerEvent]:
    if not isinstance(raw_events, list):
        raise LedgerQueryError("malformed events list in ledger response")

    events = []
    for raw in raw_events:
        if not isinstance(raw, dict) or "type" not in raw:
            raise LedgerQueryError("malformed event in ledger response")
        attributes = []
        for attr in raw.get("attributes") or []:
            if not isinstance(attr, dict):
                raise LedgerQueryError("malformed event attribute in ledger response")
            attributes.append((str(attr.get("key", "")), str(attr.get("value", ""))))
        events.append(LedgerEvent(type=raw["type"], attributes=tuple(attributes)))
    return events


def parse_tx_response(raw: Any) -> LedgerTransaction:
    """Decode a single TxResponse object."""
    if not isinstance(raw, dict):
        raise LedgerQueryError("malformed transaction in ledger response")

    events: list[LedgerEvent] = []
    for log in raw.get("logs") or []:
        if not isinstance(log, dict):
            raise LedgerQueryError("malformed log entry in ledger response")
        events.extend(_parse_events(log.get("events") or []))
    if not events:
        events = _parse_events(raw.get("events") or [])

    height = raw.get("height")
    return LedgerTransaction(
        txhash=str(raw.get("txhash", "")),
        events=tuple(events),
        height=_parse_int(height, "height") if height not in (None, "") else None,
        timestamp=_parse_timestamp(raw.get("timestamp")),
    )


def parse_search_result(data: Any, page: int) -> TxPage:
    """Decode a tx search result from either the CLI or the REST API."""
    if not isinstance(data, dict):
        raise LedgerQueryError("tx search returned a non-object response")

    if "txs" in data and "tx_responses" not in data:
        raw_txs = data.get("txs") or []
        total = data.get("total_count")
    else:
        raw_txs = data.get("tx_responses") or []
        total = data.get("total")
        if total in (None, ""):
            total = (data.get("pagination") or {}).get("total")

    if not isinstance(raw_txs, list):
        raise LedgerQueryError("tx search returned a malformed transaction list")

    # A zero total next to a non-empty page means the node did not count.
    if total in (None, "") or (str(total) == "0" and raw_txs):
        parsed_total = None
    else:
        parsed_total = _parse_int(total, "total count")

    return TxPage(
        transactions=[parse_tx_response(tx) for tx in raw_txs],
        total=parsed_total,
        page=page,
    )


def load_json_object(output: str, what: str = "command output") -> dict:
    """Like load_json, but the document must be a JSON object."""
    data = load_json(output, what)
    if not isinstance(data, dict):
        raise ValueError(f"{what} is not a JSON object")
    return data
