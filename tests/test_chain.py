"""Tests for ledger clients and transaction JSON decoding."""

import json
import shutil
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from faucet.chain.cli import EMPTY_KEYRING_MESSAGE, ChainBinaryClient, CommandError
from faucet.chain.rest import TX_SEARCH_PATH, RestChainClient
from faucet.chain.txjson import load_json, parse_search_result, parse_tx_response
from faucet.coins import CoinSet
from faucet.errors import ConfigError, LedgerQueryError, LedgerSubmitError
from faucet.quota.store import QuotaStore, transferred_in

FAUCET = "archway1qqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqfaucet"
DEST = "archway1destqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqq"


def attr(key: str, value: str) -> dict:
    return {"key": key, "value": value, "index": True}


def tx_json(txhash: str, amount: str, recipient: str = DEST, in_logs: bool = False) -> dict:
    events = [
        {"type": "transfer", "attributes": [
            attr("recipient", "archway17xpfvakm2amg962yls6f84z3kell8c5l48s3ed"),
            attr("sender", FAUCET),
            attr("amount", "5000uarch"),
        ]},
        {"type": "message", "attributes": [attr("sender", FAUCET)]},
        {"type": "transfer", "attributes": [
            attr("recipient", recipient),
            attr("sender", FAUCET),
            attr("amount", amount),
        ]},
    ]
    raw = {"txhash": txhash, "height": "12345", "code": 0, "timestamp": "2024-05-01T10:00:00Z"}
    if in_logs:
        raw["logs"] = [{"msg_index": 0, "events": events}]
        raw["events"] = []
    else:
        raw["logs"] = []
        raw["events"] = events
    return raw


def cli_client(**kwargs) -> ChainBinaryClient:
    params = dict(binary="archwayd", account_name="faucet-account", chain_id="constantine-3")
    params.update(kwargs)
    client = ChainBinaryClient(**params)
    client._address = FAUCET
    return client


class TestTxJson:
    """Tests for decoding tx search output."""

    def test_load_json_skips_gas_estimate_prefix(self):
        assert load_json('gas estimate: 81234\n{"txhash": "AB"}') == {"txhash": "AB"}

    def test_load_json_rejects_plain_text(self):
        with pytest.raises(ValueError):
            load_json("Error: rpc error")

    def test_events_read_from_logs(self):
        tx = parse_tx_response(tx_json("AA", "10uarch", in_logs=True))

        assert tx.txhash == "AA"
        assert tx.height == 12345
        assert [e.type for e in tx.events] == ["transfer", "message", "transfer"]

    def test_events_read_from_top_level(self):
        tx = parse_tx_response(tx_json("BB", "10uarch"))

        assert len(tx.events) == 3
        assert tx.events[2].get("amount") == "10uarch"
        assert tx.timestamp is not None

    def test_merged_log_transfer_event_counted_per_recipient(self):
        """SDK 0.45 logs fold all transfers of a message into one event."""
        other = "archway1zzqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqq"
        raw = {
            "txhash": "CC",
            "height": "10",
            "logs": [{"msg_index": 0, "events": [
                {"type": "message", "attributes": [attr("sender", FAUCET)]},
                {"type": "transfer", "attributes": [
                    attr("recipient", other), attr("sender", FAUCET), attr("amount", "5uarch"),
                    attr("recipient", DEST), attr("sender", FAUCET), attr("amount", "9000000uarch"),
                ]},
            ]}],
        }

        tx = parse_tx_response(raw)

        assert transferred_in(tx, FAUCET, DEST) == CoinSet({"uarch": 9000000})
        assert transferred_in(tx, FAUCET, other) == CoinSet({"uarch": 5})

    def test_cli_search_shape(self):
        data = {"total_count": "2", "count": "2", "page_number": "1", "txs": [
            tx_json("AA", "1uarch"), tx_json("BB", "2uarch"),
        ]}

        page = parse_search_result(data, 1)

        assert page.total == 2
        assert [tx.txhash for tx in page.transactions] == ["AA", "BB"]

    def test_rest_search_shape(self):
        data = {"txs": [{}], "tx_responses": [tx_json("AA", "1uarch")], "pagination": None, "total": "7"}

        page = parse_search_result(data, 3)

        assert page.total == 7
        assert page.page == 3
        assert len(page.transactions) == 1

    def test_rest_total_from_pagination(self):
        data = {"tx_responses": [], "pagination": {"next_key": None, "total": "0"}}

        page = parse_search_result(data, 1)

        assert page.total == 0
        assert page.transactions == []

    def test_zero_total_with_results_is_unknown(self):
        data = {"tx_responses": [tx_json("AA", "1uarch")], "total": "0"}

        assert parse_search_result(data, 1).total is None

    @pytest.mark.parametrize(
        "data",
        [
            [],
            {"txs": "nope", "total_count": "1"},
            {"txs": [{"txhash": "AA", "events": [{"attributes": []}]}], "total_count": "1"},
            {"txs": [], "total_count": "many"},
        ],
    )
    def test_malformed_results_raise(self, data):
        with pytest.raises(LedgerQueryError):
            parse_search_result(data, 1)


class TestChainBinaryClientAccount:
    """Tests for faucet account resolution."""

    @pytest.mark.asyncio
    async def test_existing_key_resolved(self):
        client = ChainBinaryClient(binary="archwayd", account_name="faucet-account")
        keys = [{"name": "other", "address": DEST}, {"name": "faucet-account", "address": FAUCET}]

        with patch.object(client, "_run", AsyncMock(return_value=json.dumps(keys))) as run:
            await client.prepare()

        assert client.faucet_address == FAUCET
        assert run.await_args.args[0][:2] == ["keys", "list"]

    @pytest.mark.asyncio
    async def test_key_recovered_from_mnemonic(self):
        client = ChainBinaryClient(binary="archwayd", account_name="faucet-account", mnemonic="word " * 23 + "word")
        run = AsyncMock(side_effect=[
            EMPTY_KEYRING_MESSAGE + "\n",
            json.dumps({"name": "faucet-account", "address": FAUCET}),
        ])

        with patch.object(client, "_run", run):
            await client.prepare()

        assert client.faucet_address == FAUCET
        recover_call = run.await_args_list[1]
        assert "--recover" in recover_call.args[0]
        # Mnemonic goes over stdin, never argv
        assert recover_call.kwargs["stdin"].startswith("word ")
        assert not any("word" in arg for arg in recover_call.args[0])

    @pytest.mark.asyncio
    async def test_missing_key_without_mnemonic_is_config_error(self):
        client = ChainBinaryClient(binary="archwayd", account_name="faucet-account")

        with patch.object(client, "_run", AsyncMock(return_value="[]")):
            with pytest.raises(ConfigError, match="not found in keyring"):
                await client.prepare()

    @pytest.mark.asyncio
    async def test_binary_failure_is_config_error(self):
        client = ChainBinaryClient(binary="archwayd", account_name="faucet-account")

        with patch.object(client, "_run", AsyncMock(side_effect=CommandError("not found"))):
            with pytest.raises(ConfigError):
                await client.prepare()

    def test_address_unavailable_before_prepare(self):
        client = ChainBinaryClient(binary="archwayd", account_name="faucet-account")

        with pytest.raises(RuntimeError):
            client.faucet_address


class TestChainBinaryClientQuery:
    """Tests for history queries via the binary."""

    @pytest.mark.asyncio
    async def test_query_builds_event_filter(self):
        client = cli_client(node="https://rpc.example:443")
        output = json.dumps({"total_count": "1", "txs": [tx_json("AA", "10uarch")]})

        with patch.object(client, "_run", AsyncMock(return_value=output)) as run:
            page = await client.query_transfers(FAUCET, DEST, 2, 50)

        args = run.await_args.args[0]
        assert args[:2] == ["q", "txs"]
        assert f"message.sender={FAUCET}&transfer.recipient={DEST}" in args
        assert args[args.index("--page") + 1] == "2"
        assert args[args.index("--limit") + 1] == "50"
        assert args[args.index("--node") + 1] == "https://rpc.example:443"
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_query_syntax(self):
        client = cli_client(query_syntax="query")

        with patch.object(client, "_run", AsyncMock(return_value='{"total_count": "0", "txs": []}')) as run:
            await client.query_transfers(FAUCET, DEST, 1, 100)

        args = run.await_args.args[0]
        assert args[args.index("--query") + 1] == (
            f"message.sender='{FAUCET}' AND transfer.recipient='{DEST}'"
        )

    @pytest.mark.asyncio
    async def test_command_failure_is_query_error(self):
        client = cli_client()

        with patch.object(client, "_run", AsyncMock(side_effect=CommandError("connection refused"))):
            with pytest.raises(LedgerQueryError):
                await client.query_transfers(FAUCET, DEST, 1, 100)

    @pytest.mark.asyncio
    async def test_store_pages_through_cli_results(self):
        client = cli_client()
        pages = [
            json.dumps({"total_count": "3", "txs": [tx_json("AA", "1uarch"), tx_json("BB", "2uarch")]}),
            json.dumps({"total_count": "3", "txs": [tx_json("CC", "4uarch")]}),
        ]

        with patch.object(client, "_run", AsyncMock(side_effect=pages)):
            total = await QuotaStore(client, page_size=2).total_transferred(DEST)

        assert total == CoinSet({"uarch": 7})


class TestChainBinaryClientSend:
    """Tests for bank send and inclusion polling."""

    @pytest.mark.asyncio
    async def test_send_waits_for_inclusion(self):
        client = cli_client(gas_prices="900000000000aarch", confirm_interval=0)
        run = AsyncMock(side_effect=[
            json.dumps({"code": 0, "txhash": "HASH1", "raw_log": "[]"}),
            CommandError("tx (HASH1) not found"),
            json.dumps({"code": 0, "txhash": "HASH1", "height": "777", "gas_used": "81000"}),
        ])

        with patch.object(client, "_run", run):
            result = await client.send(DEST, CoinSet.parse("10uarch,5ustake"))

        assert result.txhash == "HASH1"
        assert result.height == 777
        assert result.gas_used == 81000
        send_args = run.await_args_list[0].args[0]
        assert send_args[:6] == ["tx", "bank", "send", "faucet-account", DEST, "10uarch,5ustake"]
        assert send_args[send_args.index("--broadcast-mode") + 1] == "sync"
        assert send_args[send_args.index("--chain-id") + 1] == "constantine-3"
        assert send_args[send_args.index("--gas-prices") + 1] == "900000000000aarch"
        assert run.await_args_list[2].args[0][:3] == ["q", "tx", "HASH1"]

    @pytest.mark.asyncio
    async def test_checktx_failure_raises_with_hash(self):
        client = cli_client()
        response = json.dumps({"code": 5, "txhash": "HASH2", "raw_log": "insufficient funds"})

        with patch.object(client, "_run", AsyncMock(return_value=response)):
            with pytest.raises(LedgerSubmitError, match="insufficient funds") as exc_info:
                await client.send(DEST, CoinSet.parse("10uarch"))

        assert exc_info.value.txhash == "HASH2"

    @pytest.mark.asyncio
    async def test_deliver_failure_raises(self):
        client = cli_client(confirm_interval=0)
        run = AsyncMock(side_effect=[
            json.dumps({"code": 0, "txhash": "HASH3"}),
            json.dumps({"code": 11, "txhash": "HASH3", "raw_log": "out of gas"}),
        ])

        with patch.object(client, "_run", run):
            with pytest.raises(LedgerSubmitError, match="out of gas"):
                await client.send(DEST, CoinSet.parse("10uarch"))

    @pytest.mark.asyncio
    async def test_unconfirmed_transfer_raises_after_deadline(self):
        client = cli_client(confirm_timeout=0, confirm_interval=0)

        async def fake_run(args, stdin=None):
            if args[:2] == ["tx", "bank"]:
                return json.dumps({"code": 0, "txhash": "HASH4"})
            raise CommandError("tx not found")

        with patch.object(client, "_run", side_effect=fake_run):
            with pytest.raises(LedgerSubmitError, match="not confirmed") as exc_info:
                await client.send(DEST, CoinSet.parse("10uarch"))

        assert exc_info.value.txhash == "HASH4"

    @pytest.mark.asyncio
    async def test_broadcast_command_failure(self):
        client = cli_client()

        with patch.object(client, "_run", AsyncMock(side_effect=CommandError("rpc error"))):
            with pytest.raises(LedgerSubmitError) as exc_info:
                await client.send(DEST, CoinSet.parse("10uarch"))

        assert exc_info.value.txhash is None

    @pytest.mark.asyncio
    async def test_non_numeric_broadcast_code_is_submit_error(self):
        client = cli_client()
        response = json.dumps({"code": "unknown", "txhash": "HASH5"})

        with patch.object(client, "_run", AsyncMock(return_value=response)):
            with pytest.raises(LedgerSubmitError, match="malformed code") as exc_info:
                await client.send(DEST, CoinSet.parse("10uarch"))

        assert exc_info.value.txhash == "HASH5"

    @pytest.mark.asyncio
    async def test_non_numeric_inclusion_fields_are_submit_errors(self):
        client = cli_client(confirm_interval=0)
        run = AsyncMock(side_effect=[
            json.dumps({"code": 0, "txhash": "HASH6"}),
            json.dumps({"code": 0, "txhash": "HASH6", "height": "tip"}),
        ])

        with patch.object(client, "_run", run):
            with pytest.raises(LedgerSubmitError, match="malformed height") as exc_info:
                await client.send(DEST, CoinSet.parse("10uarch"))

        assert exc_info.value.txhash == "HASH6"


@pytest.mark.skipif(shutil.which("echo") is None or shutil.which("false") is None, reason="needs coreutils")
class TestRunCommand:
    """Tests for the subprocess plumbing."""

    @pytest.mark.asyncio
    async def test_stdout_returned(self):
        client = ChainBinaryClient(binary="echo", account_name="x")

        assert (await client._run(["hello"])).strip() == "hello"

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self):
        client = ChainBinaryClient(binary="false", account_name="x")

        with pytest.raises(CommandError, match="exited with 1"):
            await client._run(["q", "txs"])

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self):
        client = ChainBinaryClient(binary="definitely-not-a-chain-binary", account_name="x")

        with pytest.raises(CommandError, match="cannot execute"):
            await client._run(["version"])


class TestRestChainClient:
    """Tests for REST history queries."""

    def make_client(self, handler) -> RestChainClient:
        client = RestChainClient(
            rest_url="https://api.example/",
            transport=httpx.MockTransport(handler),
            binary="archwayd",
            account_name="faucet-account",
        )
        client._address = FAUCET
        return client

    @pytest.mark.asyncio
    async def test_query_params(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"tx_responses": [tx_json("AA", "3uarch")], "total": "1"})

        client = self.make_client(handler)
        page = await client.query_transfers(FAUCET, DEST, 1, 100)

        assert page.total == 1
        request = seen[0]
        assert request.url.path == TX_SEARCH_PATH
        assert request.url.params.get_list("events") == [
            f"message.sender='{FAUCET}'",
            f"transfer.recipient='{DEST}'",
        ]
        assert request.url.params["page"] == "1"
        assert request.url.params["limit"] == "100"

    @pytest.mark.asyncio
    async def test_http_error_status_is_query_error(self):
        client = self.make_client(lambda request: httpx.Response(500, text="internal"))

        with pytest.raises(LedgerQueryError, match="HTTP 500"):
            await client.query_transfers(FAUCET, DEST, 1, 100)

    @pytest.mark.asyncio
    async def test_non_json_body_is_query_error(self):
        client = self.make_client(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(LedgerQueryError):
            await client.query_transfers(FAUCET, DEST, 1, 100)

    @pytest.mark.asyncio
    async def test_transport_error_is_query_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(handler)

        with pytest.raises(LedgerQueryError):
            await client.query_transfers(FAUCET, DEST, 1, 100)

    @pytest.mark.asyncio
    async def test_store_totals_over_rest_pages(self):
        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page"])
            txs = {1: [tx_json("AA", "5uarch"), tx_json("BB", "5uarch")], 2: [tx_json("CC", "1ustake")]}
            return httpx.Response(200, json={"tx_responses": txs.get(page, []), "total": "3"})

        client = self.make_client(handler)
        total = await QuotaStore(client, page_size=2).total_transferred(DEST)

        assert total == CoinSet({"uarch": 10, "ustake": 1})
