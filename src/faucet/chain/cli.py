"""Ledger client backed by the chain binary (e.g. archwayd).

The binary owns the keyring and signing; the faucet only builds command
lines and reads their JSON output.

Transfer flow:
1. `tx bank send` broadcasts in sync mode and returns a txhash once the
   transaction passed CheckTx
2. `q tx <hash>` is polled until the transaction is indexed in a block
3. A non-zero result code at either step fails the submission
"""

import asyncio
import logging
import time
from typing import Optional

from faucet.chain.base import LedgerClient, SubmitResult, TxPage
from faucet.chain.txjson import load_json, load_json_object, parse_search_result
from faucet.coins import CoinSet
from faucet.errors import (
    ConfigError,
    FaucetError,
    LedgerQueryError,
    LedgerSubmitError,
)

logger = logging.getLogger(__name__)

EMPTY_KEYRING_MESSAGE = "No records were found in keyring"


class CommandError(FaucetError):
    """The chain binary exited non-zero, timed out or could not be started."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(message)


def _response_int(response: dict, key: str, txhash: Optional[str]) -> int:
    """Read an integer field of a tx response, 0 when absent.

    Raises:
        LedgerSubmitError: the field is present but not an integer
    """
    value = response.get(key)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        raise LedgerSubmitError(
            f"malformed {key} {value!r} in transaction response", txhash=txhash
        )


class ChainBinaryClient(LedgerClient):
    """Ledger client that shells out to the chain binary."""

    def __init__(
        self,
        binary: str,
        account_name: str,
        chain_id: str = "",
        node: str = "",
        home: str = "",
        keyring_backend: str = "test",
        gas_prices: str = "",
        gas_adjustment: str = "1.5",
        mnemonic: Optional[str] = None,
        command_timeout: float = 60.0,
        confirm_timeout: float = 30.0,
        confirm_interval: float = 1.0,
        query_syntax: str = "events",
    ):
        self.binary = binary
        self.account_name = account_name
        self.chain_id = chain_id
        self.node = node
        self.home = home
        self.keyring_backend = keyring_backend
        self.gas_prices = gas_prices
        self.gas_adjustment = gas_adjustment
        self.command_timeout = command_timeout
        self.confirm_timeout = confirm_timeout
        self.confirm_interval = confirm_interval
        self.query_syntax = query_syntax
        self._mnemonic = mnemonic
        self._address: Optional[str] = None

    @property
    def faucet_address(self) -> str:
        if not self._address:
            raise RuntimeError("faucet account not resolved; call prepare() first")
        return self._address

    # ======================
    # Process plumbing
    # ======================

    def _home_flags(self) -> list[str]:
        return ["--home", self.home] if self.home else []

    def _node_flags(self) -> list[str]:
        return ["--node", self.node] if self.node else []

    def _keyring_flags(self) -> list[str]:
        return ["--keyring-backend", self.keyring_backend, *self._home_flags()]

    async def _run(self, args: list[str], stdin: Optional[str] = None) -> str:
        """Run the chain binary and return its stdout.

        Raises:
            CommandError: binary missing, timeout, or non-zero exit
        """
        logger.debug(f"Running: {self.binary} {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CommandError(f"cannot execute {self.binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin.encode() if stdin is not None else None),
                timeout=self.command_timeout,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CommandError(
                f"{self.binary} {args[0]} timed out after {self.command_timeout}s"
            )

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace").strip()
        if proc.returncode != 0:
            raise CommandError(
                f"{self.binary} {' '.join(args[:3])} exited with {proc.returncode}: {err or out.strip()}",
                stderr=err,
            )
        return out

    # ======================
    # Account setup
    # ======================

    async def _find_key(self) -> Optional[str]:
        output = await self._run(["keys", "list", "--output", "json", *self._keyring_flags()])

        # Empty keyrings print a plain message and exit 0.
        if output.strip() == EMPTY_KEYRING_MESSAGE:
            return None

        keys = load_json(output, "key list")
        for key in keys or []:
            if isinstance(key, dict) and key.get("name") == self.account_name:
                return key.get("address")
        return None

    async def prepare(self) -> None:
        """Resolve the faucet address, recovering the key from the mnemonic if needed.

        Raises:
            ConfigError: key missing and no mnemonic configured, or recovery failed
        """
        try:
            address = await self._find_key()
            if address:
                logger.info(f"Using faucet account {self.account_name} ({address})")
            else:
                if not self._mnemonic:
                    raise ConfigError(
                        f"account {self.account_name} not found in keyring and no mnemonic configured"
                    )
                logger.info(f"Recovering faucet account {self.account_name} into keyring")
                output = await self._run(
                    ["keys", "add", self.account_name, "--recover", "--output", "json",
                     *self._keyring_flags()],
                    stdin=self._mnemonic + "\n",
                )
                address = load_json_object(output, "key").get("address")
                if not address:
                    raise ConfigError(f"key recovery for {self.account_name} returned no address")
                logger.info(f"Recovered faucet account {self.account_name} ({address})")
        except (CommandError, ValueError) as e:
            raise ConfigError(f"cannot prepare faucet account: {e}") from e

        self._address = address

    # ======================
    # History
    # ======================

    def _search_flags(self, sender: str, recipient: str) -> list[str]:
        if self.query_syntax == "query":
            return ["--query", f"message.sender='{sender}' AND transfer.recipient='{recipient}'"]
        return ["--events", f"message.sender={sender}&transfer.recipient={recipient}"]

    async def query_transfers(
        self, sender: str, recipient: str, page: int, limit: int
    ) -> TxPage:
        args = [
            "q", "txs", *self._search_flags(sender, recipient),
            "--page", str(page), "--limit", str(limit),
            "--output", "json", *self._node_flags(),
        ]
        try:
            data = load_json_object(await self._run(args), "tx search")
        except (CommandError, ValueError) as e:
            raise LedgerQueryError(f"transfer history query failed: {e}") from e
        return parse_search_result(data, page)

    # ======================
    # Submission
    # ======================

    async def send(self, recipient: str, coins: CoinSet) -> SubmitResult:
        args = [
            "tx", "bank", "send", self.account_name, recipient, str(coins),
            "--gas", "auto", "--gas-adjustment", self.gas_adjustment,
            "--broadcast-mode", "sync", "--yes", "--output", "json",
            *self._keyring_flags(), *self._node_flags(),
        ]
        if self.chain_id:
            args += ["--chain-id", self.chain_id]
        if self.gas_prices:
            args += ["--gas-prices", self.gas_prices]

        try:
            response = load_json_object(await self._run(args), "broadcast result")
        except (CommandError, ValueError) as e:
            raise LedgerSubmitError(f"transfer broadcast failed: {e}") from e

        txhash = response.get("txhash")
        code = _response_int(response, "code", txhash)
        if code != 0:
            raise LedgerSubmitError(
                f"transfer rejected with code {code}: {response.get('raw_log', '')}",
                txhash=txhash,
            )
        if not txhash:
            raise LedgerSubmitError("broadcast result carried no txhash")

        logger.info(f"Broadcast {coins} to {recipient}: {txhash}")
        return await self._wait_for_inclusion(txhash)

    async def _wait_for_inclusion(self, txhash: str) -> SubmitResult:
        deadline = time.monotonic() + self.confirm_timeout
        last_error = ""

        while True:
            try:
                output = await self._run(["q", "tx", txhash, "--output", "json", *self._node_flags()])
                response = load_json_object(output, "tx")
            except (CommandError, ValueError) as e:
                # Not indexed yet
                last_error = str(e)
            else:
                code = _response_int(response, "code", txhash)
                if code != 0:
                    raise LedgerSubmitError(
                        f"transfer {txhash} failed with code {code}: {response.get('raw_log', '')}",
                        txhash=txhash,
                    )
                return SubmitResult(
                    txhash=txhash,
                    height=_response_int(response, "height", txhash) or None,
                    gas_used=_response_int(response, "gas_used", txhash) or None,
                    raw=response,
                )

            if time.monotonic() >= deadline:
                raise LedgerSubmitError(
                    f"transfer {txhash} not confirmed within {self.confirm_timeout}s: {last_error}",
                    txhash=txhash,
                )
            await asyncio.sleep(self.confirm_interval)
