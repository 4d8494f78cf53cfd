"""Remote ledger calls used by the actions and the cycle runner.

Each public coroutine is a single remote call (or a single bounded polling
wait) so the retry policy can wrap them one at a time. Signing happens once in
``prepare``; ``submit`` sends the same signed blob on every attempt, which
makes resubmission safe.
"""
import asyncio
import logging
import time
from typing import Any

from xrpl.asyncio.clients import AsyncJsonRpcClient
from xrpl.asyncio.ledger import get_latest_validated_ledger_sequence
from xrpl.asyncio.transaction import autofill_and_sign, submit
from xrpl.models import Transaction
from xrpl.models.requests import AccountInfo, AccountLines, AMMInfo, Tx
from xrpl.wallet import Wallet

import ledger_sweep.constants as C
from ledger_sweep.errors import (
    ConfirmationPending,
    LedgerError,
    RequestFailed,
    ServerUnavailable,
    TransactionExpired,
    TransactionRejected,
)
from ledger_sweep.models import Pool, Token

log = logging.getLogger("ledger_sweep.ledger")

# Results that mean the blob already reached the ledger on an earlier attempt.
ALREADY_APPLIED = frozenset({"tefPAST_SEQ", "tefALREADY"})
# Local results caused by server load rather than by the transaction itself.
LOAD_RESULTS = frozenset({"telINSUF_FEE_P", "telCAN_NOT_QUEUE", "telCAN_NOT_QUEUE_FULL", "telCAN_NOT_QUEUE_BALANCE"})


def request_error(result: dict) -> LedgerError:
    error = result.get("error")
    message = result.get("error_message") or result.get("error_exception")
    if error in C.TRANSIENT_RPC_ERRORS or (isinstance(error, int) and error >= 500):
        return ServerUnavailable(error, message)
    return RequestFailed(error, message)


class LedgerClient:
    def __init__(
        self,
        client: AsyncJsonRpcClient,
        *,
        rpc_timeout: float = C.RPC_TIMEOUT,
        confirm_timeout: float = C.CONFIRM_TIMEOUT,
        poll_interval: float = C.POLL_INTERVAL,
        explorer_url: str | None = None,
    ):
        self.client = client
        self.rpc_timeout = rpc_timeout
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self.explorer_url = explorer_url

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "LedgerClient":
        return cls(AsyncJsonRpcClient(url), **kwargs)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}{tx_hash}" if self.explorer_url else tx_hash

    async def _rpc(self, req, *, t: float | None = None) -> dict[str, Any]:
        resp = await asyncio.wait_for(self.client.request(req), timeout=t or self.rpc_timeout)
        if not resp.is_successful():
            raise request_error(resp.result)
        return resp.result

    async def balance(self, address: str, token: Token) -> int:
        """Validated balance of ``token`` held by ``address``, in smallest units."""
        if token.native:
            r = await self._rpc(AccountInfo(account=address, ledger_index="validated"))
            return int(r["account_data"]["Balance"])

        r = await self._rpc(AccountLines(account=address, peer=token.issuer, ledger_index="validated"))
        for line in r.get("lines", []):
            if line.get("currency") == token.currency and line.get("account") == token.issuer:
                return max(token.to_units(line["balance"]), 0)
        return 0

    async def lp_token(self, pool: Pool, decimals: int = C.XRP_DECIMALS) -> Token:
        """The LP token issued by ``pool``."""
        r = await self._rpc(AMMInfo(asset=pool.asset.to_currency(), asset2=pool.asset2.to_currency()))
        lp = r["amm"]["lp_token"]
        return Token(symbol=f"LP:{pool}", currency=lp["currency"], issuer=lp["issuer"], decimals=decimals)

    async def prepare(self, tx: Transaction, wallet: Wallet) -> Transaction:
        """Autofill sequence, fee and LastLedgerSequence, then sign."""
        return await asyncio.wait_for(autofill_and_sign(tx, self.client, wallet), timeout=self.rpc_timeout)

    async def submit(self, signed: Transaction) -> str:
        """Submit a signed transaction and return its hash."""
        tx_hash = signed.get_hash()
        resp = await asyncio.wait_for(submit(signed, self.client), timeout=self.rpc_timeout)
        er = resp.result.get("engine_result", "")
        msg = resp.result.get("engine_result_message")

        if er in ALREADY_APPLIED:
            log.debug("%s already applied (%s), awaiting validation", tx_hash, er)
        elif er in LOAD_RESULTS:
            raise ServerUnavailable(er, msg)
        elif er.startswith(("tem", "tef", "tel")):
            raise TransactionRejected(tx_hash, er, msg)
        log.info("Transaction sent: %s (%s)", self.tx_url(tx_hash), er)
        return tx_hash

    async def confirm(self, tx_hash: str, last_ledger_sequence: int | None = None) -> dict[str, Any]:
        """Poll until ``tx_hash`` is validated.

        Raises:
            TransactionRejected: validated with a non-tesSUCCESS result.
            TransactionExpired: the network is past LastLedgerSequence without it.
            ConfirmationPending: still unknown when the polling window ends.
        """
        started = time.monotonic()
        try:
            async with asyncio.timeout(self.confirm_timeout):
                while True:
                    resp = await asyncio.wait_for(self.client.request(Tx(transaction=tx_hash)), timeout=self.rpc_timeout)
                    result = resp.result
                    if resp.is_successful() and result.get("validated"):
                        meta_result = result.get("meta", {}).get("TransactionResult")
                        if meta_result != "tesSUCCESS":
                            raise TransactionRejected(tx_hash, str(meta_result))
                        log.info("Transaction validated in ledger %s: %s", result.get("ledger_index"), self.tx_url(tx_hash))
                        return result
                    if not resp.is_successful() and result.get("error") != "txnNotFound":
                        raise request_error(result)

                    if last_ledger_sequence is not None:
                        latest = await get_latest_validated_ledger_sequence(self.client)
                        if latest > last_ledger_sequence:
                            raise TransactionExpired(tx_hash, last_ledger_sequence)
                    await asyncio.sleep(self.poll_interval)
        except TimeoutError:
            raise ConfirmationPending(tx_hash, time.monotonic() - started) from None
