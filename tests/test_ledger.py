"""Remote ledger calls against a scripted JSON-RPC client."""
from unittest import IsolatedAsyncioTestCase, TestCase

from xrpl.models.response import Response, ResponseStatus
from xrpl.models.transactions import Payment
from xrpl.transaction import sign
from xrpl.wallet import Wallet

from ledger_sweep.errors import (
    ConfirmationPending,
    RequestFailed,
    ServerUnavailable,
    TransactionExpired,
    TransactionRejected,
)
from ledger_sweep.ledger import LedgerClient, request_error
from ledger_sweep.models import XRP_TOKEN, Pool, Token

ISSUER = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"
A = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
USD = Token(symbol="USD", currency="USD", issuer=ISSUER)


def ok(result: dict) -> Response:
    return Response(status=ResponseStatus.SUCCESS, result=result)


def err(error: str, **extra) -> Response:
    return Response(status=ResponseStatus.ERROR, result={"error": error, **extra})


class ScriptedClient:
    """Answers by request class name; a list is consumed one response per call."""

    def __init__(self, **responses):
        self.responses = responses
        self.requests = []

    async def request(self, req):
        return await self._request_impl(req)

    async def _request_impl(self, req):
        self.requests.append(req)
        answer = self.responses[type(req).__name__]
        if isinstance(answer, list):
            return answer.pop(0) if len(answer) > 1 else answer[0]
        return answer


def ledger_for(client, **kwargs) -> LedgerClient:
    kwargs.setdefault("confirm_timeout", 1.0)
    kwargs.setdefault("poll_interval", 0)
    return LedgerClient(client, **kwargs)


class TestRequestError(TestCase):
    def test_classification(self):
        self.assertIsInstance(request_error({"error": "tooBusy"}), ServerUnavailable)
        self.assertIsInstance(request_error({"error": 503}), ServerUnavailable)
        self.assertIsInstance(request_error({"error": "actNotFound"}), RequestFailed)
        self.assertIsInstance(request_error({"error": "amendmentBlocked"}), RequestFailed)


class TestBalances(IsolatedAsyncioTestCase):
    async def test_xrp_balance(self):
        client = ScriptedClient(AccountInfo=ok({"account_data": {"Balance": "25000000"}}))
        self.assertEqual(await ledger_for(client).balance(A, XRP_TOKEN), 25_000_000)

    async def test_trust_line_balance(self):
        lines = {"lines": [
            {"account": "r9cZA1mLK5R5Am25ArfXFmqgNwjZgnfk59", "currency": "USD", "balance": "99"},
            {"account": ISSUER, "currency": "EUR", "balance": "5"},
            {"account": ISSUER, "currency": "USD", "balance": "12.5"},
        ]}
        client = ScriptedClient(AccountLines=ok(lines))
        self.assertEqual(await ledger_for(client).balance(A, USD), 12_500_000)
        self.assertEqual(client.requests[0].peer, ISSUER)

    async def test_no_trust_line_is_zero(self):
        client = ScriptedClient(AccountLines=ok({"lines": []}))
        self.assertEqual(await ledger_for(client).balance(A, USD), 0)

    async def test_unknown_account(self):
        client = ScriptedClient(AccountInfo=err("actNotFound"))
        with self.assertRaises(RequestFailed):
            await ledger_for(client).balance(A, XRP_TOKEN)

    async def test_busy_server(self):
        client = ScriptedClient(AccountInfo=err("tooBusy"))
        with self.assertRaises(ServerUnavailable):
            await ledger_for(client).balance(A, XRP_TOKEN)

    async def test_lp_token(self):
        lp = {"currency": "03930D02208264E2E40EC1B0C09E4DB96EE197B1", "issuer": "rLPLPLP", "value": "1000"}
        client = ScriptedClient(AMMInfo=ok({"amm": {"lp_token": lp}}))
        token = await ledger_for(client).lp_token(Pool(XRP_TOKEN, USD))
        self.assertEqual((token.currency, token.issuer), (lp["currency"], "rLPLPLP"))
        self.assertEqual(token.symbol, "LP:XRP/USD")


class TestSubmit(IsolatedAsyncioTestCase):
    def setUp(self):
        wallet = Wallet.create()
        tx = Payment(account=wallet.address, destination=A, amount="10", fee="12", sequence=1,
                     last_ledger_sequence=100)
        self.signed = sign(tx, wallet)

    async def submit(self, engine_result):
        client = ScriptedClient(SubmitOnly=ok({"engine_result": engine_result, "engine_result_message": "m"}))
        return await ledger_for(client).submit(self.signed)

    async def test_accepted(self):
        self.assertEqual(await self.submit("tesSUCCESS"), self.signed.get_hash())
        self.assertEqual(await self.submit("terQUEUED"), self.signed.get_hash())

    async def test_already_applied_counts_as_sent(self):
        self.assertEqual(await self.submit("tefPAST_SEQ"), self.signed.get_hash())

    async def test_rejected(self):
        for er in ("temBAD_AMOUNT", "tefBAD_AUTH", "telBAD_DOMAIN"):
            with self.assertRaises(TransactionRejected):
                await self.submit(er)

    async def test_server_load(self):
        with self.assertRaises(ServerUnavailable):
            await self.submit("telCAN_NOT_QUEUE")


class TestConfirm(IsolatedAsyncioTestCase):
    async def test_validated(self):
        client = ScriptedClient(Tx=[
            err("txnNotFound"),
            ok({"validated": False}),
            ok({"validated": True, "ledger_index": 90, "meta": {"TransactionResult": "tesSUCCESS"}}),
        ], Ledger=ok({"ledger_index": 88}))
        result = await ledger_for(client).confirm("ABC", 100)
        self.assertEqual(result["ledger_index"], 90)

    async def test_validated_failure(self):
        client = ScriptedClient(Tx=ok({"validated": True, "meta": {"TransactionResult": "tecUNFUNDED_PAYMENT"}}))
        with self.assertRaises(TransactionRejected) as cm:
            await ledger_for(client).confirm("ABC", 100)
        self.assertEqual(cm.exception.engine_result, "tecUNFUNDED_PAYMENT")

    async def test_expired(self):
        client = ScriptedClient(Tx=err("txnNotFound"), Ledger=ok({"ledger_index": 101}))
        with self.assertRaises(TransactionExpired):
            await ledger_for(client).confirm("ABC", 100)

    async def test_still_pending(self):
        client = ScriptedClient(Tx=err("txnNotFound"), Ledger=ok({"ledger_index": 50}))
        with self.assertRaises(ConfirmationPending):
            await ledger_for(client, confirm_timeout=0.05, poll_interval=0.01).confirm("ABC", 100)

    async def test_rpc_error(self):
        client = ScriptedClient(Tx=err("invalidParams"))
        with self.assertRaises(RequestFailed):
            await ledger_for(client).confirm("ABC")
