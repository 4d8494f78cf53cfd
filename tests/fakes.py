"""In-memory stand-ins for the ledger, the actions and the delays."""
import asyncio
from collections import defaultdict
from dataclasses import dataclass

from ledger_sweep.credentials import Credential
from ledger_sweep.delays import Delays
from ledger_sweep.models import XRP_TOKEN, ActionResult, Route, Token
from ledger_sweep.constants import FailureKind


def credential(address: str, index: int = 0) -> Credential:
    return Credential(wallet=None, address=address, index=index)


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        await asyncio.sleep(0)


class RecordingDelays(Delays):
    """Zero-length waits that remember what was asked for.

    ``stop_after`` sets the stop event once that many waits have happened.
    """

    def __init__(self, *, short=1.0, long=2.0, stop_after: int | None = None, **kwargs):
        super().__init__(**kwargs)
        self.short_value = short
        self.long_value = long
        self.stop_after = stop_after
        self.waits: list[float] = []

    def short(self) -> float:
        return self.short_value

    def long(self, window=None) -> float:
        return self.long_value

    async def wait(self, seconds: float) -> bool:
        if self.stop.is_set():
            return True
        self.waits.append(seconds)
        if self.stop_after is not None and len(self.waits) >= self.stop_after:
            self.stop.set()
        await asyncio.sleep(0)
        return self.stop.is_set()


class FakeBalances:
    def __init__(self, balances: dict[str, int] | None = None, default: int = 1_000_000, errors=None):
        self.balances = balances or {}
        self.default = default
        # address -> list of exceptions raised by successive calls
        self.errors = defaultdict(list, errors or {})
        self.calls: list[tuple[str, str]] = []

    async def balance(self, address: str, token: Token) -> int:
        self.calls.append((address, token.symbol))
        if self.errors[address]:
            raise self.errors[address].pop(0)
        return self.balances.get(address, self.default)


class FakeAction:
    """Records every execution; ``failures`` maps (address, cycle) to an error."""

    def __init__(self, name="fake", failures=None, raises=None, route: Route | None = None):
        self.name = name
        self.failures = failures or {}
        self.raises = raises or {}
        self.route = route or Route(spend=XRP_TOKEN)
        self.calls: list[tuple[str, int]] = []
        self._count = defaultdict(int)

    def select_route(self) -> Route:
        return self.route

    async def execute(self, credential, amount, route=None) -> ActionResult:
        self._count[credential.address] += 1
        cycle = self._count[credential.address]
        self.calls.append((credential.address, amount))
        key = (credential.address, cycle)
        if key in self.raises:
            raise self.raises[key]
        if key in self.failures:
            return ActionResult.failed(self.name, self.failures[key], FailureKind.TERMINAL)
        return ActionResult.ok([f"{credential.address}-{cycle}"])


@dataclass
class FakeSigned:
    tx: object
    last_ledger_sequence: int = 100


class FakeLedger:
    """Action-facing ledger double.

    ``fail`` maps a method name (prepare, submit, confirm, lp_token, balance)
    to a list of exceptions raised by its successive calls.
    """

    def __init__(self, *, lp_balance: int = 1_000_000, fail=None):
        self.lp_balance = lp_balance
        self.fail = defaultdict(list, fail or {})
        self.prepared = []
        self.submitted = []
        self.confirmed = []
        self.calls = defaultdict(int)
        self._n = 0

    def _maybe_fail(self, method: str):
        self.calls[method] += 1
        if self.fail[method]:
            raise self.fail[method].pop(0)

    async def prepare(self, tx, wallet):
        self._maybe_fail("prepare")
        self.prepared.append(tx)
        return FakeSigned(tx)

    async def submit(self, signed):
        self._maybe_fail("submit")
        self._n += 1
        tx_hash = f"HASH{self._n}"
        self.submitted.append((tx_hash, signed.tx))
        return tx_hash

    async def confirm(self, tx_hash, last_ledger_sequence=None):
        self._maybe_fail("confirm")
        self.confirmed.append(tx_hash)
        return {"validated": True}

    async def lp_token(self, pool, decimals=6):
        self._maybe_fail("lp_token")
        return Token(symbol=f"LP:{pool}", currency="03930D02208264E2E40EC1B0C09E4DB96EE197B1", issuer="rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh", decimals=decimals)

    async def balance(self, address, token):
        self._maybe_fail("balance")
        return self.lp_balance
