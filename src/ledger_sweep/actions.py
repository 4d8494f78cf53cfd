"""Protocol operations performed once per cycle.

Every action is a short chain of steps. Each step builds one transaction which
is signed, submitted and confirmed, every one of those remote calls going
through the retry policy. A failed step ends the chain; the remaining steps of
that cycle are skipped.
"""
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from xrpl.models import Transaction
from xrpl.models.transactions import (
    AMMDeposit,
    AMMDepositFlag,
    AMMWithdraw,
    AMMWithdrawFlag,
    OfferCreate,
    OfferCreateFlag,
    Payment,
)

from ledger_sweep.amounts import percent_of
from ledger_sweep.constants import FailureKind
from ledger_sweep.credentials import Credential
from ledger_sweep.delays import Delays
from ledger_sweep.errors import ConfigError
from ledger_sweep.ledger import LedgerClient
from ledger_sweep.models import XRP_TOKEN, ActionResult, Pool, Route, Token
from ledger_sweep.randoms import choice, sample
from ledger_sweep.retry import RetryPolicy, is_transient

log = logging.getLogger("ledger_sweep.actions")

# A step returns None when there is nothing to do (e.g. no LP tokens to withdraw).
BuildTxn = Callable[[Credential, int], Awaitable[Transaction | None]]


@dataclass(slots=True)
class Step:
    name: str
    build: BuildTxn


class Action(Protocol):
    name: str

    def select_route(self) -> Route: ...

    async def execute(self, credential: Credential, amount: int, route: Route | None = None) -> ActionResult: ...


class LedgerAction:
    """Runs ``steps(route)`` in order against the ledger."""

    name = "action"

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy, *, delays: Delays | None = None):
        self.ledger = ledger
        self.retry = retry
        self.delays = delays

    def select_route(self) -> Route:
        return Route(spend=XRP_TOKEN)

    def steps(self, route: Route) -> list[Step]:
        raise NotImplementedError

    async def execute(self, credential: Credential, amount: int, route: Route | None = None) -> ActionResult:
        route = route or self.select_route()
        hashes: list[str] = []
        for i, step in enumerate(self.steps(route)):
            if i and self.delays is not None:
                pause = self.delays.short()
                log.info("[%s] waiting %.0fs before %s", credential, pause, step.name)
                if await self.delays.wait(pause):
                    return ActionResult.failed(step.name, RuntimeError("stopped"), FailureKind.TERMINAL, hashes)
            try:
                tx = await step.build(credential, amount)
                if tx is None:
                    log.info("[%s] nothing to do for %s, skipping", credential, step.name)
                    continue
                signed = await self.retry.call(lambda: self.ledger.prepare(tx, credential.wallet), f"{step.name} sign")
                tx_hash = await self.retry.call(lambda: self.ledger.submit(signed), f"{step.name} submit")
                await self.retry.call(
                    lambda: self.ledger.confirm(tx_hash, signed.last_ledger_sequence), f"{step.name} confirmation"
                )
            except Exception as e:
                kind = FailureKind.TRANSIENT if is_transient(e) else FailureKind.TERMINAL
                log.error("[%s] %s %s failed (%s): %s", credential, self.name, step.name, kind, e)
                return ActionResult.failed(step.name, e, kind, hashes)
            log.info("[%s] %s %s confirmed", credential, self.name, step.name)
            hashes.append(tx_hash)
        return ActionResult.ok(hashes)


class PaymentAction(LedgerAction):
    """XRP payment to another account."""

    name = "payment"

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy, destinations: Sequence[str], **kwargs):
        super().__init__(ledger, retry, **kwargs)
        if not destinations:
            raise ConfigError("payment needs at least one destination")
        self.destinations = list(destinations)

    def steps(self, route: Route) -> list[Step]:
        async def pay(cred: Credential, amount: int) -> Transaction:
            others = [d for d in self.destinations if d != cred.address]
            if not others:
                raise ValueError(f"no payment destination other than {cred.address}")
            dest = choice(others)
            log.info("[%s] paying %s to %s", cred, route.spend.format(amount), dest)
            return Payment(account=cred.address, destination=dest, amount=route.spend.to_amount(amount))

        return [Step("payment", pay)]


class SwapAction(LedgerAction):
    """Sell a random token for another through an immediate-or-cancel DEX offer."""

    name = "swap"

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy, tokens: Sequence[Token], **kwargs):
        super().__init__(ledger, retry, **kwargs)
        if len(tokens) < 2:
            raise ConfigError("swap needs at least two tokens")
        self.tokens = list(tokens)

    def select_route(self) -> Route:
        spend, receive = sample(self.tokens, 2)
        return Route(spend=spend, receive=receive)

    def steps(self, route: Route) -> list[Step]:
        async def swap(cred: Credential, amount: int) -> Transaction:
            log.info("[%s] swapping %s for %s", cred, route.spend.format(amount), route.receive.symbol)
            return OfferCreate(
                account=cred.address,
                taker_gets=route.spend.to_amount(amount),
                # tfSell with a one-unit ask takes whatever the book offers
                taker_pays=route.receive.to_amount(1),
                flags=OfferCreateFlag.TF_IMMEDIATE_OR_CANCEL | OfferCreateFlag.TF_SELL,
            )

        return [Step("swap", swap)]


class LiquidityAction(LedgerAction):
    """Single-sided AMM deposit followed by a withdrawal of most of the LP tokens."""

    name = "liquidity"

    def __init__(self, ledger: LedgerClient, retry: RetryPolicy, pool: Pool, *, redeem_pct=98, **kwargs):
        super().__init__(ledger, retry, **kwargs)
        self.pool = pool
        self.redeem_pct = Decimal(str(redeem_pct))

    def select_route(self) -> Route:
        return Route(spend=self.pool.asset)

    def steps(self, route: Route) -> list[Step]:
        pool = self.pool

        async def deposit(cred: Credential, amount: int) -> Transaction:
            log.info("[%s] depositing %s into %s", cred, route.spend.format(amount), pool)
            return AMMDeposit(
                account=cred.address,
                asset=pool.asset.to_currency(),
                asset2=pool.asset2.to_currency(),
                amount=route.spend.to_amount(amount),
                flags=AMMDepositFlag.TF_SINGLE_ASSET,
            )

        async def withdraw(cred: Credential, amount: int) -> Transaction | None:
            lp = await self.retry.call(lambda: self.ledger.lp_token(pool), "lp token lookup")
            held = await self.retry.call(lambda: self.ledger.balance(cred.address, lp), "lp balance")
            redeem = percent_of(held, self.redeem_pct)
            if redeem <= 0:
                return None
            log.info("[%s] withdrawing %s LP from %s", cred, lp.from_units(redeem), pool)
            return AMMWithdraw(
                account=cred.address,
                asset=pool.asset.to_currency(),
                asset2=pool.asset2.to_currency(),
                lp_token_in=lp.to_amount(redeem),
                flags=AMMWithdrawFlag.TF_LP_TOKEN,
            )

        return [Step("deposit", deposit), Step("withdraw", withdraw)]


@dataclass(slots=True)
class ActionEnv:
    """What action factories may draw on when building from config."""

    ledger: LedgerClient
    retry: RetryPolicy
    delays: Delays
    tokens: dict[str, Token] = field(default_factory=dict)
    addresses: list[str] = field(default_factory=list)

    def token(self, symbol: str) -> Token:
        try:
            return self.tokens[symbol]
        except KeyError:
            raise ConfigError(f"unknown token {symbol!r}, configured: {sorted(self.tokens)}") from None


ActionFactory = Callable[[dict[str, Any], ActionEnv], Action]

REGISTRY: dict[str, ActionFactory] = {}


def register_action(name: str):
    """Decorator to register an action factory under ``name``."""
    def wrap(fn: ActionFactory) -> ActionFactory:
        REGISTRY[name] = fn
        return fn
    return wrap


@register_action("payment")
def _payment(section: dict[str, Any], env: ActionEnv) -> Action:
    destinations = section.get("destinations") or env.addresses
    return PaymentAction(env.ledger, env.retry, destinations)


@register_action("swap")
def _swap(section: dict[str, Any], env: ActionEnv) -> Action:
    symbols = section.get("tokens") or list(env.tokens)
    return SwapAction(env.ledger, env.retry, [env.token(s) for s in symbols])


@register_action("liquidity")
def _liquidity(section: dict[str, Any], env: ActionEnv) -> Action:
    pair = section.get("pool")
    if not pair or len(pair) != 2:
        raise ConfigError("liquidity needs pool = [asset, asset2]")
    pool = Pool(asset=env.token(pair[0]), asset2=env.token(pair[1]))
    return LiquidityAction(env.ledger, env.retry, pool, redeem_pct=section.get("redeem_pct", 98), delays=env.delays)


def build_action(name: str, section: dict[str, Any], env: ActionEnv) -> Action:
    try:
        factory = REGISTRY[name]
    except KeyError:
        raise ConfigError(f"unknown action {name!r}, available: {sorted(REGISTRY)}") from None
    return factory(section or {}, env)
