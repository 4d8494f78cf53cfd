"""Sequential action cycles for a single credential."""
import logging
import time
from typing import Protocol

from ledger_sweep.actions import Action
from ledger_sweep.amounts import below_floor, select_amount
from ledger_sweep.constants import DEFAULT_CYCLES, CycleState
from ledger_sweep.credentials import Credential
from ledger_sweep.delays import Delays
from ledger_sweep.models import AccountReport, CycleOutcome, Route, SweepConfig, Token, positive_int
from ledger_sweep.retry import RetryPolicy

log = logging.getLogger("ledger_sweep.runner")


class BalanceReader(Protocol):
    async def balance(self, address: str, token: Token) -> int: ...


async def compute_amount(
    credential: Credential,
    route: Route,
    config: SweepConfig,
    *,
    balances: BalanceReader,
    retry: RetryPolicy,
) -> int:
    token = route.spend
    if config.fixed_amount is not None:
        amount = token.to_units(config.fixed_amount)
        log.info("[%s] using fixed amount %s", credential, token.format(amount))
        return amount

    balance = await retry.call(lambda: balances.balance(credential.address, token), f"{token.symbol} balance")
    floor = token.to_units(config.floor)
    if below_floor(balance, config.min_pct, floor):
        log.warning("[%s] %s balance %s too low, using minimum amount %s",
                    credential, token.symbol, token.format(balance), token.format(floor))
    amount = select_amount(balance, config.min_pct, config.max_pct, floor)
    log.info("[%s] balance %s, selected %s (%s-%s%%)",
             credential, token.format(balance), token.format(amount), config.min_pct, config.max_pct)
    return amount


async def run_cycle(
    credential: Credential,
    action: Action,
    cycle: int,
    config: SweepConfig,
    *,
    balances: BalanceReader,
    retry: RetryPolicy,
) -> CycleOutcome:
    """One cycle. Failures end up in the outcome; nothing is raised."""
    outcome = CycleOutcome(address=credential.address, cycle=cycle, action=action.name)
    try:
        route = action.select_route()
        outcome.route = str(route)
        outcome.amount = await compute_amount(credential, route, config, balances=balances, retry=retry)
        outcome.state = CycleState.SUBMIT
        result = await action.execute(credential, outcome.amount, route)
    except Exception as e:
        outcome.failed_step = "amount" if outcome.state == CycleState.READ_BALANCE else action.name
        outcome.state = CycleState.FAILED
        outcome.error = f"{e.__class__.__name__}: {e}"
        log.error("[%s] cycle %s failed at %s: %s", credential, cycle, outcome.failed_step, outcome.error)
    else:
        outcome.tx_hashes = result.tx_hashes
        if result.success:
            outcome.state = CycleState.SUCCEEDED
        else:
            outcome.state = CycleState.FAILED
            outcome.failed_step = result.failed_step
            outcome.error = f"{result.error.__class__.__name__}: {result.error}" if result.error else None
            log.error("[%s] cycle %s failed at %s (%s)", credential, cycle, result.failed_step, result.failure)
    outcome.finished_at = time.time()
    return outcome


async def run_cycles(
    credential: Credential,
    action: Action,
    cycles: int,
    config: SweepConfig,
    *,
    balances: BalanceReader,
    retry: RetryPolicy,
    delays: Delays,
) -> AccountReport:
    """Run ``cycles`` cycles of ``action`` for ``credential``, one after another.

    A failed cycle is logged and the next one still runs. Consecutive cycles are
    separated by a short random delay; there is none after the last cycle. A
    stop request ends the account at the next delay.
    """
    report = AccountReport(address=credential.address)
    cycles = positive_int(cycles, DEFAULT_CYCLES)
    for i in range(1, cycles + 1):
        log.info("[%s] cycle %s/%s: %s", credential, i, cycles, action.name)
        outcome = await run_cycle(credential, action, i, config, balances=balances, retry=retry)
        report.outcomes.append(outcome)
        if outcome.succeeded:
            log.info("[%s] cycle %s/%s completed", credential, i, cycles)
        if i < cycles:
            pause = delays.short()
            log.info("[%s] waiting %.0fs for the next cycle", credential, pause)
            if await delays.wait(pause):
                report.stopped = True
                break
    log.info("[%s] done: %s succeeded, %s failed", credential, report.succeeded, report.failed)
    return report
