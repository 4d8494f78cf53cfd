"""Sweeps over every credential, and the loops that repeat them."""
import logging
import time
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from ledger_sweep.actions import Action
from ledger_sweep.credentials import Credential
from ledger_sweep.delays import Delays
from ledger_sweep.models import SweepConfig, SweepReport
from ledger_sweep.randoms import secure_random
from ledger_sweep.retry import RetryPolicy
from ledger_sweep.runner import BalanceReader, run_cycles

log = logging.getLogger("ledger_sweep.orchestrator")


@dataclass(frozen=True, slots=True)
class RotationConfig:
    """Controller loop settings: every action, random cycles, random fixed amount."""

    cycles_min: int = 1
    cycles_max: int = 3
    amount_min: Decimal = Decimal("0.01")
    amount_max: Decimal = Decimal("0.1")
    amount_places: int = 4


class SweepOrchestrator:
    """Runs the same action for every credential, in wallet file order.

    Strictly sequential: one credential, one cycle, one step at a time. The only
    suspension points are the delays and the remote calls themselves.
    """

    def __init__(
        self,
        credentials: Sequence[Credential],
        *,
        balances: BalanceReader,
        retry: RetryPolicy,
        delays: Delays,
        history: int = 100,
    ):
        self.credentials = list(credentials)
        self.balances = balances
        self.retry = retry
        self.delays = delays
        self.reports: deque[SweepReport] = deque(maxlen=history)
        self.current: SweepReport | None = None
        self.sweeps = 0

    def stop(self) -> None:
        self.delays.stop.set()

    async def run_sweep(self, action: Action, config: SweepConfig) -> SweepReport:
        """One pass over all credentials."""
        self.sweeps += 1
        report = SweepReport(action=action.name, sweep=self.sweeps)
        self.current = report
        total = len(self.credentials)
        log.info("Sweep %s: %s on %s wallets, %s cycle(s) each",
                 self.sweeps, action.name, total, config.cycles_per_account)

        for i, cred in enumerate(self.credentials):
            log.info("Processing wallet %s/%s: %s", i + 1, total, cred)
            account = await run_cycles(
                cred, action, config.cycles_per_account, config,
                balances=self.balances, retry=self.retry, delays=self.delays,
            )
            report.accounts.append(account)
            if account.stopped:
                report.stopped = True
                break
            if i < total - 1:
                log.info("Switching to the next wallet in %.0fs", self.delays.account_switch)
                if await self.delays.wait(self.delays.account_switch):
                    report.stopped = True
                    break

        report.finished_at = time.time()
        self.reports.append(report)
        self.current = None
        log.info("Sweep %s finished: %s cycles, %s succeeded, %s failed%s",
                 report.sweep, report.cycles, report.succeeded, report.failed,
                 " (stopped)" if report.stopped else "")
        return report

    async def run_forever(self, action: Action, config: SweepConfig) -> int:
        """Sweep, then wait a random interval in ``config.repeat`` and sweep again.

        Without ``config.repeat`` this returns after a single sweep. Otherwise it
        loops until ``stop()`` is called. Returns the number of sweeps run;
        their reports are kept in ``reports``.
        """
        runs = 0
        while True:
            report = await self.run_sweep(action, config)
            runs += 1
            if report.stopped or config.repeat is None:
                return runs
            interval = self.delays.long(config.repeat)
            log.info("Next sweep in %.2f hours", interval / 3600)
            if await self.delays.wait(interval):
                return runs

    async def run_rotation(
        self,
        actions: Mapping[str, Action],
        base: SweepConfig,
        rotation: RotationConfig = RotationConfig(),
    ) -> int:
        """Controller loop over several actions.

        For each action draw a cycle count and a fixed per-cycle amount, sweep
        every credential with it, then wait a random interval from the repeat
        window ``base.repeat`` before the next round. A single round is run when
        ``base.repeat`` is None, otherwise rounds continue until stopped.
        """
        rng = secure_random()
        runs = 0
        rounds = 0
        while True:
            rounds += 1
            log.info("=== Rotation round %s over %s ===", rounds, ", ".join(actions))
            for name, action in actions.items():
                cycles = rng.randint(rotation.cycles_min, rotation.cycles_max)
                amount = round(Decimal(str(rng.uniform(float(rotation.amount_min), float(rotation.amount_max)))),
                               rotation.amount_places)
                log.info("[%s] %s cycle(s) with fixed amount %s", name, cycles, amount)
                config = base.with_overrides(cycles_per_account=cycles, fixed_amount=amount, repeat=None)
                report = await self.run_sweep(action, config)
                runs += 1
                if report.stopped:
                    return runs
            if base.repeat is None:
                return runs
            interval = self.delays.long(base.repeat)
            log.info("Sleeping for %.2f hours before the next round", interval / 3600)
            if await self.delays.wait(interval):
                return runs

    def snapshot(self) -> dict:
        return {
            "wallets": len(self.credentials),
            "sweeps": self.sweeps,
            "running": self.current.summary() if self.current else None,
            "stopped": self.delays.stopped,
            "recent": [r.summary() for r in list(self.reports)[-10:]],
        }
