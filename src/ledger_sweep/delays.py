"""Randomized pacing between cycles and sweeps."""
import asyncio
import logging
import random
from dataclasses import dataclass, field

import ledger_sweep.constants as C
from ledger_sweep.models import RepeatWindow
from ledger_sweep.randoms import secure_random

log = logging.getLogger("ledger_sweep.delays")


@dataclass(slots=True)
class Delays:
    """Wait-time draws plus a stop-aware sleep.

    ``short`` paces cycles of one account (seconds to low minutes), ``long``
    paces whole sweeps (hours). ``account_switch`` is the constant pause between
    credentials. Every suspension goes through ``wait`` so that setting ``stop``
    ends it early.
    """

    short_min: float = C.SHORT_DELAY_MIN
    short_max: float = C.SHORT_DELAY_MAX
    account_switch: float = C.ACCOUNT_SWITCH_DELAY
    repeat: RepeatWindow = field(default_factory=RepeatWindow)
    stop: asyncio.Event = field(default_factory=asyncio.Event)
    rng: random.Random = field(default_factory=secure_random)

    def short(self) -> float:
        return self.rng.uniform(self.short_min, self.short_max)

    def long(self, window: RepeatWindow | None = None) -> float:
        w = window or self.repeat
        return self.rng.uniform(w.min_hours, w.max_hours) * 3600

    @property
    def stopped(self) -> bool:
        return self.stop.is_set()

    async def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless stopped first. Returns True if stopped."""
        if self.stop.is_set():
            return True
        if seconds <= 0:
            await asyncio.sleep(0)
            return self.stop.is_set()
        try:
            await asyncio.wait_for(self.stop.wait(), timeout=seconds)
        except TimeoutError:
            return False
        log.info("Wait interrupted by stop request")
        return True
