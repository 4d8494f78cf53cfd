"""Domain data structures shared by the runner, the orchestrator and the actions."""
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation, ROUND_DOWN

from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.currencies import XRP, IssuedCurrency

import ledger_sweep.constants as C
from ledger_sweep.constants import FailureKind


@dataclass(frozen=True, slots=True)
class Token:
    """A ledger asset and the fixed-point scale used for its balances.

    XRP has no issuer and is counted in drops (6 decimals). Issued currencies
    are counted in ``10**decimals`` units so every balance is an integer.
    """

    symbol: str
    currency: str = "XRP"
    issuer: str | None = None
    decimals: int = C.XRP_DECIMALS

    @property
    def native(self) -> bool:
        return self.issuer is None

    def to_units(self, value) -> int:
        return int((Decimal(str(value)).scaleb(self.decimals)).to_integral_value(rounding=ROUND_DOWN))

    def from_units(self, units: int) -> Decimal:
        return Decimal(units).scaleb(-self.decimals)

    def format(self, units: int) -> str:
        return f"{self.from_units(units):f} {self.symbol}"

    def to_currency(self) -> XRP | IssuedCurrency:
        if self.native:
            return XRP()
        return IssuedCurrency(currency=self.currency, issuer=self.issuer)

    def to_amount(self, units: int) -> str | IssuedCurrencyAmount:
        if self.native:
            return str(units)
        return IssuedCurrencyAmount(currency=self.currency, issuer=self.issuer, value=f"{self.from_units(units):f}")


XRP_TOKEN = Token(symbol="XRP")


@dataclass(frozen=True, slots=True)
class Pool:
    """An AMM pool, identified by its two assets."""

    asset: Token
    asset2: Token

    def __str__(self):
        return f"{self.asset.symbol}/{self.asset2.symbol}"


@dataclass(frozen=True, slots=True)
class Route:
    """What a single cycle spends and, for swaps, what it receives."""

    spend: Token
    receive: Token | None = None

    def __str__(self):
        return self.spend.symbol if self.receive is None else f"{self.spend.symbol} -> {self.receive.symbol}"


@dataclass(slots=True)
class ActionResult:
    success: bool
    tx_hashes: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: Exception | None = None
    failure: FailureKind | None = None

    @classmethod
    def ok(cls, tx_hashes: list[str]) -> "ActionResult":
        return cls(success=True, tx_hashes=list(tx_hashes))

    @classmethod
    def failed(cls, step: str, error: Exception, failure: FailureKind, tx_hashes: list[str] | None = None) -> "ActionResult":
        return cls(success=False, tx_hashes=list(tx_hashes or []), failed_step=step, error=error, failure=failure)


@dataclass(frozen=True, slots=True)
class RepeatWindow:
    min_hours: float = C.REPEAT_MIN_HOURS
    max_hours: float = C.REPEAT_MAX_HOURS

    @classmethod
    def parse(cls, value) -> "RepeatWindow | None":
        """Read ``"24"``, ``"24-26"``, ``24`` or ``(24, 26)`` as hours.

        Returns None (run once) for anything non-numeric or non-positive.
        """
        if value is None or value is False:
            return None
        if value is True:
            return cls()
        if isinstance(value, RepeatWindow):
            return value
        if isinstance(value, (tuple, list)) and len(value) == 2:
            lo, hi = value
        elif isinstance(value, str) and "-" in value.strip().lstrip("-"):
            lo, _, hi = value.strip().partition("-")
        else:
            lo = hi = value
        try:
            lo, hi = float(lo), float(hi)
        except (TypeError, ValueError):
            return None
        if not (lo > 0 and hi > 0):
            return None
        if lo > hi:
            lo, hi = hi, lo
        return cls(min_hours=lo, max_hours=hi)

    def __str__(self):
        if self.min_hours == self.max_hours:
            return f"{self.min_hours:g}h"
        return f"{self.min_hours:g}-{self.max_hours:g}h"


def positive_int(value, default: int) -> int:
    """``value`` as a positive int, or ``default`` when non-numeric, fractional or not positive."""
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if isinstance(value, float) and value != n:
        return default
    return n if n > 0 else default


def _decimal_or_none(value) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() and d > 0 else None


@dataclass(frozen=True, slots=True)
class SweepConfig:
    """Per-run sweep parameters. Immutable for the run.

    ``floor`` and ``fixed_amount`` are in token units; they are scaled to the
    spent token's smallest unit per cycle.
    """

    cycles_per_account: int = C.DEFAULT_CYCLES
    repeat: RepeatWindow | None = None
    min_pct: Decimal = Decimal(C.DEFAULT_MIN_PCT)
    max_pct: Decimal = Decimal(C.DEFAULT_MAX_PCT)
    floor: Decimal = Decimal(C.DEFAULT_FLOOR)
    fixed_amount: Decimal | None = None

    def __post_init__(self):
        if not (0 <= self.min_pct < self.max_pct <= 100):
            raise ValueError(f"percent bounds must satisfy 0 <= min < max <= 100, got {self.min_pct}/{self.max_pct}")
        if self.cycles_per_account < 1:
            raise ValueError("cycles_per_account must be positive")

    @classmethod
    def from_params(
        cls,
        *,
        cycles=None,
        repeat=None,
        min_pct=None,
        max_pct=None,
        floor=None,
        fixed_amount=None,
        defaults: "SweepConfig | None" = None,
    ) -> "SweepConfig":
        """Build from caller input, falling back to ``defaults`` for unusable values."""
        base = defaults or cls()
        lo = _decimal_or_default(min_pct, base.min_pct)
        hi = _decimal_or_default(max_pct, base.max_pct)
        if not (0 <= lo < hi <= 100):
            lo, hi = base.min_pct, base.max_pct
        return cls(
            cycles_per_account=positive_int(cycles, base.cycles_per_account),
            repeat=RepeatWindow.parse(repeat) if repeat is not None else base.repeat,
            min_pct=lo,
            max_pct=hi,
            floor=_decimal_or_none(floor) or base.floor,
            fixed_amount=_decimal_or_none(fixed_amount) if fixed_amount is not None else base.fixed_amount,
        )

    def with_overrides(self, **changes) -> "SweepConfig":
        return replace(self, **changes)


def _decimal_or_default(value, default: Decimal) -> Decimal:
    if value is None or value == "":
        return default
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return d if d.is_finite() else default


@dataclass(slots=True)
class CycleOutcome:
    address: str
    cycle: int
    action: str
    route: str | None = None
    amount: int | None = None
    state: C.CycleState = C.CycleState.READ_BALANCE
    tx_hashes: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == C.CycleState.SUCCEEDED


@dataclass(slots=True)
class AccountReport:
    address: str
    outcomes: list[CycleOutcome] = field(default_factory=list)
    stopped: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.succeeded)


@dataclass(slots=True)
class SweepReport:
    action: str
    sweep: int = 1
    accounts: list[AccountReport] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    stopped: bool = False

    @property
    def cycles(self) -> int:
        return sum(len(a.outcomes) for a in self.accounts)

    @property
    def succeeded(self) -> int:
        return sum(a.succeeded for a in self.accounts)

    @property
    def failed(self) -> int:
        return sum(a.failed for a in self.accounts)

    def summary(self) -> dict:
        return {
            "action": self.action,
            "sweep": self.sweep,
            "accounts": len(self.accounts),
            "cycles": self.cycles,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "stopped": self.stopped,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
