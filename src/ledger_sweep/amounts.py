"""Randomized action amounts bounded by a share of the current balance."""
import logging
import random
from decimal import Decimal, InvalidOperation

from ledger_sweep.constants import PCT_SCALE
from ledger_sweep.randoms import secure_random

log = logging.getLogger("ledger_sweep.amounts")


def _scaled_pct(pct) -> int:
    """Percent as an integer count of 1/PCT_SCALE percent, clamped to [0, 100].

    Non-numeric and non-finite input counts as 0.
    """
    try:
        d = Decimal(str(pct))
        if not d.is_finite():
            return 0
        scaled = int(d * PCT_SCALE)
    except (InvalidOperation, ValueError, TypeError, OverflowError):
        return 0
    return max(0, min(scaled, 100 * PCT_SCALE))


def _units(balance) -> int:
    """Balance as a non-negative integer; 0 when non-numeric or non-finite."""
    try:
        d = Decimal(str(balance))
    except (InvalidOperation, ValueError, TypeError):
        return 0
    if not d.is_finite():
        return 0
    return max(int(d), 0)


def percent_of(balance: int, pct) -> int:
    """``balance * pct / 100`` rounded down, without floats."""
    return _units(balance) * _scaled_pct(pct) // (100 * PCT_SCALE)


def select_amount(balance: int, min_pct, max_pct, floor: int, rng: random.Random | None = None) -> int:
    """Pick an amount in ``[balance*min_pct/100, balance*max_pct/100)``.

    When the lower bound is below ``floor`` the floor is returned instead, even
    though it may exceed what the percentage band allows. An empty band returns
    its lower bound. Never raises for the amount computation itself.

    Args:
        balance: Current balance in smallest units.
        min_pct: Lower percentage bound (0-100, fractional allowed).
        max_pct: Upper percentage bound (0-100, fractional allowed).
        floor: Minimum viable amount in smallest units.
        rng: Random source; defaults to the OS-backed one.

    Returns:
        Amount in smallest units.
    """
    lo_pct, hi_pct = _scaled_pct(min_pct), _scaled_pct(max_pct)
    if lo_pct > hi_pct:
        lo_pct, hi_pct = hi_pct, lo_pct

    balance = _units(balance)
    lower = balance * lo_pct // (100 * PCT_SCALE)
    upper = balance * hi_pct // (100 * PCT_SCALE)

    if lower < floor:
        log.debug("lower bound %s below floor %s, using floor", lower, floor)
        return floor
    if upper <= lower:
        return lower
    return lower + (rng or secure_random()).randrange(upper - lower)


def below_floor(balance: int, min_pct, floor: int) -> bool:
    """True when ``select_amount`` would fall back to the floor."""
    return percent_of(balance, min_pct) < floor
