from typing import Final
from enum import StrEnum

XRP_DECIMALS: Final = 6  # drops

# Percent bounds are carried as integer ten-thousandths of a percent.
PCT_SCALE: Final = 10_000

DEFAULT_CYCLES: Final = 1
DEFAULT_MIN_PCT: Final = 10
DEFAULT_MAX_PCT: Final = 50
DEFAULT_FLOOR: Final = "0.0001"

SHORT_DELAY_MIN: Final = 30.0  # seconds
SHORT_DELAY_MAX: Final = 60.0
REPEAT_MIN_HOURS: Final = 24.0
REPEAT_MAX_HOURS: Final = 26.0
ACCOUNT_SWITCH_DELAY: Final = 3.0

MAX_RETRIES: Final = 3
RETRY_DELAY: Final = 5.0

RPC_TIMEOUT: Final = 10.0
CONFIRM_TIMEOUT: Final = 30.0
POLL_INTERVAL: Final = 1.0

# rippled error codes that mean "the server can't serve this right now"
TRANSIENT_RPC_ERRORS: Final = frozenset({
    "tooBusy",
    "noNetwork",
    "noCurrent",
    "noClosed",
    "slowDown",
    "internal",
})

# Markers seen in the text of server-side failures from proxies and load balancers
TRANSIENT_MARKERS: Final = ("SERVER_ERROR", "503 Service Unavailable", "status 503", "bad response", "Bad Gateway")


class FailureKind(StrEnum):
    TRANSIENT = "TRANSIENT"
    TERMINAL  = "TERMINAL"


class CycleState(StrEnum):
    READ_BALANCE   = "READ_BALANCE"
    SUBMIT         = "SUBMIT"
    SUCCEEDED      = "SUCCEEDED"
    FAILED         = "FAILED"


__all__ = [
    "ACCOUNT_SWITCH_DELAY",
    "CONFIRM_TIMEOUT",
    "DEFAULT_CYCLES",
    "DEFAULT_FLOOR",
    "DEFAULT_MAX_PCT",
    "DEFAULT_MIN_PCT",
    "MAX_RETRIES",
    "PCT_SCALE",
    "POLL_INTERVAL",
    "REPEAT_MAX_HOURS",
    "REPEAT_MIN_HOURS",
    "RETRY_DELAY",
    "RPC_TIMEOUT",
    "SHORT_DELAY_MAX",
    "SHORT_DELAY_MIN",
    "TRANSIENT_MARKERS",
    "TRANSIENT_RPC_ERRORS",
    "XRP_DECIMALS",

    ######
    "CycleState",
    "FailureKind",
]
