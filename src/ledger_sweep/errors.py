"""Exception hierarchy.

Only ``CredentialSourceError`` and ``ConfigError`` escape to the process level.
Everything derived from ``LedgerError`` is contained at the cycle.
"""


class SweepError(Exception):
    """Base class for errors raised by ledger_sweep."""


class ConfigError(SweepError):
    """The configuration file is missing a value or holds a malformed one."""


class CredentialSourceError(SweepError):
    """The wallet file is missing, unreadable, empty or holds a bad seed."""


class LedgerError(SweepError):
    """A remote ledger call failed."""


class TransientError(LedgerError):
    """Failure likely to succeed when repeated."""


class ServerUnavailable(TransientError):
    def __init__(self, error, message: str | None = None):
        self.error = error
        super().__init__(f"server unavailable: {error}" + (f" ({message})" if message else ""))


class ConfirmationPending(TransientError):
    def __init__(self, tx_hash: str, waited: float):
        self.tx_hash = tx_hash
        self.waited = waited
        super().__init__(f"{tx_hash} not validated after {waited:.1f}s")


class TerminalError(LedgerError):
    """Failure that will not succeed when repeated."""


class RequestFailed(TerminalError):
    def __init__(self, error, message: str | None = None):
        self.error = error
        super().__init__(f"{error}" + (f": {message}" if message else ""))


class TransactionRejected(TerminalError):
    def __init__(self, tx_hash: str | None, engine_result: str, message: str | None = None):
        self.tx_hash = tx_hash
        self.engine_result = engine_result
        super().__init__(f"{tx_hash or 'transaction'} rejected: {engine_result}" + (f" ({message})" if message else ""))


class TransactionExpired(TerminalError):
    def __init__(self, tx_hash: str, last_ledger_sequence: int):
        self.tx_hash = tx_hash
        self.last_ledger_sequence = last_ledger_sequence
        super().__init__(f"{tx_hash} expired past ledger {last_ledger_sequence}")


__all__ = [
    "ConfigError",
    "ConfirmationPending",
    "CredentialSourceError",
    "LedgerError",
    "RequestFailed",
    "ServerUnavailable",
    "SweepError",
    "TerminalError",
    "TransactionExpired",
    "TransactionRejected",
    "TransientError",
]
