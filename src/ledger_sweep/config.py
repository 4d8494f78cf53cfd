import os
import tomllib
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import ledger_sweep.constants as C
from ledger_sweep.delays import Delays
from ledger_sweep.errors import ConfigError
from ledger_sweep.models import XRP_TOKEN, RepeatWindow, SweepConfig, Token
from ledger_sweep.orchestrator import RotationConfig
from ledger_sweep.retry import RetryPolicy

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Parse the TOML config and apply environment overrides.

    ``SWEEP_CONFIG`` selects the file when ``path`` is not given; ``RPC_URL``
    and ``WALLET_FILE`` override the matching entries.
    """
    path = Path(path or os.getenv("SWEEP_CONFIG") or config_file)
    try:
        conf = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"unable to read config {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e

    conf.setdefault("ledger", {})
    conf.setdefault("wallets", {})
    if rpc := os.getenv("RPC_URL"):
        conf["ledger"]["rpc_url"] = rpc
    if wallets := os.getenv("WALLET_FILE"):
        conf["wallets"]["file"] = wallets
    return conf


def _num(section: dict, key: str, default, kind=float):
    value = section.get(key, default)
    try:
        return kind(value) if kind is not Decimal else Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation):
        raise ConfigError(f"{key} must be a number, got {value!r}") from None


def parse_tokens(entries: list[dict]) -> dict[str, Token]:
    tokens = {XRP_TOKEN.symbol: XRP_TOKEN}
    for entry in entries:
        try:
            token = Token(
                symbol=entry["symbol"],
                currency=entry.get("currency", entry["symbol"]),
                issuer=entry["issuer"],
                decimals=int(entry.get("decimals", C.XRP_DECIMALS)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"token entry {entry!r} is missing or has a bad field: {e}") from None
        tokens[token.symbol] = token
    return tokens


@dataclass(slots=True)
class Settings:
    rpc_url: str
    wallet_file: Path
    explorer_url: str | None = None
    sweep: SweepConfig = field(default_factory=SweepConfig)
    tokens: dict[str, Token] = field(default_factory=lambda: {XRP_TOKEN.symbol: XRP_TOKEN})
    actions: dict[str, dict] = field(default_factory=dict)
    autorun_actions: list[str] = field(default_factory=list)
    rotation: RotationConfig = field(default_factory=RotationConfig)
    short_delay: tuple[float, float] = (C.SHORT_DELAY_MIN, C.SHORT_DELAY_MAX)
    account_switch: float = C.ACCOUNT_SWITCH_DELAY
    repeat_window: RepeatWindow = field(default_factory=RepeatWindow)
    max_attempts: int = C.MAX_RETRIES
    backoff: float = C.RETRY_DELAY
    rpc_timeout: float = C.RPC_TIMEOUT
    confirm_timeout: float = C.CONFIRM_TIMEOUT
    poll_interval: float = C.POLL_INTERVAL
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def delays(self) -> Delays:
        lo, hi = self.short_delay
        return Delays(short_min=lo, short_max=hi, account_switch=self.account_switch, repeat=self.repeat_window)

    def retry(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts, backoff=self.backoff)


def settings_from_cfg(conf: dict[str, Any]) -> Settings:
    ledger, wallets = conf.get("ledger", {}), conf.get("wallets", {})
    sweep, delays = conf.get("sweep", {}), conf.get("delays", {})
    retry, timeout = conf.get("retry", {}), conf.get("timeout", {})
    autorun, api = conf.get("autorun", {}), conf.get("api", {})

    if not ledger.get("rpc_url"):
        raise ConfigError("ledger.rpc_url is required")

    try:
        sweep_cfg = SweepConfig(
            cycles_per_account=int(sweep.get("cycles", C.DEFAULT_CYCLES)),
            min_pct=_num(sweep, "min_pct", C.DEFAULT_MIN_PCT, Decimal),
            max_pct=_num(sweep, "max_pct", C.DEFAULT_MAX_PCT, Decimal),
            floor=_num(sweep, "floor", C.DEFAULT_FLOOR, Decimal),
        )
    except ValueError as e:
        raise ConfigError(f"[sweep] {e}") from None

    repeat = RepeatWindow.parse((
        _num(delays, "repeat_min_hours", C.REPEAT_MIN_HOURS),
        _num(delays, "repeat_max_hours", C.REPEAT_MAX_HOURS),
    ))
    if repeat is None:
        raise ConfigError("[delays] repeat window must be positive hours")

    rotation = RotationConfig(
        cycles_min=_num(autorun, "cycles_min", 1, int),
        cycles_max=_num(autorun, "cycles_max", 3, int),
        amount_min=_num(autorun, "amount_min", "0.01", Decimal),
        amount_max=_num(autorun, "amount_max", "0.1", Decimal),
    )
    if not (0 < rotation.cycles_min <= rotation.cycles_max):
        raise ConfigError("[autorun] needs 0 < cycles_min <= cycles_max")
    if not (0 < rotation.amount_min <= rotation.amount_max):
        raise ConfigError("[autorun] needs 0 < amount_min <= amount_max")

    return Settings(
        rpc_url=ledger["rpc_url"],
        explorer_url=ledger.get("explorer_url"),
        wallet_file=Path(wallets.get("file", "wallet.txt")),
        sweep=sweep_cfg,
        tokens=parse_tokens(conf.get("tokens", [])),
        actions=dict(conf.get("actions", {})),
        autorun_actions=list(autorun.get("actions", [])),
        rotation=rotation,
        short_delay=(_num(delays, "short_min", C.SHORT_DELAY_MIN), _num(delays, "short_max", C.SHORT_DELAY_MAX)),
        account_switch=_num(delays, "account_switch", C.ACCOUNT_SWITCH_DELAY),
        repeat_window=repeat,
        max_attempts=_num(retry, "max_attempts", C.MAX_RETRIES, int),
        backoff=_num(retry, "backoff", C.RETRY_DELAY),
        rpc_timeout=_num(timeout, "rpc", C.RPC_TIMEOUT),
        confirm_timeout=_num(timeout, "confirm", C.CONFIRM_TIMEOUT),
        poll_interval=_num(timeout, "poll", C.POLL_INTERVAL),
        api_host=api.get("host", "0.0.0.0"),
        api_port=_num(api, "port", 8000, int),
    )
