import argparse
import asyncio
import logging
import signal
import sys
from contextlib import suppress

import uvicorn

from ledger_sweep.config import load_config, settings_from_cfg
from ledger_sweep.errors import ConfigError, CredentialSourceError
from ledger_sweep.logging_config import setup_logging
from ledger_sweep.models import SweepConfig
from ledger_sweep.workload import Workload

log = logging.getLogger("ledger_sweep.main")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="ledger-sweep",
        description="Run randomized, paced ledger actions across every wallet in a seed file.",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL for the ledger_sweep logger")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Sweep one action over all wallets")
    run.add_argument("action", help="Configured action name (payment, swap, liquidity, ...)")
    run.add_argument("--cycles", type=int, help="Cycles per wallet")
    mode = run.add_mutually_exclusive_group()
    mode.add_argument("--interval", metavar="HOURS",
                      help='Repeat forever, waiting HOURS ("24" or "24-26") between sweeps')
    mode.add_argument("--repeat", action="store_true", help="Repeat forever with the configured 24-26h window")
    run.add_argument("--amount", help="Fixed amount per cycle, in token units, instead of a balance percentage")
    run.add_argument("--min-pct", help="Lower bound of the balance percentage")
    run.add_argument("--max-pct", help="Upper bound of the balance percentage")
    run.add_argument("--wallets", help="Seed file, one seed per line")

    auto = sub.add_parser("autorun", help="Rotate through actions with random cycles and amounts, forever")
    auto.add_argument("--actions", help="Comma separated action names (default: [autorun] actions)")
    auto.add_argument("--once", action="store_true", help="Run a single rotation round and exit")
    auto.add_argument("--wallets", help="Seed file, one seed per line")

    serve = sub.add_parser("serve", help="Start the HTTP controller")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    return parser.parse_args(argv)


def sweep_config(args, defaults: SweepConfig) -> SweepConfig:
    repeat = args.interval if args.interval else (True if args.repeat else None)
    return SweepConfig.from_params(
        cycles=args.cycles,
        repeat=repeat,
        min_pct=args.min_pct,
        max_pct=args.max_pct,
        fixed_amount=args.amount,
        defaults=defaults,
    )


def _action_names(args) -> list[str] | None:
    if not args.actions:
        return None
    return [n.strip() for n in args.actions.split(",") if n.strip()]


async def _run(workload: Workload, args) -> int:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, workload.stop)

    if args.command == "run":
        config = sweep_config(args, workload.settings.sweep)
        if config.repeat is not None:
            config = config.with_overrides(repeat=config.repeat if args.interval else workload.settings.repeat_window)
        return await workload.sweep(args.action, config)

    names = _action_names(args)
    base = workload.settings.sweep.with_overrides(repeat=None if args.once else workload.settings.repeat_window)
    return await workload.autorun(names, base)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        settings = settings_from_cfg(load_config())
    except (ConfigError, CredentialSourceError) as e:
        log.error("Configuration error: %s", e)
        sys.exit(1)

    if args.command == "serve":
        uvicorn.run(
            "ledger_sweep.app:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            lifespan="on",
        )
        return

    try:
        workload = Workload(settings, wallet_file=args.wallets)
        # Fail on unknown action names before the first transaction.
        if args.command == "run":
            workload.action(args.action)
        else:
            workload.rotation_actions(_action_names(args))
    except (ConfigError, CredentialSourceError) as e:
        log.error("%s", e)
        sys.exit(1)

    log.info("Loaded %s wallet(s) from %s", len(workload.credentials), args.wallets or settings.wallet_file)
    sweeps = asyncio.run(_run(workload, args))
    log.info("Done after %s sweep(s)", sweeps)


if __name__ == "__main__":
    main()
