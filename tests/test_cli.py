"""Command line parsing and fatal startup errors."""
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from unittest import TestCase, mock

from xrpl.wallet import Wallet

from ledger_sweep.__main__ import _action_names, main, parse_args, sweep_config
from ledger_sweep.models import RepeatWindow, SweepConfig


class TestParseArgs(TestCase):
    def test_run(self):
        args = parse_args(["run", "swap", "--cycles", "3", "--interval", "12-14", "--min-pct", "5", "--max-pct", "20"])
        config = sweep_config(args, SweepConfig())
        self.assertEqual(args.action, "swap")
        self.assertEqual(config.cycles_per_account, 3)
        self.assertEqual(config.repeat, RepeatWindow(12, 14))
        self.assertEqual((config.min_pct, config.max_pct), (Decimal(5), Decimal(20)))

    def test_run_once_by_default(self):
        config = sweep_config(parse_args(["run", "payment"]), SweepConfig(cycles_per_account=2))
        self.assertIsNone(config.repeat)
        self.assertEqual(config.cycles_per_account, 2)

    def test_repeat_and_amount(self):
        config = sweep_config(parse_args(["run", "payment", "--repeat", "--amount", "0.05"]), SweepConfig())
        self.assertEqual(config.repeat, RepeatWindow())
        self.assertEqual(config.fixed_amount, Decimal("0.05"))

    def test_interval_and_repeat_are_exclusive(self):
        with self.assertRaises(SystemExit):
            parse_args(["run", "payment", "--repeat", "--interval", "5"])

    def test_autorun_actions(self):
        self.assertEqual(_action_names(parse_args(["autorun", "--actions", "swap, payment,"])), ["swap", "payment"])
        self.assertIsNone(_action_names(parse_args(["autorun"])))


class TestFatalErrors(TestCase):
    def test_missing_wallet_file_exits_1(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(SystemExit) as cm:
                main(["run", "payment", "--wallets", str(Path(tmp) / "missing.txt")])
        self.assertEqual(cm.exception.code, 1)

    def test_unknown_action_exits_1(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "wallet.txt"
            path.write_text(Wallet.create().seed + "\n", encoding="utf-8")
            with self.assertRaises(SystemExit) as cm:
                main(["run", "bridge", "--wallets", str(path)])
        self.assertEqual(cm.exception.code, 1)

    def test_unreadable_config_exits_1(self):
        with tempfile.TemporaryDirectory() as tmp:
            env = {"SWEEP_CONFIG": str(Path(tmp) / "missing.toml")}
            with mock.patch.dict(os.environ, env), self.assertRaises(SystemExit) as cm:
                main(["run", "payment"])
        self.assertEqual(cm.exception.code, 1)

    def test_malformed_config_exits_1(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            path.write_text("[ledger\nrpc_url =", encoding="utf-8")
            with mock.patch.dict(os.environ, {"SWEEP_CONFIG": str(path)}), self.assertRaises(SystemExit) as cm:
                main(["autorun"])
        self.assertEqual(cm.exception.code, 1)
