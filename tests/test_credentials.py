"""Wallet file loading."""
import tempfile
from pathlib import Path
from unittest import TestCase

from xrpl.wallet import Wallet

from ledger_sweep.credentials import Credential, load_credentials, read_seeds
from ledger_sweep.errors import CredentialSourceError


class TestLoadCredentials(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.wallets = [Wallet.create() for _ in range(3)]

    def write(self, text: str) -> Path:
        path = Path(self.tmp.name) / "wallet.txt"
        path.write_text(text, encoding="utf-8")
        return path

    def test_file_order_preserved(self):
        path = self.write("\n".join(w.seed for w in self.wallets) + "\n")
        creds = load_credentials(path)
        self.assertEqual([c.address for c in creds], [w.address for w in self.wallets])
        self.assertEqual([c.index for c in creds], [0, 1, 2])

    def test_blank_lines_and_comments_ignored(self):
        text = f"# funded on testnet\n\n  {self.wallets[0].seed}  \n\n# {self.wallets[1].seed}\n"
        path = self.write(text)
        self.assertEqual(read_seeds(path), [self.wallets[0].seed])
        self.assertEqual(len(load_credentials(path)), 1)

    def test_missing_file(self):
        with self.assertRaises(CredentialSourceError):
            load_credentials(Path(self.tmp.name) / "nope.txt")

    def test_empty_file(self):
        with self.assertRaises(CredentialSourceError):
            load_credentials(self.write("\n# nothing here\n"))

    def test_bad_seed_names_entry_not_secret(self):
        path = self.write(f"{self.wallets[0].seed}\nnot-a-seed\n")
        with self.assertRaises(CredentialSourceError) as cm:
            load_credentials(path)
        self.assertIn("entry 2", str(cm.exception))
        self.assertNotIn("not-a-seed", str(cm.exception))

    def test_repr_hides_wallet(self):
        cred = Credential.from_seed(self.wallets[0].seed, 0)
        self.assertNotIn(self.wallets[0].seed, repr(cred))
        self.assertEqual(str(cred), f"{cred.address[:6]}...{cred.address[-4:]}")
