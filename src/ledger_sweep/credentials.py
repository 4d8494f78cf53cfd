"""Wallet file loading.

One seed per line; blank lines and ``#`` comments are ignored. Order in the
file is the order accounts are swept in.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path

from xrpl.wallet import Wallet

from ledger_sweep.errors import CredentialSourceError

log = logging.getLogger("ledger_sweep.credentials")


@dataclass(frozen=True, slots=True)
class Credential:
    wallet: Wallet = field(repr=False, compare=False)
    address: str
    index: int

    @classmethod
    def from_seed(cls, seed: str, index: int) -> "Credential":
        wallet = Wallet.from_seed(seed)
        return cls(wallet=wallet, address=wallet.address, index=index)

    @property
    def short(self) -> str:
        return f"{self.address[:6]}...{self.address[-4:]}"

    def __str__(self):
        return self.short


def read_seeds(path: str | Path) -> list[str]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise CredentialSourceError(f"unable to read wallet file {path}: {e}") from e
    return [ln for ln in (line.strip() for line in text.splitlines()) if ln and not ln.startswith("#")]


def load_credentials(path: str | Path) -> list[Credential]:
    """Load every credential in ``path``.

    Raises:
        CredentialSourceError: the file cannot be read, has no seeds, or holds a
            line that is not a valid seed. The run must not start in that case.
    """
    seeds = read_seeds(path)
    if not seeds:
        raise CredentialSourceError(f"no seeds found in {path}")
    creds = []
    for i, seed in enumerate(seeds):
        try:
            creds.append(Credential.from_seed(seed, index=i))
        except Exception as e:
            raise CredentialSourceError(f"entry {i + 1} of {path} is not a valid seed: {e.__class__.__name__}") from e
    log.info("Loaded %s wallets from %s", len(creds), path)
    return creds
