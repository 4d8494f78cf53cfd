"""Randomized, paced activity sweeps over many XRP Ledger accounts."""

__version__ = "0.1.0"
