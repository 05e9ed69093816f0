"""
Settlement ledger clients and event feeds.

``VaultLedger`` talks to a deployed AegisVault contract over web3;
``StubLedger`` is an in-memory stand-in for demos and tests.
"""
from .base import LedgerClient
from .feeds import BlockFeed, IntentFeed
from .stub import StubLedger
from .vault import VaultLedger

__all__ = ['LedgerClient', 'VaultLedger', 'StubLedger', 'IntentFeed', 'BlockFeed']
