"""splitledger - trip ledger engine for shared expenses."""

__version__ = "0.1.0"
