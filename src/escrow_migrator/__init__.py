"""Escrow migrator - moves reward escrow balances to a successor contract."""

__version__ = "0.1.0"
