"""Monorepo preflight: verify every package, producers first, consumers in parallel."""

__version__ = "0.1.0"
