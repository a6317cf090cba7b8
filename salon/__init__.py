"""Salon booking backend: billing, plans, scheduling sweeps and two-factor verification."""

__version__ = "1.0.0"
