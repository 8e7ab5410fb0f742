"""
Orb: daily regime engine for a single instrument.

Computes indicators, evaluates the setup catalog, keeps the trade ledger,
scores the composite regime and grades published forecasts.
"""
__version__ = "0.1.0"
