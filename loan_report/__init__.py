"""Loan portfolio report builder: column selection, totals, PDF and PNG export."""

__version__ = "0.1.0"
