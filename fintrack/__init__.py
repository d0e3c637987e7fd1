"""Personal-finance bookkeeping API."""

__version__ = "1.0.0"
