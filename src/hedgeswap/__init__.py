"""hedgeswap: premium-backed hash-lock swap engine."""

__version__ = "0.1.0"
