"""DataVault Pro analytics engine."""

__version__ = "1.0.0"
