"""Multi-source URL risk analysis."""

__version__ = "0.3.0"
