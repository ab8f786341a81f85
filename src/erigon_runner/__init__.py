"""Port-negotiating process runner with log-driven chat alerts."""

__version__ = "0.1.0"
