"""Driver sentiment engine: feedback scoring, rolling reputation and alerts."""

__version__ = "1.0.0"
