"""pm-insights: analytics derivation and predictive insight engine."""

__version__ = "1.0.0"
