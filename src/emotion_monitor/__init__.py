"""Camera-driven emotion monitoring loop with wellbeing metrics and support prompts."""

__version__ = "0.1.0"
