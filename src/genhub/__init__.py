"""genhub — multi-provider AI generation orchestrator."""

__version__ = "0.1.0"
