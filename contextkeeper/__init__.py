"""ContextKeeper: development-environment context for AI assistants."""

__version__ = "0.2.0"
