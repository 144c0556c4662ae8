"""Building blocks for a publish/subscribe broker: replicated state, events, errors and config."""

__version__ = "0.1.0"