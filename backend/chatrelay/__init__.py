"""Real-time chat relay: global broadcast and private two-party rooms."""

__version__ = "0.1.0"
