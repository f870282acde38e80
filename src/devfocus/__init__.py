"""devfocus: task tracker with session timers, XP scoring and synced windows."""

__version__ = "0.1.0"
