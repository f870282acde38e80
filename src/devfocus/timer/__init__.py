"""Per-window ticking timer."""
