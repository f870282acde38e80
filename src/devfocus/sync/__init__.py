"""Cross-window events, message bus and window registry."""
