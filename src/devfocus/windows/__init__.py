"""Headless window controllers and the in-process window host."""
