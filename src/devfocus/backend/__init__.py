"""Reference SQLite backend and its async command client."""
