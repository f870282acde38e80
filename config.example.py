# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Nothing here is secret; local overrides belong in .env (gitignored).

This file exists to make the repo self-documenting even without a local .env file.
"""

ENV_VARS = {
    # App / logging
    "DEVFOCUS_APP_NAME": "App display name (default: devfocus).",
    "DEVFOCUS_LOG_LEVEL": "Console logging level (default: INFO). The file log is always DEBUG.",
    # Paths (gitignored)
    "DEVFOCUS_DATA_DIR": "Local data directory, also holds devfocus.log (default: .local/devfocus).",
    "DEVFOCUS_DB_PATH": "SQLite database path (default: <data_dir>/devfocus.sqlite3).",
    # Timer / backend
    "DEVFOCUS_TICK_INTERVAL_SECONDS": "Tracker timer tick interval (default: 1.0).",
    "DEVFOCUS_BACKEND_TIMEOUT_SECONDS": "Per-command timeout; unset or <= 0 means no timeout.",
    # Windows
    "DEVFOCUS_BROWSER_FALLBACK": "Open a browser tab when a window cannot be created (true/false).",
    "DEVFOCUS_FALLBACK_BASE_URL": "Base URL used for browser fallback (default: http://localhost:1420/).",
}
