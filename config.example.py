# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use .env (local, gitignored) for overrides.

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "PROBLEMS_APP_NAME": "App display name (default: problem-tree).",
    "PROBLEMS_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "PROBLEMS_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    # Paths (gitignored)
    "PROBLEMS_DATA_DIR": "Local data directory, also used for logs (default: .local/problem-tree).",
    "PROBLEMS_STATE_PATH": "JSON state file (default: <data_dir>/state.json).",
    # Focus timer
    "PROBLEMS_TICK_SECONDS": "Seconds between focus timer ticks (default: 1.0, minimum 0.05).",
    # Debug
    "PROBLEMS_DEBUG_UNIQUE_IDS": "Check that every id is unique after each mutation (true/false).",
}
