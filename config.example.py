# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see src/taskbot/config.py). Do NOT commit real secrets: the Matrix password belongs in .env only,
and is needed just once to bootstrap <matrix_store_path>/session.json.
"""

ENV_VARS = {
    # App / logging
    "TASKBOT_APP_NAME": "App display name, also used as the Matrix device name (default: taskbot).",
    "TASKBOT_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "TASKBOT_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "TASKBOT_CONSOLE_USER": "External id of the local console user (default: console).",
    "TASKBOT_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    # Matrix
    "TASKBOT_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKBOT_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKBOT_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKBOT_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # Paths (gitignored)
    "TASKBOT_DATA_DIR": "Local data directory, holds taskbot.log too (default: .local/taskbot).",
    "TASKBOT_MATRIX_STORE_PATH": "Matrix session directory (default: <data_dir>/matrix_store).",
    "TASKBOT_DB_PATH": "TaskStore SQLite path (default: <data_dir>/taskbot.sqlite3).",
    # Reminders
    "TASKBOT_REMINDER_INTERVAL_SECONDS": "Seconds between dispatcher sweeps (default: 60, min: 1).",
    "TASKBOT_REMINDER_BATCH_LIMIT": "Max reminders delivered per sweep (default: 0 = no cap).",
}
