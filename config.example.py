# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Put machine-specific values in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKBELL_APP_NAME": "App display name (default: taskbell).",
    "TASKBELL_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Switches
    "TASKBELL_CONSOLE_ENABLED": "Run the interactive console shell (true/false, default: true).",
    "TASKBELL_NOTIFICATIONS_ENABLED": "Allow alerts to be scheduled (true/false, default: true).",
    # Paths (gitignored)
    "TASKBELL_DATA_DIR": "Local data directory for JSON documents and logs (default: .local/taskbell).",
    # Time handling
    "TASKBELL_DISPLAY_TIMEZONE": "IANA timezone all task times are read in (default: Asia/Manila).",
    "TASKBELL_GRACE_MINUTES": "Minutes after the scheduled time before a task is OVERDUE (default: 15).",
    "TASKBELL_LEAD_MINUTES": "Minutes before the scheduled time for the 'upcoming' alert (default: 15).",
    "TASKBELL_DEDUP_WINDOW_MINUTES": "Repeat deliveries of one alert within this window are dropped (default: 5).",
    "TASKBELL_SWEEP_INTERVAL_SECONDS": "Status sweep period (default: 60).",
    "TASKBELL_RESET_PAST_SLOT": (
        "Restart a COMPLETE task on its next day even if that day's slot already passed "
        "(true/false, default: false)."
    ),
}
