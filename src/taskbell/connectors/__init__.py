"""User-facing connectors (console shell)."""
