"""CLI layer: composition root, slash commands and the entrypoint."""
