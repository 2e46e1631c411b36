"""User-facing surfaces: the CLI and pipeline reporters."""
