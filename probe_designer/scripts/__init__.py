"""Command-line entry points (probe-generate, probe-import)."""
