"""Core: settings, constants and runtime wiring."""
