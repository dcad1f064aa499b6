"""Unit tests (in-memory fakes, no database)."""
