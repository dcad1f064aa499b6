"""Shared cross-cutting helpers (telemetry, utils)."""
