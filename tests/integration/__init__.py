"""Integration tests against a PostgreSQL master database."""
