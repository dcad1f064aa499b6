"""Master database persistence: engine, models, repositories and Alembic migrations."""
