"""SQLite migrations for runtime infrastructure tables."""

from academy.core.migrations.runner import MIGRATIONS_DIR, apply_migrations

__all__ = ["MIGRATIONS_DIR", "apply_migrations"]
