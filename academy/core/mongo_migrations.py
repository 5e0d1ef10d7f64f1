"""Versioned MongoDB index migrations for credential collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import pymongo
from pymongo.errors import PyMongoError

from academy.core.config import StorageConfig
from academy.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_20250101_01_credential_indexes(db: Any) -> None:
    db["auth_users"].create_index("email", unique=True)
    db["auth_users"].create_index("user_id", unique=True)


def _migration_20250101_02_token_lookup_indexes(db: Any) -> None:
    db["auth_users"].create_index("verification_token", sparse=True)
    db["auth_users"].create_index("reset_token", sparse=True)


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20250101_01_credential_indexes", _migration_20250101_01_credential_indexes),
    ("20250101_02_token_lookup_indexes", _migration_20250101_02_token_lookup_indexes),
]


def apply_mongo_migrations(storage: StorageConfig) -> None:
    """Apply MongoDB migrations if a Mongo URI is configured."""
    if not storage.mongodb_uri:
        return

    client: Any = pymongo.MongoClient(storage.mongodb_uri, serverSelectionTimeoutMS=3000)
    try:
        try:
            client.admin.command("ping")
            db = client[storage.mongodb_db]
            migration_collection = db["schema_migrations"]
            migration_collection.create_index("migration_id", unique=True)

            for migration_id, migration_fn in MIGRATIONS:
                if migration_collection.find_one({"migration_id": migration_id}):
                    continue
                migration_fn(db)
                migration_collection.insert_one(
                    {
                        "migration_id": migration_id,
                        "applied_at": datetime.now(timezone.utc),
                        "correlation_id": CORRELATION_ID_CTX.get(),
                    }
                )
        except PyMongoError:
            LOGGER.exception("Failed applying MongoDB migrations")
            return
    finally:
        client.close()
