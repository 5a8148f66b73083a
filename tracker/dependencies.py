"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends

from tracker.config import get_settings
from tracker.db import DbClient, InMemoryDbClient, SqlDbClient
from tracker.membership import MembershipManager

_db_client: DbClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so one connection pool serves every request.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def close_db_client() -> None:
    global _db_client
    if _db_client:
        _db_client.close()
        _db_client = None


def get_membership_manager(
    db: DbClient = Depends(get_db_client),
) -> MembershipManager:
    settings = get_settings()
    return MembershipManager(db, append_mode=settings.membership_append_mode)
