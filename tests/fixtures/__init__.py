"""
Test fixtures for deterministic testing.

This module provides:
- fixture_db: Creates temp SQLite databases with the portal schema
- Seed helpers for users, carnivals and sessions
"""

from .fixture_db import (
    create_fixture_db,
    fetch_one,
    guard_no_live_db,
    index_names,
    insert_carnival,
    insert_session,
    insert_user,
)

__all__ = [
    "create_fixture_db",
    "fetch_one",
    "guard_no_live_db",
    "index_names",
    "insert_carnival",
    "insert_session",
    "insert_user",
]
