"""Database schema setup and upgrades for installations carrying older keys."""
from __future__ import annotations

import logging

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine

from stockroom.core.config import settings
from stockroom.db import Base
from stockroom.models import StoredValue

log = logging.getLogger(__name__)


def _copy_legacy_key(conn, legacy_key: str, key: str) -> bool:
    """Copy a value stored under a legacy key unless the current key is set."""
    table = StoredValue.__table__
    current = conn.execute(select(table.c.key).where(table.c.key == key)).first()
    if current is not None:
        return False
    legacy = conn.execute(select(table.c.value).where(table.c.key == legacy_key)).first()
    if legacy is None:
        return False
    log.debug("Copying legacy key %s -> %s", legacy_key, key)
    conn.execute(insert(table).values(key=key, value=legacy[0]))
    return True


def run_migrations(
    engine: Engine,
    *,
    key_map: dict[str, str] | None = None,
) -> None:
    """Create missing tables and carry values over from legacy keys.

    ``key_map`` maps legacy storage keys to the keys currently in use.
    """
    if key_map is None:
        key_map = {
            settings.LEGACY_ITEMS_KEY: settings.ITEMS_KEY,
            settings.LEGACY_MOVEMENTS_KEY: settings.MOVEMENTS_KEY,
        }
    Base.metadata.create_all(bind=engine)
    with engine.begin() as conn:
        for legacy_key, key in key_map.items():
            _copy_legacy_key(conn, legacy_key, key)
