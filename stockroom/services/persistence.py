"""Key-value persistence for the ledger's two collections."""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockroom.core.config import Settings, settings as default_settings
from stockroom.db import SessionLocal
from stockroom.db_migrations import run_migrations
from stockroom.errors import FormatError
from stockroom.models import StoredValue
from stockroom.services.ledger_store import LedgerStore

log = logging.getLogger(__name__)


class LedgerPersistence:
    """Stores items and movements as UTF-8 JSON under two string keys."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        settings: Settings = default_settings,
    ):
        self._session_factory = session_factory
        self._settings = settings
        session = self._session()
        try:
            bind = session.get_bind()
        finally:
            session.close()
        run_migrations(
            bind,
            key_map={
                settings.LEGACY_ITEMS_KEY: settings.ITEMS_KEY,
                settings.LEGACY_MOVEMENTS_KEY: settings.MOVEMENTS_KEY,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    def _session(self) -> Session:
        return self._session_factory()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _keys(self) -> tuple[str, str]:
        return self._settings.ITEMS_KEY, self._settings.MOVEMENTS_KEY

    def get(self, key: str) -> Optional[str]:
        session = self._session()
        try:
            row = session.get(StoredValue, key)
            return row.value if row else None
        finally:
            session.close()

    def put(self, key: str, value: str) -> None:
        session = self._session()
        try:
            self._put(session, key, value)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _put(self, session: Session, key: str, value: str) -> None:
        row = session.get(StoredValue, key)
        if row is None:
            session.add(StoredValue(key=key, value=value))
        else:
            row.value = value

    def _decode(self, key: str, raw: Optional[str]) -> list:
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise FormatError(f"Stored value for {key!r} is not valid JSON.") from exc
        if not isinstance(data, list):
            raise FormatError(f"Stored value for {key!r} must be a list.")
        return data

    # ------------------------------------------------------------------
    # Public API
    def load(self, store: LedgerStore) -> LedgerStore:
        items_key, movements_key = self._keys()
        items = self._decode(items_key, self.get(items_key))
        movements = self._decode(movements_key, self.get(movements_key))
        store.restore(items, movements)
        log.info("Loaded ledger (%d items, %d movements)", len(items), len(movements))
        return store

    def save(self, store: LedgerStore) -> None:
        items_key, movements_key = self._keys()
        data = store.dump()
        session = self._session()
        try:
            self._put(session, items_key, json.dumps(data["items"], ensure_ascii=False))
            self._put(session, movements_key, json.dumps(data["movements"], ensure_ascii=False))
            session.commit()
            log.info("Saved ledger (%d items, %d movements)", len(data["items"]), len(data["movements"]))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def storage_usage(self) -> dict:
        """Approximate space used by all stored values (2 bytes per character)."""
        session = self._session()
        try:
            rows = session.execute(select(StoredValue.key, StoredValue.value)).all()
        finally:
            session.close()
        used = sum((len(key) + len(value)) * 2 for key, value in rows)
        quota = self._settings.STORAGE_QUOTA_BYTES
        return {
            "used": used,
            "usedMB": round(used / (1024 * 1024), 2),
            "percentage": round(used / quota * 100, 1) if quota else 0.0,
        }


@contextmanager
def open_ledger(persistence: LedgerPersistence, store: Optional[LedgerStore] = None) -> Iterator[LedgerStore]:
    """Load a store, hand it to the caller, and persist it on clean exit."""
    store = persistence.load(store or LedgerStore(settings=persistence.settings))
    yield store
    persistence.save(store)
