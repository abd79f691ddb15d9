"""JSON export and import documents for moving a ledger between machines."""
from __future__ import annotations

import datetime
import json
import logging
from typing import Optional, Tuple

from stockroom.errors import FormatError
from stockroom.inventory_utils import _fmt_export_stamp, _slug, local_now
from stockroom.services.ledger_store import LedgerStore

log = logging.getLogger(__name__)

# Documents written by the v5 browser app use this spelling
_LEGACY_MOVEMENTS_FIELD = "moviments"


def export_document(store: LedgerStore, now: Optional[datetime.datetime] = None) -> str:
    return json.dumps(store.snapshot(now), ensure_ascii=False, indent=2)


def export_filename(store: LedgerStore, now: Optional[datetime.datetime] = None) -> str:
    """Name like 'misericordia_building_inventory_2025-09-16_14-05-33.json'."""
    settings = store.settings
    local = local_now(now or store.now(), settings.TIMEZONE)
    return f"{_slug(settings.SITE_LOCATION)}_inventory_{_fmt_export_stamp(local)}.json"


def parse_import(text) -> Tuple[list, list]:
    """Return ``(items, movements)`` from an import document."""
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise FormatError("Could not read the import file.") from exc
    if not isinstance(data, dict):
        raise FormatError("Import document must be a JSON object.")
    items = data.get("items")
    movements = data.get("movements")
    if movements is None:
        movements = data.get(_LEGACY_MOVEMENTS_FIELD)
    if items is None or movements is None:
        raise FormatError("Import document needs both items and movements.")
    if not isinstance(items, list) or not isinstance(movements, list):
        raise FormatError("Items and movements must be lists.")
    return items, movements


def import_document(store: LedgerStore, text) -> LedgerStore:
    """Replace the store's contents with an import document, no merging."""
    items, movements = parse_import(text)
    store.restore(items, movements)
    log.info("Imported %d items and %d movements", len(items), len(movements))
    return store
