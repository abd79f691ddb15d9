import json

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from stockroom.core.config import Settings
from stockroom.db_migrations import run_migrations
from stockroom.errors import FormatError
from stockroom.models import StoredValue
from stockroom.records import INBOUND, SCOPE_TOOL
from stockroom.services.ledger_store import LedgerStore
from stockroom.services.persistence import LedgerPersistence, open_ledger
from stockroom.services.reconciler import MovementReconciler


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:", future=True)
    return sessionmaker(bind=engine, future=True)


@pytest.fixture()
def persistence(session_factory):
    return LedgerPersistence(session_factory)


def _populated_store():
    store = LedgerStore()
    reconciler = MovementReconciler(store)
    box = store.create_item({"code": "MT-002", "name": "Complete toolbox", "category": "Tools", "quantity": 0})
    reconciler.add_tool(box.id, "Martell", 3, actor="Administrator")
    paint = store.create_item({"code": "PT-001", "name": "White paint", "category": "Painting", "quantity": 2})
    reconciler.apply_movement(paint.id, INBOUND, 4, "Restock", "Alice")
    return store


def test_save_writes_both_keys(persistence, session_factory):
    persistence.save(_populated_store())
    with session_factory() as session:
        rows = {row.key: row.value for row in session.execute(select(StoredValue)).scalars()}
    assert set(rows) == {"inventory_items_v5", "inventory_movements_v5"}
    assert len(json.loads(rows["inventory_items_v5"])) == 2
    assert len(json.loads(rows["inventory_movements_v5"])) == 4


def test_load_restores_saved_store(persistence):
    original = _populated_store()
    persistence.save(original)

    loaded = persistence.load(LedgerStore())

    assert loaded.dump() == original.dump()
    assert loaded.discrepancies() == {}
    assert loaded.tool_movements_for(1)[0].scope == SCOPE_TOOL


def test_save_overwrites_previous_values(persistence):
    store = _populated_store()
    persistence.save(store)
    store.delete_item(1)
    persistence.save(store)
    loaded = persistence.load(LedgerStore())
    assert [it.code for it in loaded.items] == ["PT-001"]
    assert all(m.item_id == 2 for m in loaded.movements)


def test_load_empty_database(persistence):
    store = persistence.load(LedgerStore())
    assert store.items == ()
    assert store.movements == ()


def test_load_corrupt_value_raises(persistence):
    persistence.put("inventory_items_v5", "{not json")
    with pytest.raises(FormatError):
        persistence.load(LedgerStore())
    persistence.put("inventory_items_v5", json.dumps({"items": []}))
    with pytest.raises(FormatError):
        persistence.load(LedgerStore())


def test_legacy_keys_are_picked_up(session_factory):
    engine = session_factory.kw["bind"]
    run_migrations(engine)
    legacy_items = [
        {"id": 1693000000000, "codi": "MT-001", "nom": "Escales", "categoria": "Eines",
         "ubicacio": "Magatzem planta baixa", "quantitat": 2, "estat": "Bon estat",
         "dataRevisio": "2025-09-15", "observacions": "",
         "eines": [{"nom": "Escala simple 2m", "disponible": 2}]},
    ]
    legacy_moves = [
        {"id": 1693000000001, "itemId": 1693000000000, "tipus": "Entrada", "quantitat": 2,
         "motiu": "Afegides 2x Escala simple 2m", "user": "Administrador",
         "when": "2025-09-01T08:00:00.000Z"},
    ]
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "INSERT INTO kv_store (key, value) VALUES (?, ?), (?, ?)",
            ("inventari_items_v5", json.dumps(legacy_items), "inventari_moviments_v5", json.dumps(legacy_moves)),
        )

    store = LedgerPersistence(session_factory).load(LedgerStore())

    item = store.get_item(1693000000000)
    assert item.category == "Tools"
    assert item.status == "Good condition"
    assert item.tools[0].available == 2
    assert store.movements[0].kind == INBOUND
    assert store.movements[0].scope == SCOPE_TOOL
    assert store.discrepancies() == {}


def test_open_ledger_persists_on_clean_exit(persistence):
    with open_ledger(persistence) as store:
        store.create_item({"code": "HV-001", "name": "Filter", "category": "HVAC", "quantity": 6})
    assert [it.code for it in persistence.load(LedgerStore()).items] == ["HV-001"]


def test_open_ledger_skips_save_on_error(persistence):
    with pytest.raises(RuntimeError):
        with open_ledger(persistence) as store:
            store.create_item({"code": "HV-001", "name": "Filter", "category": "HVAC", "quantity": 6})
            raise RuntimeError("caller gave up")
    assert persistence.load(LedgerStore()).items == ()


def test_storage_usage(session_factory):
    persistence = LedgerPersistence(session_factory, settings=Settings(STORAGE_QUOTA_BYTES=100_000))
    empty = persistence.storage_usage()
    assert empty == {"used": 0, "usedMB": 0.0, "percentage": 0.0}
    persistence.save(_populated_store())
    usage = persistence.storage_usage()
    assert usage["used"] > 0
    assert 0 < usage["percentage"] < 100
    assert usage["percentage"] == round(usage["used"] / 100_000 * 100, 1)


def test_open_ledger_uses_persistence_settings(session_factory):
    custom = Settings(ITEMS_KEY="annex_items", MOVEMENTS_KEY="annex_movements", SITE_LOCATION="Annex")
    persistence = LedgerPersistence(session_factory, settings=custom)
    with open_ledger(persistence) as store:
        assert store.settings is custom
        store.create_item({"code": "GD-001", "name": "Rake", "category": "Gardening", "quantity": 1})
    assert persistence.get("annex_items") is not None
    assert persistence.get("inventory_items_v5") is None
    assert store.snapshot()["location"] == "Annex"
