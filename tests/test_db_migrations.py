from sqlalchemy import create_engine

from stockroom.db_migrations import run_migrations


def _get_columns(conn, table):
    return {row[1] for row in conn.exec_driver_sql(f"PRAGMA table_info({table})").fetchall()}


def _value(conn, key):
    row = conn.exec_driver_sql("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def test_run_migrations_creates_store_table():
    engine = create_engine("sqlite:///:memory:", future=True)
    run_migrations(engine)
    with engine.begin() as conn:
        assert {"key", "value", "updated_at"} == _get_columns(conn, "kv_store")


def test_run_migrations_copies_legacy_keys():
    engine = create_engine("sqlite:///:memory:", future=True)
    run_migrations(engine)
    with engine.begin() as conn:
        conn.exec_driver_sql("INSERT INTO kv_store (key, value) VALUES ('inventari_items_v5', '[]')")
        conn.exec_driver_sql("INSERT INTO kv_store (key, value) VALUES ('inventari_moviments_v5', '[]')")

    run_migrations(engine)

    with engine.begin() as conn:
        assert _value(conn, "inventory_items_v5") == "[]"
        assert _value(conn, "inventory_movements_v5") == "[]"
        assert _value(conn, "inventari_items_v5") == "[]"


def test_legacy_copy_does_not_overwrite_current_values():
    engine = create_engine("sqlite:///:memory:", future=True)
    run_migrations(engine)
    with engine.begin() as conn:
        conn.exec_driver_sql("INSERT INTO kv_store (key, value) VALUES ('old_items', '[1]')")
        conn.exec_driver_sql("INSERT INTO kv_store (key, value) VALUES ('new_items', '[2]')")

    run_migrations(engine, key_map={"old_items": "new_items", "old_moves": "new_moves"})

    with engine.begin() as conn:
        assert _value(conn, "new_items") == "[2]"
        assert _value(conn, "new_moves") is None


def test_run_migrations_is_repeatable():
    engine = create_engine("sqlite:///:memory:", future=True)
    run_migrations(engine)
    run_migrations(engine)
    with engine.begin() as conn:
        count = conn.exec_driver_sql("SELECT COUNT(*) FROM kv_store").scalar_one()
    assert count == 0
