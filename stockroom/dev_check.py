# stockroom/dev_check.py
from stockroom.db import SessionLocal
from stockroom.errors import InventoryError
from stockroom.records import INBOUND
from stockroom.services.persistence import LedgerPersistence, open_ledger
from stockroom.services.reconciler import MovementReconciler


def main(session_factory=SessionLocal):
    persistence = LedgerPersistence(session_factory)
    with open_ledger(persistence) as store:
        reconciler = MovementReconciler(store)
        try:
            item = store.create_item(
                {
                    "code": f"DEV-{len(store.items) + 1:03d}",
                    "name": "Sample drill",
                    "category": "Tools",
                    "location": "Ground floor store",
                    "quantity": 0,
                }
            )
            reconciler.add_tool(item.id, "Cordless drill", 2, actor="dev")
            reconciler.apply_movement(item.id, INBOUND, 1, "Restock", "dev")
        except InventoryError as exc:
            print("Inventory error:", exc)
        print("Items:")
        for row in store.items:
            print(" -", row)
        print("Discrepancies:", store.discrepancies() or "none")
    print("Storage:", persistence.storage_usage())
    return store


if __name__ == "__main__":
    main()
