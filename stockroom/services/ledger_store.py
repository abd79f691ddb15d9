"""In-memory ledger of inventory items and the movements applied to them."""
from __future__ import annotations

import datetime
import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from stockroom.core.config import Settings, settings as default_settings
from stockroom.errors import FormatError, InventoryError, NotFoundError, ValidationError
from stockroom.inventory_utils import (
    _clean_text,
    coerce_quantity,
    days_until,
    local_today,
    parse_date,
    utc_now,
)
from stockroom.records import (
    ALL,
    CREATION,
    STATUSES,
    TOOLS_CATEGORY,
    Item,
    Movement,
)

log = logging.getLogger(__name__)

# Fields that only the reconciler may change
_PROTECTED_FIELDS = {"id", "quantity", "tools"}
_PATCH_FIELDS = {
    "code": "code",
    "name": "name",
    "category": "category",
    "location": "location",
    "status": "status",
    "reviewDate": "review_date",
    "review_date": "review_date",
    "notes": "notes",
}


def _next_id(ids: Iterable[object]) -> int:
    numeric = [i for i in ids if isinstance(i, int) and not isinstance(i, bool)]
    return max(numeric, default=0) + 1


def _discrepancies(items: Iterable[Item], movements: Iterable[Movement]) -> Dict[object, Tuple[int, int]]:
    totals: Dict[object, int] = {}
    for m in movements:
        totals[m.item_id] = totals.get(m.item_id, 0) + m.delta
    out = {}
    for it in items:
        net = totals.get(it.id, 0)
        if it.quantity != net:
            out[it.id] = (it.quantity, net)
    return out


def _check_unique(ids: List[object], label: str) -> None:
    seen = set()
    for i in ids:
        if i in seen:
            raise FormatError(f"Duplicate {label} id {i!r}.")
        seen.add(i)


class LedgerStore:
    """Authoritative collections of Items and Movements.

    The store is the only place either collection changes. Quantity changes
    arrive through :meth:`commit`, which the movement reconciler calls with a
    fully validated (item, movement) pair.
    """

    def __init__(
        self,
        *,
        clock: Optional[Callable[[], datetime.datetime]] = None,
        settings: Settings = default_settings,
    ):
        self._clock = clock or utc_now
        self._settings = settings
        self._items: List[Item] = []
        self._movements: List[Movement] = []
        self._next_item_id = 1
        self._next_movement_id = 1

    # ------------------------------------------------------------------
    # Helpers
    def now(self) -> datetime.datetime:
        return self._clock()

    def today(self) -> datetime.date:
        return local_today(self._clock(), self._settings.TIMEZONE)

    @property
    def settings(self) -> Settings:
        return self._settings

    def _index_of(self, item_id: object) -> int:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx
        raise NotFoundError(item_id)

    def _check_review_date(self, raw, today: datetime.date) -> Optional[datetime.date]:
        review_date = parse_date(raw)
        if review_date is not None and review_date < today:
            raise ValidationError("Review date cannot be earlier than today.")
        return review_date

    def _check_status(self, status: str) -> str:
        if status not in STATUSES:
            raise ValidationError(f"Unknown status {status!r}.")
        return status

    def new_movement(
        self,
        item_id: object,
        kind: str,
        delta: int,
        reason: str,
        actor: str,
        **extra,
    ) -> Movement:
        """Build (but do not record) the next movement for ``item_id``."""
        return Movement(
            id=self._next_movement_id,
            item_id=item_id,
            kind=kind,
            delta=delta,
            reason=reason,
            actor=actor,
            timestamp=self.now(),
            **extra,
        )

    # ------------------------------------------------------------------
    # Read access
    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    @property
    def movements(self) -> Tuple[Movement, ...]:
        return tuple(self._movements)

    def get_item(self, item_id: object) -> Item:
        return self._items[self._index_of(item_id)]

    def list_filtered(self, query: str = "", category_filter: str = ALL, status_filter: str = ALL) -> List[Item]:
        q = (query or "").strip().lower()
        result = []
        for it in self._items:
            if q and not (q in it.name.lower() or q in it.code.lower() or q in it.location.lower()):
                continue
            if category_filter != ALL and it.category != category_filter:
                continue
            if status_filter != ALL and it.status != status_filter:
                continue
            result.append(it)
        return result

    def movements_for(self, item_id: object) -> List[Movement]:
        rows = [m for m in self._movements if m.item_id == item_id]
        # sorted() is stable with reverse=True, so ties keep insertion order
        return sorted(rows, key=lambda m: m.timestamp, reverse=True)

    def tool_movements_for(self, item_id: object) -> List[Movement]:
        return [m for m in self.movements_for(item_id) if m.is_tool_movement]

    def needs_review_soon(self, item: Item, as_of: Optional[datetime.date] = None) -> bool:
        if item.review_date is None:
            return False
        if as_of is None:
            as_of = self.today()
        return days_until(item.review_date, as_of) <= self._settings.REVIEW_HORIZON_DAYS

    def items_due_for_review(self, as_of: Optional[datetime.date] = None) -> List[Item]:
        if as_of is None:
            as_of = self.today()
        return [it for it in self._items if self.needs_review_soon(it, as_of)]

    def discrepancies(self) -> Dict[object, Tuple[int, int]]:
        """Items whose quantity disagrees with their movement history."""
        return _discrepancies(self._items, self._movements)

    # ------------------------------------------------------------------
    # Mutations
    def create_item(self, draft: Mapping[str, object]) -> Item:
        code = _clean_text(draft.get("code"))
        name = _clean_text(draft.get("name"))
        if not code or not name:
            raise ValidationError("Fill in at least code and name.")
        review_date = self._check_review_date(draft.get("reviewDate", draft.get("review_date")), self.today())
        status = self._check_status(_clean_text(draft.get("status")) or STATUSES[0])
        category = _clean_text(draft.get("category")) or TOOLS_CATEGORY
        quantity = coerce_quantity(draft.get("quantity"))
        actor = _clean_text(draft.get("actor")) or self._settings.DEFAULT_ACTOR

        item = Item(
            id=self._next_item_id,
            code=code,
            name=name,
            category=category,
            location=_clean_text(draft.get("location")),
            quantity=quantity,
            status=status,
            review_date=review_date,
            notes=_clean_text(draft.get("notes")),
            tools=() if category == TOOLS_CATEGORY else None,
        )
        movement = self.new_movement(item.id, CREATION, quantity, "Item created", actor)

        self._items.append(item)
        self._movements.append(movement)
        self._next_item_id += 1
        self._next_movement_id += 1
        log.info("Created item %s (%s) with quantity %d", item.id, item.code, quantity)
        return item

    def delete_item(self, item_id: object) -> int:
        """Remove an item and its movements; returns the movements dropped."""
        idx = self._index_of(item_id)
        kept = [m for m in self._movements if m.item_id != item_id]
        dropped = len(self._movements) - len(kept)
        del self._items[idx]
        self._movements = kept
        log.info("Deleted item %s and %d movements", item_id, dropped)
        return dropped

    def update_item_fields(self, item_id: object, patch: Mapping[str, object]) -> Item:
        idx = self._index_of(item_id)
        item = self._items[idx]

        protected = _PROTECTED_FIELDS.intersection(patch)
        if protected:
            raise ValidationError(f"Cannot edit {', '.join(sorted(protected))} directly.")
        unknown = set(patch) - set(_PATCH_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}.")

        changes = {}
        for key, value in patch.items():
            attr = _PATCH_FIELDS[key]
            if attr == "review_date":
                changes[attr] = self._check_review_date(value, self.today())
            elif attr == "status":
                changes[attr] = self._check_status(_clean_text(value))
            else:
                changes[attr] = _clean_text(value)
        if ("code" in changes and not changes["code"]) or ("name" in changes and not changes["name"]):
            raise ValidationError("Code and name cannot be blank.")

        category = changes.get("category", item.category)
        if category == TOOLS_CATEGORY and item.tools is None:
            changes["tools"] = ()
        elif category != TOOLS_CATEGORY and item.tools is not None:
            if item.tools:
                raise ValidationError("Withdraw the item's tools before changing its category.")
            changes["tools"] = None

        updated = replace(item, **changes)
        self._items[idx] = updated
        return updated

    def commit(self, updated: Item, movement: Movement) -> Movement:
        """Swap in ``updated`` and append ``movement`` as one step."""
        idx = self._index_of(updated.id)
        current = self._items[idx]
        if movement.item_id != updated.id or movement.id != self._next_movement_id:
            raise InventoryError("Movement does not belong to this commit.")
        if updated.quantity < 0 or updated.quantity != current.quantity + movement.delta:
            raise InventoryError(
                f"Quantity {updated.quantity} does not match {current.quantity} {movement.delta:+d}."
            )
        if updated.tools is not None and any(t.available <= 0 for t in updated.tools):
            raise InventoryError("Tool lists cannot hold empty entries.")

        self._items[idx] = updated
        self._movements.append(movement)
        self._next_movement_id += 1
        log.debug("Movement %s on item %s: %s %+d", movement.id, updated.id, movement.kind, movement.delta)
        return movement

    # ------------------------------------------------------------------
    # Plain data for persistence, export and import
    def dump(self) -> Dict[str, list]:
        return {
            "items": [it.to_dict() for it in self._items],
            "movements": [m.to_dict() for m in self._movements],
        }

    def snapshot(self, now: Optional[datetime.datetime] = None) -> dict:
        data = self.dump()
        data.update(
            {
                "exportDate": (now or self.now()).isoformat(),
                "version": self._settings.EXPORT_VERSION,
                "location": self._settings.SITE_LOCATION,
            }
        )
        return data

    def restore(self, items: Iterable[dict], movements: Iterable[dict]) -> None:
        """Replace both collections wholesale."""
        if items is None or movements is None:
            raise FormatError("Both items and movements are required.")
        new_items = [Item.from_dict(raw) for raw in items]
        new_movements = [Movement.from_dict(raw) for raw in movements]
        _check_unique([it.id for it in new_items], "item")
        _check_unique([m.id for m in new_movements], "movement")
        mismatched = _discrepancies(new_items, new_movements)

        self._items = new_items
        self._movements = new_movements
        self._next_item_id = _next_id(it.id for it in new_items)
        self._next_movement_id = _next_id(m.id for m in new_movements)
        log.info("Restored %d items and %d movements", len(new_items), len(new_movements))
        for item_id, (quantity, net) in mismatched.items():
            log.warning("Item %s quantity %d does not match movement total %d", item_id, quantity, net)
