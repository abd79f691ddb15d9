"""The single path through which an item's quantity changes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from stockroom.errors import ValidationError
from stockroom.inventory_utils import _clean_text
from stockroom.records import (
    INBOUND,
    OUTBOUND,
    SCOPE_TOOL,
    WITHDRAWAL,
    Movement,
    Tool,
)
from stockroom.services.ledger_store import LedgerStore

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingMovement:
    """A quantity change that still needs a reason and actor before commit."""

    item_id: object
    kind: str
    delta: int


def _require_count(value, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number.")
    return value


def _require_who_and_why(reason: str, actor: str) -> tuple[str, str]:
    reason_s = _clean_text(reason)
    actor_s = _clean_text(actor)
    if not reason_s:
        raise ValidationError("A reason is required.")
    if not actor_s:
        raise ValidationError("Who made the change is required.")
    return reason_s, actor_s


class MovementReconciler:
    """Turns requested quantity changes into paired (item, movement) commits."""

    def __init__(self, store: LedgerStore):
        self._store = store

    # ------------------------------------------------------------------
    # Item-level movements
    def apply_movement(self, item_id, kind: str, delta: int, reason: str, actor: str) -> Optional[Movement]:
        """Apply an Inbound/Outbound of ``delta`` units.

        ``delta`` is the requested magnitude; the sign comes from ``kind``.
        Outbound changes are clamped at zero and the movement records the
        delta actually applied. Returns ``None`` when nothing changed.
        """
        if kind not in (INBOUND, OUTBOUND):
            raise ValidationError(f"Movement kind must be {INBOUND!r} or {OUTBOUND!r}.")
        magnitude = _require_count(delta, "Quantity")
        if magnitude < 0:
            raise ValidationError("Quantity cannot be negative.")
        reason_s, actor_s = _require_who_and_why(reason, actor)

        item = self._store.get_item(item_id)
        signed = magnitude if kind == INBOUND else -magnitude
        new_quantity = max(0, item.quantity + signed)
        applied = new_quantity - item.quantity
        if applied == 0:
            return None

        movement = self._store.new_movement(item.id, kind, applied, reason_s, actor_s)
        return self._store.commit(replace(item, quantity=new_quantity), movement)

    def plan_quantity_edit(self, item_id, new_quantity: int) -> Optional[PendingMovement]:
        """Work out the movement a direct quantity edit implies, if any."""
        target = _require_count(new_quantity, "Quantity")
        if target < 0:
            raise ValidationError("Quantity cannot be negative.")
        item = self._store.get_item(item_id)
        delta = target - item.quantity
        if delta == 0:
            return None
        return PendingMovement(item_id=item.id, kind=INBOUND if delta > 0 else OUTBOUND, delta=abs(delta))

    def set_quantity(self, item_id, new_quantity: int, reason: str, actor: str) -> Optional[Movement]:
        pending = self.plan_quantity_edit(item_id, new_quantity)
        if pending is None:
            return None
        return self.apply_movement(pending.item_id, pending.kind, pending.delta, reason, actor)

    def step(self, item_id, direction: int, reason: str, actor: str) -> Optional[Movement]:
        """The +/- stepper: one unit in the direction of ``direction``."""
        if direction == 0:
            return None
        kind = INBOUND if direction > 0 else OUTBOUND
        return self.apply_movement(item_id, kind, 1, reason, actor)

    # ------------------------------------------------------------------
    # Tool sub-ledger
    def _toolbox(self, item_id):
        item = self._store.get_item(item_id)
        if item.tools is None:
            raise ValidationError(f"Item {item.code} does not hold tools.")
        return item

    def withdraw_tool(self, item_id, tool_name: str, count: int, reason: str, actor: str) -> Movement:
        n = _require_count(count, "Count")
        name = _clean_text(tool_name)
        reason_s, actor_s = _require_who_and_why(reason, actor)
        item = self._toolbox(item_id)

        idx = next((i for i, t in enumerate(item.tools) if t.name == name), None)
        if idx is None:
            raise ValidationError(f"No tool named {name!r} in {item.code}.")
        tool = item.tools[idx]
        if n <= 0 or n > tool.available:
            raise ValidationError(f"Can withdraw between 1 and {tool.available} of {name}.")
        if n > item.quantity:
            raise ValidationError(f"Only {item.quantity} units of {item.code} on hand.")

        tools = list(item.tools)
        if tool.available == n:
            del tools[idx]
        else:
            tools[idx] = replace(tool, available=tool.available - n)

        movement = self._store.new_movement(
            item.id,
            WITHDRAWAL,
            -n,
            f"Withdrawal of {n}x {name} - {reason_s}",
            actor_s,
            scope=SCOPE_TOOL,
            tool_name=name,
        )
        log.debug("Withdrawing %dx %s from item %s", n, name, item.id)
        return self._store.commit(replace(item, quantity=item.quantity - n, tools=tuple(tools)), movement)

    def add_tool(self, item_id, tool_name: str, count: int, actor: str, reason: Optional[str] = None) -> Movement:
        n = _require_count(count, "Count")
        name = _clean_text(tool_name)
        actor_s = _clean_text(actor)
        if not name:
            raise ValidationError("Tool name is required.")
        if n <= 0:
            raise ValidationError("Count must be greater than zero.")
        if not actor_s:
            raise ValidationError("Who made the change is required.")
        item = self._toolbox(item_id)

        tools = list(item.tools)
        idx = next((i for i, t in enumerate(tools) if t.name == name), None)
        if idx is None:
            tools.append(Tool(name=name, available=n))
        else:
            tools[idx] = replace(tools[idx], available=tools[idx].available + n)

        text = f"Added {n}x {name}"
        if _clean_text(reason):
            text = f"{text} - {_clean_text(reason)}"
        movement = self._store.new_movement(
            item.id,
            INBOUND,
            n,
            text,
            actor_s,
            scope=SCOPE_TOOL,
            tool_name=name,
        )
        return self._store.commit(replace(item, quantity=item.quantity + n, tools=tuple(tools)), movement)
