"""Plain records held by the ledger, and their wire format."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Optional, Tuple

from stockroom.errors import FormatError, ValidationError
from stockroom.inventory_utils import (
    _clean_text,
    _translate_term,
    coerce_quantity,
    parse_date,
    parse_timestamp,
)

CATEGORIES = ('Tools', 'Electrical', 'Plumbing', 'Painting', 'Gardening', 'Cleaning', 'Safety', 'HVAC', 'Other')
TOOLS_CATEGORY = 'Tools'
STATUSES = ('Good condition', 'Needs review', 'Needs repair', 'Out of service')
REASONS = ('Restock', 'Maintenance use', 'Correction', 'Other')
ALL = 'all'

CREATION = 'Creation'
INBOUND = 'Inbound'
OUTBOUND = 'Outbound'
WITHDRAWAL = 'Withdrawal'
MOVEMENT_KINDS = (CREATION, INBOUND, OUTBOUND, WITHDRAWAL)

SCOPE_ITEM = 'item'
SCOPE_TOOL = 'tool'


@dataclass(frozen=True)
class Tool:
    name: str
    available: int

    def to_dict(self) -> dict:
        return {'name': self.name, 'available': self.available}


@dataclass(frozen=True)
class Item:
    id: int
    code: str
    name: str
    category: str
    location: str
    quantity: int
    status: str
    review_date: Optional[datetime.date]
    notes: str
    tools: Optional[Tuple[Tool, ...]] = None

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'category': self.category,
            'location': self.location,
            'quantity': self.quantity,
            'status': self.status,
            'reviewDate': self.review_date.isoformat() if self.review_date else '',
            'notes': self.notes,
        }
        if self.tools is not None:
            data['tools'] = [t.to_dict() for t in self.tools]
        return data

    @classmethod
    def from_dict(cls, raw: dict) -> 'Item':
        if not isinstance(raw, dict):
            raise FormatError("Item record must be an object.")
        if 'codi' in raw or 'nom' in raw:
            raw = _legacy_item(raw)
        item_id = _record_id(raw, 'id', 'Item')
        try:
            review_date = parse_date(raw.get('reviewDate'))
        except ValidationError as exc:
            raise FormatError(str(exc)) from exc
        category = _clean_text(raw.get('category'))
        status = _clean_text(raw.get('status')) or STATUSES[0]
        if status not in STATUSES:
            raise FormatError(f"Item {item_id!r} has unknown status {status!r}.")
        tools = None
        if raw.get('tools') is not None:
            if not isinstance(raw['tools'], list):
                raise FormatError("Item 'tools' must be a list.")
            tools = tuple(
                Tool(name=_clean_text(t.get('name')), available=coerce_quantity(t.get('available')))
                for t in raw['tools']
                if isinstance(t, dict) and coerce_quantity(t.get('available')) > 0
            )
        if category == TOOLS_CATEGORY and tools is None:
            tools = ()
        elif category != TOOLS_CATEGORY and tools is not None:
            if tools:
                raise FormatError(f"Item {item_id!r} holds tools outside the {TOOLS_CATEGORY} category.")
            tools = None
        return cls(
            id=item_id,
            code=_clean_text(raw.get('code')),
            name=_clean_text(raw.get('name')),
            category=category,
            location=_clean_text(raw.get('location')),
            quantity=coerce_quantity(raw.get('quantity')),
            status=status,
            review_date=review_date,
            notes=_clean_text(raw.get('notes')),
            tools=tools,
        )


@dataclass(frozen=True)
class Movement:
    id: int
    item_id: int
    kind: str
    delta: int
    reason: str
    actor: str
    timestamp: datetime.datetime
    scope: str = SCOPE_ITEM
    tool_name: Optional[str] = None

    @property
    def is_tool_movement(self) -> bool:
        return self.scope == SCOPE_TOOL

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'itemId': self.item_id,
            'kind': self.kind,
            'delta': self.delta,
            'reason': self.reason,
            'actor': self.actor,
            'timestamp': self.timestamp.isoformat(),
            'scope': self.scope,
        }
        if self.tool_name is not None:
            data['toolName'] = self.tool_name
        return data

    @classmethod
    def from_dict(cls, raw: dict) -> 'Movement':
        if not isinstance(raw, dict):
            raise FormatError("Movement record must be an object.")
        if 'tipus' in raw or 'motiu' in raw:
            raw = _legacy_movement(raw)
        movement_id = _record_id(raw, 'id', 'Movement')
        item_id = _record_id(raw, 'itemId', 'Movement')
        if raw.get('timestamp') is None:
            raise FormatError("Movement record is missing 'timestamp'.")
        try:
            delta = int(raw.get('delta', 0))
            timestamp = parse_timestamp(raw['timestamp'])
        except (TypeError, ValueError) as exc:
            raise FormatError(f"Malformed movement {raw.get('id')!r}: {exc}") from exc
        scope = raw.get('scope') or SCOPE_ITEM
        if scope not in (SCOPE_ITEM, SCOPE_TOOL):
            raise FormatError(f"Unknown movement scope {scope!r}.")
        return cls(
            id=movement_id,
            item_id=item_id,
            kind=_clean_text(raw.get('kind')),
            delta=delta,
            reason=_clean_text(raw.get('reason')),
            actor=_clean_text(raw.get('actor')),
            timestamp=timestamp,
            scope=scope,
            tool_name=raw.get('toolName') if scope == SCOPE_TOOL else None,
        )


def _record_id(raw: dict, key: str, label: str):
    value = raw.get(key)
    if value is None:
        raise FormatError(f"{label} record is missing {key!r}.")
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise FormatError(f"{label} {key!r} must be a number or a string, got {value!r}.")
    return value


def _legacy_item(raw: dict) -> dict:
    eines = raw.get('eines')
    return {
        'id': raw.get('id'),
        'code': raw.get('codi'),
        'name': raw.get('nom'),
        'category': _translate_term(raw.get('categoria') or ''),
        'location': raw.get('ubicacio'),
        'quantity': raw.get('quantitat'),
        'status': _translate_term(raw.get('estat') or ''),
        'reviewDate': raw.get('dataRevisio'),
        'notes': raw.get('observacions'),
        'tools': (
            [{'name': e.get('nom'), 'available': e.get('disponible')} for e in eines if isinstance(e, dict)]
            if isinstance(eines, list) else None
        ),
    }


def _legacy_movement(raw: dict) -> dict:
    reason = _clean_text(raw.get('motiu'))
    kind = _translate_term(raw.get('tipus') or '')
    # Old records only hint at tool movements through their wording
    low = reason.lower()
    is_tool = kind == WITHDRAWAL or 'eina' in low or low.startswith('afegides ')
    return {
        'id': raw.get('id'),
        'itemId': raw.get('itemId'),
        'kind': kind,
        'delta': raw.get('quantitat', 0),
        'reason': reason,
        'actor': raw.get('user'),
        'timestamp': raw.get('when'),
        'scope': SCOPE_TOOL if is_tool else SCOPE_ITEM,
    }
