"""Errors raised by ledger operations.

Every error is local to the call that raised it and leaves the ledger
untouched; callers surface the message and may retry with corrected input.
"""
from __future__ import annotations


class InventoryError(Exception):
    """Raised when an inventory command cannot be processed."""


class ValidationError(InventoryError):
    """Missing or invalid input (required fields, dates, quantities)."""


class NotFoundError(InventoryError):
    """An operation referenced an item id the ledger does not hold."""

    def __init__(self, item_id: object):
        super().__init__(f"Item {item_id!r} not found.")
        self.item_id = item_id


class FormatError(InventoryError):
    """An import document or stored payload is malformed."""
