# stockroom/models.py
from sqlalchemy import Column, DateTime, String, Text, func

from .db import Base


class StoredValue(Base):
    """One key of the ledger's key-value store (UTF-8 JSON text)."""

    __tablename__ = "kv_store"
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
