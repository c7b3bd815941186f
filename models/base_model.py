#!/usr/bin/env python3
"""
Shared SQLAlchemy base for the auth session models.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- save() that goes through DBStorage

Notes:
- Server-side defaults (func.now()) set the timestamps on insert.
- Expiry/revocation timestamps are naive UTC: SQLite drops tzinfo on the
  way back, so every comparison is done against utils.security.utcnow().
"""

from __future__ import annotations

import uuid

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
import models

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from utils.security import utcnow

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at
    and save() wired to DBStorage.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        # Ensure an id exists if caller passed none
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def save(self):
        """Persist the instance and commit."""
        self.updated_at = utcnow()
        models.storage.new(self)
        models.storage.save()
