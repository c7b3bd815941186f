"""
RefreshToken model: one row per refresh secret ever issued.
Fields:
- token_hash - sha256 of the opaque secret, unique (the secret itself is never stored)
- user_id (String(36)) - FK to users.id
- family - lineage id assigned at login and kept through every rotation
- expires_at
- revoked_at - null while the token is the active one of its family

Rows are never deleted on rotation; a revoked row is what lets a replay be recognised.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    family = Column(String(64), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_user_family", "user_id", "family"),
        # At most one active token per family.
        Index(
            "uq_refresh_tokens_active_family",
            "family",
            unique=True,
            sqlite_where=text("revoked_at IS NULL"),
            postgresql_where=text("revoked_at IS NULL"),
        ),
    )

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

    def __repr__(self):
        return f"<RefreshToken family={self.family} revoked={self.revoked}>"
