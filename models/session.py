"""
Session model: the server-side record of the access token currently held by a login.
Fields:
- user_id (String(36)) - FK to users.id
- token - the signed access token, unique
- family - refresh-token lineage that keeps this row current (plain tag, not a FK)
- expires_at - hard upper bound on the session lifetime, checked on every lookup
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from models.base_model import BaseModel, Base


class Session(BaseModel, Base):
    __tablename__ = "sessions"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(1024), nullable=False, unique=True)
    family = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sessions_user_family", "user_id", "family"),
    )

    def __repr__(self):
        return f"<Session user={self.user_id} family={self.family}>"
