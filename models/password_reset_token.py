"""
PasswordResetToken model: a single-use link to set a new password without logging in.
Fields:
- token_hash - sha256 of the emailed token, unique
- user_id (String(36)) - FK to users.id
- expires_at
- used_at - stamped when the token sets a password; a used token never works again

A user holds at most one outstanding token: requesting a new link deletes the old ones.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from models.base_model import BaseModel, Base


class PasswordResetToken(BaseModel, Base):
    __tablename__ = "password_reset_tokens"

    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def used(self) -> bool:
        return self.used_at is not None

    def __repr__(self):
        return f"<PasswordResetToken user={self.user_id} used={self.used}>"
