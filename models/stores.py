"""
Store operations over the Session, RefreshToken and PasswordResetToken tables.

No store commits: callers group their writes in storage.transaction()
so a login or a rotation lands as one unit.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update

from models.password_reset_token import PasswordResetToken
from models.refresh_token import RefreshToken
from models.session import Session
from utils.security import hash_secret


class SessionStore:
    def __init__(self, storage):
        self.storage = storage

    @property
    def db(self):
        return self.storage.get_session()

    def create(self, user_id: str, token: str, family: Optional[str], expires_at: datetime) -> Session:
        row = Session(user_id=user_id, token=token, family=family, expires_at=expires_at)
        self.db.add(row)
        self.db.flush()
        return row

    def find_by_token(self, token: str) -> Optional[Session]:
        if not token:
            return None
        return self.db.execute(
            select(Session).where(Session.token == token).execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def replace_for_family(self, user_id: str, family: str, token: str, expires_at: datetime) -> Session:
        """Overwrite the session row kept current by this lineage, or start one."""
        row = self.db.execute(
            select(Session).where(Session.user_id == user_id, Session.family == family)
        ).scalars().first()
        if row is None:
            return self.create(user_id, token, family, expires_at)
        row.token = token
        row.expires_at = expires_at
        self.db.flush()
        return row

    def for_user(self, user_id: str) -> List[Session]:
        return list(self.db.execute(select(Session).where(Session.user_id == user_id)).scalars())

    def delete_for_user(self, user_id: str) -> int:
        result = self.db.execute(
            delete(Session).where(Session.user_id == user_id).execution_options(synchronize_session=False)
        )
        return result.rowcount


class RefreshTokenStore:
    def __init__(self, storage):
        self.storage = storage

    @property
    def db(self):
        return self.storage.get_session()

    def create(self, user_id: str, secret: str, family: str, expires_at: datetime) -> RefreshToken:
        row = RefreshToken(
            user_id=user_id,
            token_hash=hash_secret(secret),
            family=family,
            expires_at=expires_at,
            revoked_at=None,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def find_by_secret(self, secret: str) -> Optional[RefreshToken]:
        if not secret:
            return None
        return self.db.execute(
            select(RefreshToken)
            .where(RefreshToken.token_hash == hash_secret(secret))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def revoke_if_active(self, token_id: str, now: datetime) -> bool:
        """
        Compare-and-swap on the revocation flag.
        True only for the single caller whose UPDATE flipped revoked_at from NULL.
        """
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def revoke_family(self, family: str, now: datetime, include_revoked: bool = False) -> int:
        """
        Revoke the family's active token. With include_revoked every row is
        stamped, historical ones included (theft response).
        """
        stmt = update(RefreshToken).where(RefreshToken.family == family)
        if not include_revoked:
            stmt = stmt.where(RefreshToken.revoked_at.is_(None))
        result = self.db.execute(stmt.values(revoked_at=now).execution_options(synchronize_session=False))
        return result.rowcount

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def in_family(self, family: str) -> List[RefreshToken]:
        return list(self.db.execute(
            select(RefreshToken).where(RefreshToken.family == family).execution_options(populate_existing=True)
        ).scalars())

    def active_in_family(self, family: str) -> List[RefreshToken]:
        return [row for row in self.in_family(family) if row.revoked_at is None]


class PasswordResetTokenStore:
    def __init__(self, storage):
        self.storage = storage

    @property
    def db(self):
        return self.storage.get_session()

    def create(self, user_id: str, token: str, expires_at: datetime) -> PasswordResetToken:
        row = PasswordResetToken(user_id=user_id, token_hash=hash_secret(token), expires_at=expires_at)
        self.db.add(row)
        self.db.flush()
        return row

    def find_by_token(self, token: str) -> Optional[PasswordResetToken]:
        if not token:
            return None
        return self.db.execute(
            select(PasswordResetToken)
            .where(PasswordResetToken.token_hash == hash_secret(token))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def mark_used_if_unused(self, token_id: str, now: datetime) -> bool:
        """Single use: True only for the caller whose UPDATE stamped used_at."""
        result = self.db.execute(
            update(PasswordResetToken)
            .where(PasswordResetToken.id == token_id, PasswordResetToken.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete(self, token_id: str) -> int:
        result = self.db.execute(
            delete(PasswordResetToken)
            .where(PasswordResetToken.id == token_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_for_user(self, user_id: str) -> int:
        result = self.db.execute(
            delete(PasswordResetToken)
            .where(PasswordResetToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
