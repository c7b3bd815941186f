"""Transaction helpers shared by the session services."""
from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from models import storage
from models.stores import PasswordResetTokenStore, RefreshTokenStore, SessionStore
from services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Infrastructure failures, as opposed to constraint or programming errors.
STORE_OUTAGE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def store_guard():
    """Surface database outages as StoreUnavailable."""
    try:
        yield
    except STORE_OUTAGE_ERRORS as exc:
        logger.error("session store unavailable: %s", exc.__class__.__name__)
        storage.get_session().rollback()
        raise StoreUnavailable() from exc


@contextmanager
def unit_of_work():
    """One committed-or-rolled-back transaction; outages become StoreUnavailable."""
    with store_guard():
        with storage.transaction() as db:
            yield db


def session_store() -> SessionStore:
    return SessionStore(storage)


def refresh_token_store() -> RefreshTokenStore:
    return RefreshTokenStore(storage)


def reset_token_store() -> PasswordResetTokenStore:
    return PasswordResetTokenStore(storage)
