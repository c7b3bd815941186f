from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from services.auth_context import resolve_identity


def login_required():
    """Resolve the session cookie into g.identity or answer 401."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = request.cookies.get(current_app.config["SESSION_COOKIE"])
            identity = resolve_identity(token)
            if identity is None:
                abort(401, description="Not authenticated")
            g.identity = identity
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the caller's role is one of required_roles.
    What each role may do is decided by the caller, not here.
    Naming a role outside ALLOWED_ROLES is a programming error.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @login_required()
        def wrapper(*args, **kwargs):
            unknown = req - set(current_app.config["ALLOWED_ROLES"])
            if unknown:
                raise RuntimeError(f"roles_required got unknown roles: {sorted(unknown)}")
            if g.identity.role not in req:
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
