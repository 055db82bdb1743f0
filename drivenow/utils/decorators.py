from functools import wraps
from typing import Optional

from flask import current_app, session

from .responses import fail


def _auth_disabled() -> bool:
    return bool(current_app.config.get("LOGIN_DISABLED"))


def current_actor() -> Optional[str]:
    """Username recorded as CreatedBy/ChangedBy on the rows a request writes."""
    return session.get("username")


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not _auth_disabled() and "uid" not in session:
            return fail("Please login first", "Unauthorized", 401)
        return fn(*args, **kwargs)

    return wrapper


def role_required(*roles):
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if _auth_disabled():
                return fn(*args, **kwargs)
            if "uid" not in session:
                return fail("Please login first", "Unauthorized", 401)
            if session.get("role") not in roles:
                return fail("Insufficient permission", "Forbidden", 403)
            return fn(*args, **kwargs)

        return wrapper

    return deco
