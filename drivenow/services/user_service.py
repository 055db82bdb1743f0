from __future__ import annotations

import re
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from drivenow.exceptions import ValidationError
from drivenow.models.store import Store
from drivenow.models.user import UserAccount
from drivenow.utils.constants import Role

# Compile once at module import
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{6,}$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")
ROLES = (Role.ADMIN, Role.STAFF, Role.ACCOUNTANT)


def generate_hash(password: str) -> str:
    return generate_password_hash(password)


def check_hash(password: str, hashed: str) -> bool:
    try:
        return check_password_hash(hashed, password)
    except (TypeError, ValueError):
        return False


class UserService:
    """Back-office accounts: creation with password policy, and login checks."""

    @staticmethod
    def create_user(store: Store, username: str, password: str, role: str,
                    employee_id: Optional[int] = None) -> UserAccount:
        username = (username or "").strip()
        role = (role or "").lower().strip()
        errors = {}
        if not USERNAME_PATTERN.match(username):
            errors["username"] = "Username must be 3-30 chars (letters, digits, ., _, -)."
        if not PASSWORD_PATTERN.match(password or ""):
            errors["password"] = "Password must have at least 6 characters, including A-Z, a-z, and 0-9."
        elif password.lower() == username.lower():
            errors["password"] = "Password cannot be the same as username."
        if role not in ROLES:
            errors["role"] = f"Role must be one of {'/'.join(ROLES)}"
        if not errors and store.find_user(username):
            errors["username"] = "Username already exists."
        if errors:
            raise ValidationError(errors=errors)
        return store.create_user(username, generate_hash(password), role, employee_id)

    @staticmethod
    def authenticate(store: Store, username: str, password: str) -> Optional[UserAccount]:
        """Return the account when the credentials match, else None."""
        user = store.find_user((username or "").strip())
        if not user or not check_hash(password or "", user.password_hash):
            return None
        return user
