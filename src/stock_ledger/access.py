"""Access gate — password checks, the role gate, and user management.

Callers (an HTTP layer, a script) authenticate once and hand the
resulting :class:`Principal` to every engine call. Engines trust it and
only use its id for attribution; admin-only operations call
:func:`require_admin`. Token issuance lives outside this package.
"""

import logging
from dataclasses import dataclass

import bcrypt

from stock_ledger.config import Config
from stock_ledger.database.models import USER_ROLES, User
from stock_ledger.database.repository import Repository
from stock_ledger.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from stock_ledger.inventory.validation import parse_positive_int

logger = logging.getLogger(__name__)

# The seeded administrator; never deletable
DEFAULT_ADMIN_ID = 1


@dataclass(frozen=True)
class Principal:
    id: int
    username: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, username=user.username, role=user.role)


def hash_password(password: str, rounds: int = None) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds or Config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Return True if ``password`` matches the stored bcrypt hash."""
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def require_admin(principal: Principal):
    if not principal.is_admin:
        raise AuthorizationError("Admin access required")


class AccessGate:
    """Credential checks and admin-only user management."""

    def __init__(self, repo: Repository):
        self.repo = repo

    def authenticate(self, username: str, password: str) -> Principal:
        if not username or not password:
            raise ValidationError("Username and password required")
        user = self.repo.get_user_by_username(username)
        if (user is None or not user.is_active
                or not verify_password(password, user.password)):
            logger.warning("Failed login for %r", username)
            raise AuthorizationError("Invalid credentials")
        return Principal.from_user(user)

    def verify_credential(self, principal: Principal, password: str):
        """Re-check the caller's password before a destructive operation."""
        if not password:
            raise ValidationError("Password required", field="password")
        user = self.repo.get_user_by_id(principal.id)
        if user is None:
            raise NotFoundError("User", principal.id)
        if not user.is_active:
            logger.warning("Inactive user %s tried to confirm an action",
                           principal.id)
            raise AuthorizationError("Account is deactivated")
        if not verify_password(password, user.password):
            logger.warning("Password confirmation failed for user %s",
                           principal.id)
            raise AuthorizationError("Invalid password")

    def current_user(self, principal: Principal) -> User:
        user = self.repo.get_user_by_id(principal.id)
        if user is None:
            raise NotFoundError("User", principal.id)
        return user

    # ── User management (admin only) ────────────────────────────

    def list_users(self, principal: Principal) -> list[User]:
        require_admin(principal)
        return self.repo.get_all_users()

    def create_user(self, principal: Principal, username: str,
                    password: str, full_name: str = "",
                    role: str = "user") -> int:
        require_admin(principal)
        if not username or not password:
            raise ValidationError("Username and password required")
        role = role or "user"
        if role not in USER_ROLES:
            raise ValidationError(f"Unknown role {role!r}", field="role")
        if self.repo.get_user_by_username(username):
            raise ConflictError("Username already exists")

        user_id = self.repo.create_user(User(
            username=username,
            password=hash_password(password),
            full_name=full_name or "",
            role=role,
        ))
        logger.info("User %s created by %s", username, principal.username)
        return user_id

    def update_user(self, principal: Principal, user_id: int,
                    full_name: str, role: str, is_active: bool,
                    password: str = None):
        """Rewrite name, role and active flag; replace password if given."""
        require_admin(principal)
        user_id = parse_positive_int(user_id, "user_id", "User ID")
        if role not in USER_ROLES:
            raise ValidationError(f"Unknown role {role!r}", field="role")
        user = self.repo.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        user.full_name = full_name or ""
        user.role = role
        user.is_active = 1 if is_active else 0
        if password:
            user.password = hash_password(password)
        self.repo.update_user(user)

    def delete_user(self, principal: Principal, user_id: int):
        require_admin(principal)
        user_id = parse_positive_int(user_id, "user_id", "User ID")
        if user_id == DEFAULT_ADMIN_ID:
            raise ValidationError("Cannot delete default admin")
        if self.repo.get_user_by_id(user_id) is None:
            raise NotFoundError("User", user_id)
        if self.repo.count_user_transactions(user_id):
            raise ConflictError(
                "User has recorded transactions; deactivate instead"
            )
        self.repo.delete_user(user_id)
        logger.info("User %s deleted by %s", user_id, principal.username)
