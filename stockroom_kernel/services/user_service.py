"""
UserService -- sign-in and account administration.

Responsibility:
    Login/logout of the single session user, and account CRUD, password
    reset and permission assignment for administrators.

Architecture position:
    Kernel > Services.  Writes ``InventoryState.users`` and
    ``InventoryState.current_user``.

Invariants enforced:
    - Usernames are unique, compared case-insensitively.
    - The built-in ``admin`` account cannot be deleted.
    - Administrators always hold every permission.
    - Updating the signed-in account refreshes the session copy.

Passwords are stored and compared in plaintext, with no lockout or rate
limit; this matches the browser application and is recorded as an open
security question rather than fixed here.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable
from uuid import uuid4

from stockroom_kernel.domain.clock import Clock, SystemClock
from stockroom_kernel.domain.models import User, UserRole
from stockroom_kernel.domain.permissions import (
    ADMIN_PERMISSIONS,
    DEFAULT_USER_PERMISSIONS,
    Permission,
    require_permission,
)
from stockroom_kernel.domain.validation import validate_department
from stockroom_kernel.exceptions import (
    AuthenticationError,
    DuplicateUsernameError,
    MissingFieldError,
    ProtectedAccountError,
)
from stockroom_kernel.logging_config import LogContext, get_logger
from stockroom_kernel.services.state_store import StateRepository
from stockroom_kernel.state import KEY_CURRENT_USER, KEY_USERS, InventoryState

logger = get_logger("services.user")

PROTECTED_USERNAME = "admin"

_UPDATABLE = frozenset({"username", "password", "name", "department", "role", "permissions"})


class UserService:
    """Accounts and the current session."""

    def __init__(
        self,
        state: InventoryState,
        repository: StateRepository | None = None,
        clock: Clock | None = None,
    ):
        self._state = state
        self._repository = repository
        self._clock = clock or SystemClock()

    def _persist(self, *keys: str) -> None:
        if self._repository is not None:
            self._repository.persist(self._state, *keys)

    def _find_username(self, username: str) -> User | None:
        wanted = username.lower()
        for user in self._state.users:
            if user.username.lower() == wanted:
                return user
        return None

    # -----------------------------------------------------------------
    # Session
    # -----------------------------------------------------------------

    def login(self, username: str, password: str) -> User:
        """Sign in; username is case-insensitive, password exact."""
        user = self._find_username(username)
        if user is None or user.password != password:
            logger.warning("login_failed", extra={"username": username})
            raise AuthenticationError(username)
        self._state.current_user = user
        with LogContext.bind(actor_id=user.id):
            logger.info("login_succeeded", extra={"username": user.username})
        self._persist(KEY_CURRENT_USER)
        return user

    def logout(self) -> None:
        user = self._state.current_user
        self._state.current_user = None
        if user is not None:
            logger.info("logged_out", extra={"username": user.username})
        self._persist(KEY_CURRENT_USER)

    # -----------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------

    def add_user(
        self,
        actor: User,
        *,
        username: str,
        password: str,
        name: str,
        department: str,
        role: UserRole | str = UserRole.USER,
        permissions: Iterable[Permission] | None = None,
    ) -> User:
        """
        Create an account.

        New non-admin accounts get INV_VIEW, IND_VIEW and DASHBOARD_VIEW
        unless ``permissions`` is given; admins get everything.
        """
        require_permission(actor, Permission.USER_MANAGE)
        missing = [
            label for label, value in
            (("username", username), ("password", password), ("name", name))
            if not value or not value.strip()
        ]
        if missing:
            raise MissingFieldError(missing)
        if self._find_username(username) is not None:
            raise DuplicateUsernameError(username)
        validate_department(department, self._state.departments)

        role = UserRole(role)
        if role == UserRole.ADMIN:
            granted = ADMIN_PERMISSIONS
        elif permissions is None:
            granted = DEFAULT_USER_PERMISSIONS
        else:
            granted = frozenset(Permission(p) for p in permissions)

        user = User(
            id=str(uuid4()),
            username=username.strip(),
            password=password,
            name=name.strip(),
            department=department,
            role=role,
            permissions=granted,
            created_at=self._clock.now(),
        )
        self._state.users.append(user)
        with LogContext.bind(actor_id=actor.id):
            logger.info(
                "user_added",
                extra={"user_id": user.id, "username": user.username, "role": role.value},
            )
        self._persist(KEY_USERS)
        return user

    def update_user(self, actor: User, user_id: str, **changes: Any) -> User:
        """Replace account fields; the session copy follows if it is this user."""
        require_permission(actor, Permission.USER_MANAGE)
        return self._update(actor, user_id, changes)

    def _update(self, actor: User, user_id: str, changes: dict[str, Any]) -> User:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user field(s): {', '.join(sorted(unknown))}")
        user = self._state.user(user_id)

        updates = dict(changes)
        if "username" in updates:
            clash = self._find_username(updates["username"])
            if clash is not None and clash.id != user.id:
                raise DuplicateUsernameError(updates["username"])
        if "department" in updates:
            validate_department(updates["department"], self._state.departments)
        if "role" in updates:
            updates["role"] = UserRole(updates["role"])
        if "permissions" in updates:
            updates["permissions"] = frozenset(Permission(p) for p in updates["permissions"])
        if updates.get("role", user.role) == UserRole.ADMIN:
            updates["permissions"] = ADMIN_PERMISSIONS

        updated = replace(user, **updates)
        self._state.users = [updated if u.id == user.id else u for u in self._state.users]
        keys = [KEY_USERS]
        current = self._state.current_user
        if current is not None and current.id == updated.id:
            self._state.current_user = updated
            keys.append(KEY_CURRENT_USER)

        with LogContext.bind(actor_id=actor.id):
            # Never log the password itself.
            logger.info(
                "user_updated",
                extra={"user_id": user.id, "fields": sorted(changes)},
            )
        self._persist(*keys)
        return updated

    def delete_user(self, actor: User, user_id: str) -> None:
        require_permission(actor, Permission.USER_MANAGE)
        user = self._state.user(user_id)
        if user.username.lower() == PROTECTED_USERNAME:
            raise ProtectedAccountError(user.username)
        self._state.users = [u for u in self._state.users if u.id != user.id]
        with LogContext.bind(actor_id=actor.id):
            logger.info("user_deleted", extra={"user_id": user.id, "username": user.username})
        self._persist(KEY_USERS)

    def reset_password(self, actor: User, user_id: str, new_password: str) -> User:
        require_permission(actor, Permission.USER_PASS_RESET)
        if not new_password:
            raise MissingFieldError(["password"])
        return self._update(actor, user_id, {"password": new_password})

    def set_permissions(
        self,
        actor: User,
        user_id: str,
        permissions: Iterable[Permission],
    ) -> User:
        """Replace a user's grant.  Ignored for administrators."""
        require_permission(actor, Permission.USER_MANAGE)
        return self._update(actor, user_id, {"permissions": frozenset(permissions)})
