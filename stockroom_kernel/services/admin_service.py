"""
AdminService -- departments, registration form settings, app branding.

Departments are plain names.  Removing one never touches products, indents
or users still tagged with it.  ``All`` is reserved for the view filter.
"""

from __future__ import annotations

from dataclasses import replace

from stockroom_kernel.domain.models import (
    ALL_DEPARTMENTS,
    PROTECTED_FORM_FIELDS,
    AppConfig,
    FormConfig,
    FormFieldSetting,
    User,
)
from stockroom_kernel.domain.permissions import Permission, require_permission
from stockroom_kernel.exceptions import (
    DepartmentNotFoundError,
    DuplicateDepartmentError,
    InvalidDepartmentError,
    ProtectedFieldError,
)
from stockroom_kernel.logging_config import LogContext, get_logger
from stockroom_kernel.services.state_store import StateRepository
from stockroom_kernel.state import (
    KEY_APP_CONFIG,
    KEY_DEPARTMENTS,
    KEY_FORM_CONFIG,
    InventoryState,
)

logger = get_logger("services.admin")


class AdminService:
    def __init__(self, state: InventoryState, repository: StateRepository | None = None):
        self._state = state
        self._repository = repository

    def _persist(self, *keys: str) -> None:
        if self._repository is not None:
            self._repository.persist(self._state, *keys)

    # Departments

    def add_department(self, actor: User, department: str) -> list[str]:
        require_permission(actor, Permission.DEPT_MANAGE)
        name = (department or "").strip()
        if not name:
            raise InvalidDepartmentError(department or "", "department is required")
        if name == ALL_DEPARTMENTS:
            raise InvalidDepartmentError(name, "'All' is reserved")
        if name in self._state.departments:
            raise DuplicateDepartmentError(name)
        self._state.departments.append(name)
        with LogContext.bind(actor_id=actor.id):
            logger.info("department_added", extra={"department_name": name})
        self._persist(KEY_DEPARTMENTS)
        return list(self._state.departments)

    def delete_department(self, actor: User, department: str) -> list[str]:
        require_permission(actor, Permission.DEPT_MANAGE)
        if department not in self._state.departments:
            raise DepartmentNotFoundError(department)
        self._state.departments = [d for d in self._state.departments if d != department]
        with LogContext.bind(actor_id=actor.id):
            logger.info("department_deleted", extra={"department_name": department})
        self._persist(KEY_DEPARTMENTS)
        return list(self._state.departments)

    # Registration form

    def _replace_field(self, field_id: str, **flags: bool) -> FormFieldSetting:
        setting = self._state.form_config.get(field_id)
        if setting is None:
            raise KeyError(f"Unknown form field: {field_id}")
        updated = replace(setting, **flags)
        self._state.form_config = FormConfig(fields=tuple(
            updated if f.id == field_id else f for f in self._state.form_config.fields
        ))
        return updated

    def toggle_field_enabled(self, actor: User, field_id: str) -> FormFieldSetting:
        """Show or hide a registration field.  name, quantity and unit are locked."""
        require_permission(actor, Permission.SETTINGS_ACCESS)
        if field_id in PROTECTED_FORM_FIELDS:
            raise ProtectedFieldError(field_id)
        current = self._state.form_config.get(field_id)
        if current is None:
            raise KeyError(f"Unknown form field: {field_id}")
        updated = self._replace_field(field_id, is_enabled=not current.is_enabled)
        logger.info(
            "form_field_toggled",
            extra={"field_id": field_id, "is_enabled": updated.is_enabled},
        )
        self._persist(KEY_FORM_CONFIG)
        return updated

    def toggle_field_required(self, actor: User, field_id: str) -> FormFieldSetting:
        require_permission(actor, Permission.SETTINGS_ACCESS)
        if field_id in PROTECTED_FORM_FIELDS:
            raise ProtectedFieldError(field_id)
        current = self._state.form_config.get(field_id)
        if current is None:
            raise KeyError(f"Unknown form field: {field_id}")
        updated = self._replace_field(field_id, is_required=not current.is_required)
        logger.info(
            "form_field_toggled",
            extra={"field_id": field_id, "is_required": updated.is_required},
        )
        self._persist(KEY_FORM_CONFIG)
        return updated

    # Branding

    def update_app_config(
        self,
        actor: User,
        *,
        app_name: str | None = None,
        logo_url: str | None = None,
    ) -> AppConfig:
        require_permission(actor, Permission.SETTINGS_ACCESS)
        config = self._state.app_config
        self._state.app_config = AppConfig(
            app_name=app_name.strip() if app_name and app_name.strip() else config.app_name,
            logo_url=config.logo_url if logo_url is None else logo_url,
        )
        logger.info("app_config_updated", extra={"app_name": self._state.app_config.app_name})
        self._persist(KEY_APP_CONFIG)
        return self._state.app_config
