"""
Defaults Loader (``stockroom_config.loader``).

Responsibility
--------------
Parses ``defaults.yaml`` into a frozen ``StockroomDefaults``: the
department list, units, suggested categories, registration form fields,
app branding, and the seed administrator account.  These values are used
only when a state key has never been persisted.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from stockroom_kernel.domain.models import AppConfig, FormConfig, FormFieldSetting

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


@dataclass(frozen=True)
class SeedAdmin:
    id: str
    username: str
    password: str
    name: str
    department: str


@dataclass(frozen=True)
class StockroomDefaults:
    departments: tuple[str, ...]
    units: tuple[str, ...]
    categories: tuple[str, ...]
    form_config: FormConfig
    app_config: AppConfig
    seed_admin: SeedAdmin


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_form_config(fields: list[dict[str, Any]]) -> FormConfig:
    return FormConfig(fields=tuple(
        FormFieldSetting(
            id=f["id"],
            label=f["label"],
            is_enabled=bool(f.get("enabled", True)),
            is_required=bool(f.get("required", False)),
        )
        for f in fields
    ))


def parse_defaults(data: dict[str, Any]) -> StockroomDefaults:
    app = data.get("app", {})
    admin = data["seed_admin"]
    return StockroomDefaults(
        departments=tuple(data["departments"]),
        units=tuple(data.get("units", ())),
        categories=tuple(data.get("categories", ())),
        form_config=parse_form_config(data["form_fields"]),
        app_config=AppConfig(
            app_name=app.get("app_name", "InventoryPro"),
            logo_url=app.get("logo_url") or "",
        ),
        seed_admin=SeedAdmin(
            id=admin["id"],
            username=admin["username"],
            password=str(admin["password"]),
            name=admin["name"],
            department=admin["department"],
        ),
    )


def load_defaults(path: Path | None = None) -> StockroomDefaults:
    """Parse the packaged defaults, or ``path`` when given."""
    if path is None:
        return _packaged_defaults()
    return parse_defaults(load_yaml_file(path))


@lru_cache(maxsize=1)
def _packaged_defaults() -> StockroomDefaults:
    return parse_defaults(load_yaml_file(DEFAULTS_PATH))
