"""Page/capability permission table."""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from .user import Role, User


class Page(Enum):
    DASHBOARD = "dashboard"
    SERVICES = "services"
    BILLING = "billing"
    FUELING = "fueling"
    REGISTRIES = "registries"
    SETTINGS = "settings"
    SCHEDULES = "schedules"
    MAINTENANCE = "maintenance"


class Capability(Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"


Permissions = Dict[Page, FrozenSet[Capability]]

ALL_CAPABILITIES = frozenset(Capability)


def full_permissions() -> Permissions:
    """Every capability on every page."""
    return {page: ALL_CAPABILITIES for page in Page}


def parse_permissions(raw: Optional[Dict[str, Dict[str, bool]]]) -> Permissions:
    """
    Convert a stored role permission map into the table form.

    Stored maps look like {"services": {"view": true, "create": false}}.
    Unknown page or capability names are ignored.
    """
    pages = {p.value: p for p in Page}
    capabilities = {c.value: c for c in Capability}
    table: Permissions = {}
    for page_name, flags in (raw or {}).items():
        page = pages.get(page_name)
        if page is None or not flags:
            continue
        granted = frozenset(
            capabilities[name]
            for name, enabled in flags.items()
            if enabled and name in capabilities
        )
        if granted:
            table[page] = granted
    return table


def dump_permissions(table: Permissions) -> Dict[str, Dict[str, bool]]:
    """Convert a permission table back to the stored map form."""
    return {
        page.value: {c.value: c in table.get(page, frozenset()) for c in Capability}
        for page in Page
        if table.get(page)
    }


def resolve_permissions(user: Optional[User], roles: Iterable[Role]) -> Permissions:
    """
    Effective permissions for a user.

    - No user or a pending user: nothing
    - Legacy role "admin" or a role named admin: everything
    - Otherwise: the user's role table (empty if the role is missing)
    """
    if user is None or not user.is_approved:
        return {}
    if (user.role or "").lower() == "admin":
        return full_permissions()

    role = next((r for r in roles if r.id == user.role_id), None)
    if role is None:
        return {}
    if role.is_admin:
        return full_permissions()
    return parse_permissions(role.permissions)


def has_permission(table: Permissions, page: Page, capability: Capability) -> bool:
    """Direct lookup in a permission table."""
    return capability in table.get(page, frozenset())
