"""User and Role classes for access control."""

from typing import Dict, Optional


class Role:
    """A named set of page permissions."""

    def __init__(
        self,
        id: str,
        name: str,
        permissions: Optional[Dict[str, Dict[str, bool]]] = None,
    ):
        self.id = id
        self.name = name
        self.permissions = permissions or {}

    @property
    def is_admin(self) -> bool:
        return self.name.lower() == "admin"


USER_STATUSES = ("approved", "pending")


class User:
    """An application user."""

    def __init__(
        self,
        id: str,
        full_name: str,
        username: str,
        email: Optional[str] = None,
        role_id: Optional[str] = None,
        role: Optional[str] = None,
        status: str = "pending",
    ):
        self.id = id
        self.full_name = full_name
        self.username = username
        self.email = email
        self.role_id = role_id
        # Legacy role name; "admin" grants everything regardless of role_id
        self.role = role
        self.status = status or "pending"

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"
