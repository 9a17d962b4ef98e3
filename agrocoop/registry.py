"""Field rules for registry records and settings.

Input arrives as camelCase dicts from the CLI or the JSON API. The clean
functions check and coerce that input into rows ready for the store.
"""

import math
from typing import Any, Dict, Iterable, Optional

from .errors import CoopError, RecordError

TEXT = "text"
NUMBER = "number"
FLAG = "flag"


def to_number(value: Any, field: str, integer: bool = False) -> Optional[float]:
    """
    Coerce a user-supplied value to a number.

    None and "" mean "not given" and return None. Booleans, non-numeric
    strings and non-finite values raise CoopError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise CoopError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise CoopError(f"{field} must be a number") from None
    if not math.isfinite(number):
        raise CoopError(f"{field} must be a number")
    if integer:
        if not number.is_integer():
            raise CoopError(f"{field} must be a whole number")
        return int(number)
    return number


def _clean_value(field: str, kind: str, value: Any) -> Any:
    if value is None:
        return None
    if kind == NUMBER:
        number = to_number(value, field)
        if number is not None and number < 0:
            raise RecordError(f"{field} cannot be negative")
        return number
    if kind == FLAG:
        if not isinstance(value, bool):
            raise RecordError(f"{field} must be true or false")
        return value
    if not isinstance(value, str):
        raise RecordError(f"{field} must be text")
    return value.strip() or None


class Registry:
    """Fields, required fields and audit-log naming for one registry table."""

    def __init__(
        self,
        table: str,
        singular: str,
        label_field: str,
        fields: Dict[str, str],
        required: Iterable[str],
    ):
        self.table = table
        self.singular = singular
        self.label_field = label_field
        self.fields = fields
        self.required = tuple(required)

    @property
    def log_key(self) -> str:
        """Details key used in audit log entries, e.g. tractorName."""
        return f"{self.singular}Name"

    def label(self, row: Dict[str, Any]) -> str:
        return row.get(self.label_field) or row.get("id") or "-"

    def clean(self, fields: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
        """
        Validate a new record, or with partial=True a set of changes.

        Unknown fields are rejected. Required fields may not be missing
        (new records) or cleared (changes).
        """
        unknown = sorted(set(fields) - set(self.fields))
        if unknown:
            raise RecordError(f"Unknown {self.singular} field(s): {', '.join(unknown)}")

        cleaned = {
            name: _clean_value(name, self.fields[name], value)
            for name, value in fields.items()
        }
        for name in self.required:
            if name in cleaned or not partial:
                if cleaned.get(name) is None:
                    raise RecordError(f"{name} is required")
        if partial and not cleaned:
            raise RecordError(f"No {self.singular} changes given")
        return cleaned


REGISTRIES = {
    "tractors": Registry(
        "tractors",
        "tractor",
        "name",
        {
            "name": TEXT,
            "hourlyRate": NUMBER,
            "maintenanceIntervalHours": NUMBER,
            "lastMaintenanceHorimeter": NUMBER,
        },
        required=["name", "hourlyRate"],
    ),
    "implements": Registry(
        "implements",
        "implement",
        "name",
        {"name": TEXT, "dailyRate": NUMBER},
        required=["name", "dailyRate"],
    ),
    "producers": Registry(
        "producers",
        "producer",
        "fullName",
        {
            "fullName": TEXT,
            "cpf": TEXT,
            "address": TEXT,
            "propertyName": TEXT,
            "propertyLocation": TEXT,
            "addressIsProperty": FLAG,
        },
        required=["fullName"],
    ),
}

SETTINGS_FIELDS = {"associationName": TEXT, "pixKey": TEXT}


def get_registry(table: str) -> Registry:
    try:
        return REGISTRIES[table]
    except KeyError:
        raise RecordError(f"Unknown registry '{table}'") from None


def clean_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Validate settings changes; only the association name and PIX key are editable."""
    unknown = sorted(set(changes) - set(SETTINGS_FIELDS))
    if unknown:
        raise RecordError(f"Unknown setting(s): {', '.join(unknown)}")
    if not changes:
        raise RecordError("No settings changes given")
    cleaned = {
        name: _clean_value(name, SETTINGS_FIELDS[name], value)
        for name, value in changes.items()
    }
    if "associationName" in cleaned and not cleaned["associationName"]:
        raise RecordError("associationName cannot be empty")
    return cleaned
