"""YAML table store for cooperative data.

A data file holds one list per table plus a single ``settings`` mapping.
Rows use camelCase keys. Every write is a whole-file read-modify-write.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml

from .expense import Expense
from .fleet import Fleet
from .fueling import Fueling
from .maintenance_record import MaintenanceRecord
from .producer import Producer
from .schedule_entry import ScheduleEntry
from .service_order import ServiceOrder
from .status import OrderStatus
from .tractor import Implement, Tractor
from .user import Role, User

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

TABLES = [
    "tractors",
    "implements",
    "producers",
    "serviceOrders",
    "fuelings",
    "expenses",
    "maintenanceHistory",
    "schedules",
    "users",
    "roles",
    "logs",
]

# Tables whose rows carry their creation time under a camelCase key
CREATED_AT_KEYS = {"serviceOrders": "createdAt"}


# =============================================================================
# Row parsing
# =============================================================================


def _parse_tractor(d: Dict[str, Any]) -> Tractor:
    return Tractor(
        d["id"],
        d["name"],
        d.get("hourlyRate") or 0,
        d.get("maintenanceIntervalHours"),
        d.get("lastMaintenanceHorimeter"),
    )


def _parse_implement(d: Dict[str, Any]) -> Implement:
    return Implement(d["id"], d["name"], d.get("dailyRate") or 0)


def _parse_producer(d: Dict[str, Any]) -> Producer:
    return Producer(
        d["id"],
        d["fullName"],
        d.get("cpf"),
        d.get("address"),
        d.get("propertyName"),
        d.get("propertyLocation"),
        d.get("addressIsProperty"),
    )


def _parse_service_order(d: Dict[str, Any]) -> ServiceOrder:
    return ServiceOrder(
        id=d["id"],
        producer_id=d["producerId"],
        status=OrderStatus(d.get("status") or "open"),
        created_at=d.get("createdAt"),
        order_number=d.get("orderNumber"),
        tractor_id=d.get("tractorId"),
        implement_id=d.get("implementId"),
        initial_horimeter=d.get("initialHorimeter"),
        final_horimeter=d.get("finalHorimeter"),
        rental_days=d.get("rentalDays"),
        closed_at=d.get("closedAt"),
        total_cost=d.get("totalCost"),
    )


def _parse_fueling(d: Dict[str, Any]) -> Fueling:
    return Fueling(
        d["id"],
        d["tractorId"],
        d.get("horimeter") or 0,
        d.get("liters") or 0,
        d.get("cost") or 0,
        d.get("date"),
    )


def _parse_expense(d: Dict[str, Any]) -> Expense:
    return Expense(
        d["id"],
        d["tractorId"],
        d.get("description") or "",
        d.get("cost") or 0,
        d.get("date"),
        d.get("type"),
        d.get("created_at"),
    )


def _parse_maintenance_record(d: Dict[str, Any]) -> MaintenanceRecord:
    return MaintenanceRecord(
        d["id"],
        d["tractorId"],
        d.get("type") or "",
        d.get("horimeter") or 0,
        d.get("date"),
        d.get("description"),
        d.get("cost"),
        d.get("created_at"),
    )


def _parse_schedule(d: Dict[str, Any]) -> ScheduleEntry:
    return ScheduleEntry(
        d["id"],
        d["equipment_id"],
        d["equipment_type"],
        d["producer_id"],
        d["start_time"],
        d.get("description"),
        d.get("created_at"),
    )


def _parse_user(d: Dict[str, Any]) -> User:
    return User(
        d["id"],
        d.get("fullName") or d["username"],
        d["username"],
        d.get("email"),
        d.get("roleId"),
        d.get("role"),
        d.get("status"),
    )


def _parse_role(d: Dict[str, Any]) -> Role:
    return Role(d["id"], d["name"], d.get("permissions"))


PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "tractors": _parse_tractor,
    "implements": _parse_implement,
    "producers": _parse_producer,
    "serviceOrders": _parse_service_order,
    "fuelings": _parse_fueling,
    "expenses": _parse_expense,
    "maintenanceHistory": _parse_maintenance_record,
    "schedules": _parse_schedule,
    "users": _parse_user,
    "roles": _parse_role,
}


# =============================================================================
# Row serialization (omitting None values for cleaner YAML)
# =============================================================================


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def service_order_to_dict(order: ServiceOrder) -> Dict[str, Any]:
    return _compact(
        {
            "id": order.id,
            "orderNumber": order.order_number,
            "producerId": order.producer_id,
            "tractorId": order.tractor_id,
            "implementId": order.implement_id,
            "status": order.status.value,
            "initialHorimeter": order.initial_horimeter,
            "finalHorimeter": order.final_horimeter,
            "rentalDays": order.rental_days,
            "createdAt": order.created_at,
            "closedAt": order.closed_at,
            "totalCost": order.total_cost,
        }
    )


def fueling_to_dict(fueling: Fueling) -> Dict[str, Any]:
    return _compact(
        {
            "id": fueling.id,
            "tractorId": fueling.tractor_id,
            "horimeter": fueling.horimeter,
            "liters": fueling.liters,
            "cost": fueling.cost,
            "date": fueling.date,
        }
    )


def expense_to_dict(expense: Expense) -> Dict[str, Any]:
    return _compact(
        {
            "id": expense.id,
            "tractorId": expense.tractor_id,
            "description": expense.description,
            "cost": expense.cost,
            "type": expense.type,
            "date": expense.date,
            "created_at": expense.created_at,
        }
    )


def maintenance_record_to_dict(record: MaintenanceRecord) -> Dict[str, Any]:
    return _compact(
        {
            "id": record.id,
            "tractorId": record.tractor_id,
            "type": record.type,
            "description": record.description,
            "cost": record.cost,
            "horimeter": record.horimeter,
            "date": record.date,
            "created_at": record.created_at,
        }
    )


def schedule_entry_to_dict(entry: ScheduleEntry) -> Dict[str, Any]:
    return _compact(
        {
            "id": entry.id,
            "equipment_id": entry.equipment_id,
            "equipment_type": entry.equipment_type,
            "producer_id": entry.producer_id,
            "start_time": entry.start_time,
            "description": entry.description,
            "created_at": entry.created_at,
        }
    )


# =============================================================================
# File access
# =============================================================================


def _read(filename: PathLike) -> Dict[str, Any]:
    with open(filename, "r") as fp:
        return yaml.load(fp, Loader=yaml.SafeLoader) or {}


def _write(filename: PathLike, data: Dict[str, Any]) -> None:
    with open(filename, "w") as fp:
        yaml.dump(
            data,
            fp,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
            width=120,
        )


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table '{table}'")


def _matches(row: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    return all(row.get(key) == value for key, value in (filters or {}).items())


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def load_fleet(filename: PathLike) -> Fleet:
    """Load every table of a data file into a Fleet snapshot."""
    data = _read(filename)
    tables = {
        table: [parse(row) for row in data.get(table) or []]
        for table, parse in PARSERS.items()
    }
    logger.debug(
        "Loaded %s: %s",
        filename,
        ", ".join(f"{len(rows)} {name}" for name, rows in tables.items()),
    )
    return Fleet(
        tractors=tables["tractors"],
        implements=tables["implements"],
        producers=tables["producers"],
        service_orders=tables["serviceOrders"],
        fuelings=tables["fuelings"],
        expenses=tables["expenses"],
        maintenance_history=tables["maintenanceHistory"],
        schedules=tables["schedules"],
        users=tables["users"],
        roles=tables["roles"],
        settings=data.get("settings") or {},
    )


def select_rows(
    filename: PathLike,
    table: str,
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
    reverse: bool = False,
) -> List[Dict[str, Any]]:
    """
    Read raw rows from a table.

    Args:
        filters: equality filters, e.g. {"tractorId": "t1", "status": "open"}
        order_by: key to sort by; rows missing the key sort first
        reverse: If True, sort descending
    """
    _check_table(table)
    rows = [r for r in _read(filename).get(table) or [] if _matches(r, filters)]
    if order_by:
        rows.sort(
            key=lambda r: (r.get(order_by) is not None, r.get(order_by) or 0),
            reverse=reverse,
        )
    return rows


def insert_row(filename: PathLike, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Append a row to a table and return the stored row.

    Assigns an id and a creation time when the row has none.
    """
    _check_table(table)
    data = _read(filename)
    if data.get(table) is None:
        data[table] = []

    stored = dict(row)
    if not stored.get("id"):
        stored["id"] = uuid.uuid4().hex
    stored.setdefault(CREATED_AT_KEYS.get(table, "created_at"), _now_iso())

    data[table].append(stored)
    _write(filename, data)
    logger.debug("Inserted %s row %s", table, stored["id"])
    return stored


def update_row(
    filename: PathLike, table: str, row_id: str, changes: Dict[str, Any]
) -> Dict[str, Any]:
    """Merge changes into the row with the given id and return it."""
    _check_table(table)
    data = _read(filename)
    for row in data.get(table) or []:
        if row.get("id") == row_id:
            row.update({k: v for k, v in changes.items() if k != "id"})
            _write(filename, data)
            logger.debug("Updated %s row %s", table, row_id)
            return row
    raise KeyError(f"No row '{row_id}' in {table}")


def delete_row(filename: PathLike, table: str, row_id: str) -> None:
    """Remove the row with the given id."""
    _check_table(table)
    data = _read(filename)
    rows = data.get(table) or []
    remaining = [r for r in rows if r.get("id") != row_id]
    if len(remaining) == len(rows):
        raise KeyError(f"No row '{row_id}' in {table}")
    data[table] = remaining
    _write(filename, data)
    logger.debug("Deleted %s row %s", table, row_id)


def load_settings(filename: PathLike) -> Dict[str, Any]:
    return _read(filename).get("settings") or {}


def save_settings(filename: PathLike, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Merge changes into the settings record and return it.

    A None value removes the setting.
    """
    data = _read(filename)
    if data.get("settings") is None:
        data["settings"] = {}
    for key, value in changes.items():
        if value is None:
            data["settings"].pop(key, None)
        else:
            data["settings"][key] = value
    _write(filename, data)
    return data["settings"]


def log_action(
    filename: PathLike,
    user: Optional[User],
    action: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Append an entry to the audit log."""
    logger.info("%s: %s %s", user.username if user else "anonymous", action, details or {})
    return insert_row(
        filename,
        "logs",
        {
            "user_id": user.id if user else None,
            "user_name": user.full_name if user else None,
            "action": action,
            "details": details or {},
        },
    )


def create_data_file(filename: PathLike, association_name: str) -> None:
    """Create an empty data file with the given association name."""
    data: Dict[str, Any] = {"settings": {"associationName": association_name}}
    for table in TABLES:
        data[table] = []
    _write(filename, data)


# =============================================================================
# Workflow persistence
# =============================================================================


def save_service_order(filename: PathLike, order: ServiceOrder) -> Dict[str, Any]:
    """Insert a new order, or replace an existing one by id."""
    row = service_order_to_dict(order)
    if order.id is None:
        return insert_row(filename, "serviceOrders", row)
    return update_row(filename, "serviceOrders", order.id, row)


def save_review(filename: PathLike, record: MaintenanceRecord) -> Dict[str, Any]:
    """Store a preventive review and move the tractor's last maintenance mark."""
    stored = insert_row(
        filename, "maintenanceHistory", maintenance_record_to_dict(record)
    )
    update_row(
        filename,
        "tractors",
        record.tractor_id,
        {"lastMaintenanceHorimeter": record.horimeter},
    )
    return stored


def save_schedule_entry(filename: PathLike, entry: ScheduleEntry) -> Dict[str, Any]:
    """Add a booking to the queue."""
    return insert_row(filename, "schedules", schedule_entry_to_dict(entry))
