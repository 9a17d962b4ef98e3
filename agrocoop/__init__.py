"""
Agricultural equipment cooperative models.

This package provides data models and calculations for a cooperative:
- AlertStatus / OrderStatus: Status enums
- Tractor, Implement, Producer: Registry records
- ServiceOrder, Fueling, Expense, MaintenanceRecord, ScheduleEntry: Activity rows
- MaintenanceAlert, TractorLedger, Autonomy, BillingSummary: Calculated results
- Fleet: Main aggregate combining a snapshot of all data
- Registry: Field rules for editable registry tables and settings
"""

from .status import AlertStatus, OrderStatus
from .tractor import Tractor, Implement
from .producer import Producer
from .fueling import Fueling
from .errors import CoopError, OrderError, RecordError
from .service_order import ServiceOrder
from .expense import Expense, EXPENSE_TYPES
from .maintenance_record import MaintenanceRecord, PREVENTIVE_REVIEW
from .schedule_entry import ScheduleEntry
from .user import User, Role, USER_STATUSES
from .alert import AlertVariant, MaintenanceAlert
from .ledger import TractorLedger, Autonomy, BillingSummary
from .calculations import (
    BILLING_PERIODS,
    WARNING_THRESHOLD_HOURS,
    calc_next_maintenance,
    calculate_autonomy,
    calculate_billing_summary,
    calculate_fleet_autonomy,
    calculate_maintenance_alerts,
    calculate_monthly_ledger,
    check_alert_status,
    current_horimeter,
    parse_timestamp,
    start_of_month,
)
from .permissions import Page, Capability, has_permission, resolve_permissions
from .registry import (
    REGISTRIES,
    SETTINGS_FIELDS,
    Registry,
    clean_settings,
    get_registry,
    to_number,
)
from .fleet import Fleet, compute_order_cost
from .loader import (
    load_fleet,
    select_rows,
    insert_row,
    update_row,
    delete_row,
    load_settings,
    save_settings,
    log_action,
    create_data_file,
    save_service_order,
    save_review,
    save_schedule_entry,
    schedule_entry_to_dict,
    fueling_to_dict,
    expense_to_dict,
)

__all__ = [
    "AlertStatus",
    "OrderStatus",
    "Tractor",
    "Implement",
    "Producer",
    "Fueling",
    "ServiceOrder",
    "CoopError",
    "OrderError",
    "RecordError",
    "Expense",
    "EXPENSE_TYPES",
    "MaintenanceRecord",
    "PREVENTIVE_REVIEW",
    "ScheduleEntry",
    "User",
    "Role",
    "USER_STATUSES",
    "AlertVariant",
    "MaintenanceAlert",
    "TractorLedger",
    "Autonomy",
    "BillingSummary",
    "BILLING_PERIODS",
    "WARNING_THRESHOLD_HOURS",
    "calc_next_maintenance",
    "calculate_autonomy",
    "calculate_billing_summary",
    "calculate_fleet_autonomy",
    "calculate_maintenance_alerts",
    "calculate_monthly_ledger",
    "check_alert_status",
    "current_horimeter",
    "parse_timestamp",
    "start_of_month",
    "Page",
    "Capability",
    "has_permission",
    "resolve_permissions",
    "REGISTRIES",
    "SETTINGS_FIELDS",
    "Registry",
    "clean_settings",
    "get_registry",
    "to_number",
    "Fleet",
    "compute_order_cost",
    "load_fleet",
    "select_rows",
    "insert_row",
    "update_row",
    "delete_row",
    "load_settings",
    "save_settings",
    "log_action",
    "create_data_file",
    "save_service_order",
    "save_review",
    "save_schedule_entry",
    "schedule_entry_to_dict",
    "fueling_to_dict",
    "expense_to_dict",
]
