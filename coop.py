#!/usr/bin/env python3
"""
Unified CLI for the equipment cooperative.

Commands:
  alerts       - Show tractors due or overdue for maintenance
  ledger       - Show this month's revenue and expenses per tractor
  autonomy     - Show fuel efficiency per tractor
  billing      - Show closed orders and revenue for a period
  orders       - List service orders
  open-order   - Open a service order
  close-order  - Close a service order and compute its cost
  fuel         - Log a fueling
  expense      - Log an expense
  review       - Confirm a preventive review for a tractor
  schedule     - Show, list, add or remove scheduled jobs
  delete-fuel  - Remove a fueling
  tractor      - Manage the tractor registry (add, edit, delete, list)
  implement    - Manage the implement registry
  producer     - Manage the producer registry
  users        - List users
  approve-user - Approve a pending user
  set-role     - Change a user's role
  settings     - Show or change the association settings
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from tabulate import tabulate
from typing import Dict, List, Optional

from agrocoop import (
    BILLING_PERIODS,
    EXPENSE_TYPES,
    REGISTRIES,
    AlertVariant,
    Capability,
    CoopError,
    Expense,
    Fleet,
    Fueling,
    MaintenanceAlert,
    OrderStatus,
    Page,
    ServiceOrder,
    TractorLedger,
    Autonomy,
    clean_settings,
    delete_row,
    expense_to_dict,
    fueling_to_dict,
    has_permission,
    insert_row,
    load_fleet,
    log_action,
    save_review,
    save_schedule_entry,
    save_service_order,
    save_settings,
    update_row,
)
from agrocoop.calculations import parse_timestamp
from agrocoop.config import Config

logger = logging.getLogger("coop")

# =============================================================================
# Formatting helpers
# =============================================================================


def format_hours(hours: Optional[float]) -> str:
    """Format horimeter hours for display."""
    return f"{hours:,.1f}h" if hours is not None else "-"


def format_cost(cost: Optional[float]) -> str:
    """Format currency for display."""
    return f"R$ {cost:,.2f}" if cost is not None else "-"


def format_due(alert: MaintenanceAlert) -> str:
    """Format hours until due (e.g., 'in 25.0h' or '5.0h late')."""
    if alert.is_overdue:
        return f"{alert.hours_overdue:,.1f}h late"
    return f"in {alert.hours_until_due:,.1f}h"


def format_date(value: Optional[str]) -> str:
    """Format a stored timestamp as YYYY-MM-DD."""
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else "-"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# =============================================================================
# Table builders
# =============================================================================


def make_alert_table(alerts: List[MaintenanceAlert]) -> List[List[str]]:
    """Convert maintenance alerts to table rows."""
    return [
        [
            alert.tractor_name,
            alert.status.name,
            format_hours(alert.current_horimeter),
            format_hours(alert.next_maintenance_at),
            format_due(alert),
        ]
        for alert in alerts
    ]


def make_ledger_table(fleet: Fleet, ledgers: Dict[str, TractorLedger]) -> List[List[str]]:
    """Convert monthly ledgers to table rows, in registry order."""
    rows = []
    for tractor in fleet.tractors:
        ledger = ledgers.get(tractor.id) or TractorLedger()
        rows.append(
            [
                tractor.name,
                format_hours(ledger.total_hours),
                format_cost(ledger.total_revenue),
                format_cost(ledger.total_expenses),
                format_cost(ledger.cost_per_hour),
                format_cost(ledger.balance),
            ]
        )
    return rows


def make_autonomy_table(fleet: Fleet, autonomy: Dict[str, Autonomy]) -> List[List[str]]:
    """Convert autonomy figures to table rows."""
    rows = []
    for tractor in fleet.tractors:
        data = autonomy.get(tractor.id)
        if data is None:
            continue
        rows.append(
            [
                tractor.name,
                f"{data.hours_per_liter:,.2f} h/L",
                format_cost(data.cost_per_hour),
                format_hours(data.total_hours),
                f"{data.total_liters:,.1f} L",
            ]
        )
    return rows


def make_order_table(fleet: Fleet, orders: List[ServiceOrder]) -> List[List[str]]:
    """Convert service orders to table rows."""
    rows = []
    for order in orders:
        tractor = fleet.get_tractor(order.tractor_id)
        implement = fleet.get_implement(order.implement_id)
        rows.append(
            [
                f"#{order.order_number}" if order.order_number else "-",
                truncate(fleet.producer_name(order.producer_id), 25),
                tractor.name if tractor else "-",
                implement.name if implement else "-",
                order.status.value,
                format_date(order.created_at),
                format_date(order.closed_at),
                format_cost(order.total_cost),
            ]
        )
    return rows


def make_schedule_table(fleet: Fleet, entries) -> List[List[str]]:
    """Convert queue entries to table rows."""
    return [
        [
            entry.id,
            format_date(entry.start_time),
            fleet.equipment_name(entry.equipment_type, entry.equipment_id),
            truncate(fleet.producer_name(entry.producer_id), 25),
            truncate(entry.description),
        ]
        for entry in entries
    ]


def make_registry_table(fleet: Fleet, table: str) -> List[List[str]]:
    """Convert one registry's records to table rows."""
    if table == "tractors":
        return [
            [
                t.id,
                t.name,
                format_cost(t.hourly_rate),
                format_hours(t.maintenance_interval_hours),
                format_hours(t.last_maintenance_horimeter),
            ]
            for t in fleet.tractors
        ]
    if table == "implements":
        return [[i.id, i.name, format_cost(i.daily_rate)] for i in fleet.implements]
    return [
        [p.id, p.full_name, p.cpf or "-", truncate(p.property_name, 25)]
        for p in fleet.producers
    ]


REGISTRY_HEADERS = {
    "tractors": ["ID", "Name", "Rate/Hour", "Interval", "Last Review"],
    "implements": ["ID", "Name", "Rate/Day"],
    "producers": ["ID", "Name", "CPF", "Property"],
}

# Command-line option dest -> stored field name, per registry
REGISTRY_OPTIONS = {
    "tractors": {
        "name": "name",
        "rate": "hourlyRate",
        "interval": "maintenanceIntervalHours",
        "last_maintenance": "lastMaintenanceHorimeter",
    },
    "implements": {"name": "name", "rate": "dailyRate"},
    "producers": {
        "name": "fullName",
        "cpf": "cpf",
        "address": "address",
        "property_name": "propertyName",
        "property_location": "propertyLocation",
        "address_is_property": "addressIsProperty",
    },
}


def make_user_table(fleet: Fleet) -> List[List[str]]:
    """Convert users to table rows."""
    rows = []
    for user in fleet.users:
        role = fleet.get_role(user.role_id)
        rows.append(
            [
                user.username,
                user.full_name,
                role.name if role else (user.role or "-"),
                user.status,
            ]
        )
    return rows


# =============================================================================
# Shared helpers
# =============================================================================


def require(fleet: Fleet, args, page: Page, capability: Capability) -> bool:
    """
    Check the acting user's permission when --user is given.

    Without --user the CLI acts as the file's owner and skips checks.
    """
    if not args.user:
        return True
    user = fleet.get_user(args.user)
    if user is None:
        print(f"Error: Unknown user '{args.user}'")
        return False
    if not has_permission(fleet.permissions_for(user), page, capability):
        print(f"Error: {user.username} may not {capability.value} {page.value}")
        return False
    return True


def acting_user(fleet: Fleet, args):
    return fleet.get_user(args.user) if args.user else None


# =============================================================================
# Report commands
# =============================================================================


def cmd_alerts(args):
    """Show tractors due or overdue for maintenance."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.MAINTENANCE, Capability.VIEW):
        return 1

    variant = AlertVariant(args.variant)
    alerts = fleet.maintenance_alerts(variant)
    alerts.sort(key=lambda a: (a.status.value, a.hours_until_due))

    print(f"Association: {fleet.association_name}")
    print(f"Tractors: {len(fleet.tractors)}")
    print()

    if not alerts:
        print("No maintenance due.")
        return 0

    headers = ["Tractor", "Status", "Current", "Next Due", "Due"]
    print(tabulate(make_alert_table(alerts), headers=headers, tablefmt="simple"))
    return 0


def cmd_ledger(args):
    """Show this month's revenue and expenses per tractor."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.MAINTENANCE, Capability.VIEW):
        return 1

    ledgers = fleet.monthly_ledger()
    print(f"Month: {datetime.now():%Y-%m}")
    print()

    if not fleet.tractors:
        print("No tractors registered.")
        return 0

    headers = ["Tractor", "Hours", "Revenue", "Expenses", "Cost/Hour", "Balance"]
    print(
        tabulate(make_ledger_table(fleet, ledgers), headers=headers, tablefmt="simple")
    )
    return 0


def cmd_autonomy(args):
    """Show fuel efficiency per tractor."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.FUELING, Capability.VIEW):
        return 1

    rows = make_autonomy_table(fleet, fleet.autonomy())
    if not rows:
        print("Not enough data: each tractor needs at least 2 fuelings.")
        return 0

    headers = ["Tractor", "Consumption", "Cost/Hour", "Hours", "Liters"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_billing(args):
    """Show closed orders and revenue for a period."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.BILLING, Capability.VIEW):
        return 1

    summary = fleet.billing(args.period)
    print(f"Period: {summary.period}")
    print(f"Orders: {len(summary.orders)}")
    print(f"Total billed: {format_cost(summary.total_revenue)}")
    print()

    if summary.orders:
        orders = sorted(summary.orders, key=lambda o: o.closed_at or "", reverse=True)
        headers = ["O.S.", "Producer", "Tractor", "Implement", "Status", "Opened", "Closed", "Total"]
        print(tabulate(make_order_table(fleet, orders), headers=headers, tablefmt="simple"))
    return 0


def cmd_orders(args):
    """List service orders."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SERVICES, Capability.VIEW):
        return 1

    status = OrderStatus(args.status) if args.status else None
    orders = fleet.get_orders(status)
    if not orders:
        print("No service orders found.")
        return 0

    headers = ["O.S.", "Producer", "Tractor", "Implement", "Status", "Opened", "Closed", "Total"]
    print(tabulate(make_order_table(fleet, orders), headers=headers, tablefmt="simple"))
    return 0


def cmd_schedule(args):
    """Show, list, add or remove scheduled jobs."""
    action = args.action or "next"
    if action == "add":
        return schedule_add(args)
    if action == "delete":
        return schedule_delete(args)

    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SCHEDULES, Capability.VIEW):
        return 1

    if action == "list":
        entries = sorted(fleet.schedules, key=lambda s: s.start_time)
        if not entries:
            print("The queue is empty.")
            return 0
        headers = ["ID", "Date", "Equipment", "Producer", "Notes"]
        print(
            tabulate(make_schedule_table(fleet, entries), headers=headers, tablefmt="simple")
        )
        return 0

    entry = fleet.next_schedule()
    if entry is None:
        print("No upcoming schedules.")
        return 0

    print("Next in queue:")
    print(f"  Producer:  {fleet.producer_name(entry.producer_id)}")
    print(f"  Equipment: {fleet.equipment_name(entry.equipment_type, entry.equipment_id)}")
    print(f"  Date:      {format_date(entry.start_time)}")
    if entry.description:
        print(f"  Notes:     {entry.description}")
    return 0


# =============================================================================
# Write commands
# =============================================================================


def cmd_open_order(args):
    """Open a service order."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SERVICES, Capability.CREATE):
        return 1

    try:
        order = fleet.build_new_order(
            args.producer_id, args.tractor, args.implement, args.horimeter
        )
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    print(f"Opening service order #{order.order_number}:")
    print(f"  Producer:  {fleet.producer_name(order.producer_id)}")
    if order.tractor_id:
        print(f"  Tractor:   {fleet.get_tractor(order.tractor_id).name}")
        print(f"  Horimeter: {format_hours(order.initial_horimeter)}")
    if order.implement_id:
        print(f"  Implement: {fleet.get_implement(order.implement_id).name}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    save_service_order(args.data_file, order)
    if args.schedule:
        try:
            delete_row(args.data_file, "schedules", args.schedule)
        except KeyError:
            print("Order saved, but the schedule entry could not be removed from the queue.")
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "create_service_order",
        {
            "orderNumber": order.order_number,
            "producerName": fleet.producer_name(order.producer_id),
        },
    )
    print("Order saved.")
    return 0


def cmd_close_order(args):
    """Close a service order and compute its cost."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SERVICES, Capability.EDIT):
        return 1

    try:
        order = fleet.build_closed_order(args.order_id, args.horimeter, args.days)
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    print(f"Closing service order #{order.order_number}:")
    print(f"  Producer: {fleet.producer_name(order.producer_id)}")
    if order.tractor_id:
        print(f"  Hours:    {format_hours(order.hours_worked)}")
    if order.rental_days:
        print(f"  Days:     {order.rental_days}")
    print(f"  Total:    {format_cost(order.total_cost)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    save_service_order(args.data_file, order)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "close_service_order",
        {
            "orderNumber": order.order_number,
            "producerName": fleet.producer_name(order.producer_id),
            "totalCost": order.total_cost,
        },
    )
    print("Order closed.")
    return 0


def cmd_fuel(args):
    """Log a fueling."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.FUELING, Capability.CREATE):
        return 1

    tractor = fleet.get_tractor(args.tractor_id)
    if tractor is None:
        print(f"Error: Unknown tractor '{args.tractor_id}'")
        return 1

    fueling = Fueling(
        id=None,
        tractor_id=tractor.id,
        horimeter=args.horimeter,
        liters=args.liters,
        cost=args.cost,
        date=args.date or datetime.now().isoformat(timespec="seconds"),
    )

    print(f"Adding fueling for {tractor.name}:")
    print(f"  Horimeter: {format_hours(fueling.horimeter)}")
    print(f"  Liters:    {fueling.liters:,.1f}")
    print(f"  Cost:      {format_cost(fueling.cost)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    insert_row(args.data_file, "fuelings", fueling_to_dict(fueling))
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "create_fueling",
        {"tractorName": tractor.name, "liters": fueling.liters},
    )
    print("Fueling saved.")
    return 0


def cmd_expense(args):
    """Log an expense."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.MAINTENANCE, Capability.CREATE):
        return 1

    tractor = fleet.get_tractor(args.tractor_id)
    if tractor is None:
        print(f"Error: Unknown tractor '{args.tractor_id}'")
        return 1

    expense = Expense(
        id=None,
        tractor_id=tractor.id,
        description=args.description,
        cost=args.cost,
        date=args.date or datetime.now().isoformat(timespec="seconds"),
        type=args.type,
    )

    print(f"Adding expense for {tractor.name}:")
    print(f"  Description: {expense.description}")
    print(f"  Type:        {expense.type}")
    print(f"  Cost:        {format_cost(expense.cost)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    insert_row(args.data_file, "expenses", expense_to_dict(expense))
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "create_expense",
        {"expense": expense.description, "tractorName": tractor.name, "cost": expense.cost},
    )
    print("Expense saved.")
    return 0


def cmd_review(args):
    """Confirm a preventive review for a tractor."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.MAINTENANCE, Capability.CREATE):
        return 1

    try:
        record = fleet.build_review(args.tractor_id, args.horimeter)
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    tractor = fleet.get_tractor(record.tractor_id)
    print(f"Recording review for {tractor.name} at {format_hours(record.horimeter)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    save_review(args.data_file, record)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "confirm_maintenance_review",
        {"tractorName": tractor.name, "horimeter": record.horimeter},
    )
    print("Review saved.")
    return 0


def cmd_delete_fuel(args):
    """Remove a fueling."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.FUELING, Capability.EDIT):
        return 1

    fueling = fleet.get_fueling(args.fueling_id)
    if fueling is None:
        print(f"Error: Unknown fueling '{args.fueling_id}'")
        return 1

    tractor = fleet.get_tractor(fueling.tractor_id)
    tractor_name = tractor.name if tractor else "Unknown"
    print(f"Removing fueling for {tractor_name}:")
    print(f"  Date:      {format_date(fueling.date)}")
    print(f"  Horimeter: {format_hours(fueling.horimeter)}")
    print(f"  Liters:    {fueling.liters:,.1f}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    delete_row(args.data_file, "fuelings", fueling.id)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "delete_fueling",
        {"tractorName": tractor_name, "liters": fueling.liters},
    )
    print("Fueling removed.")
    return 0


def schedule_add(args):
    """Add a booking to the queue."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SCHEDULES, Capability.CREATE):
        return 1

    try:
        entry = fleet.build_schedule_entry(
            args.equipment_type,
            args.equipment_id,
            args.producer_id,
            args.start,
            args.description,
        )
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    equipment = fleet.equipment_name(entry.equipment_type, entry.equipment_id)
    producer = fleet.producer_name(entry.producer_id)
    print("Adding to the queue:")
    print(f"  Producer:  {producer}")
    print(f"  Equipment: {equipment}")
    print(f"  Date:      {format_date(entry.start_time)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    stored = save_schedule_entry(args.data_file, entry)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "create_schedule",
        {"producerName": producer, "equipmentName": equipment},
    )
    print(f"Schedule saved ({stored['id']}).")
    return 0


def schedule_delete(args):
    """Remove a booking from the queue."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SCHEDULES, Capability.EDIT):
        return 1

    entry = fleet.get_schedule(args.schedule_id)
    if entry is None:
        print(f"Error: Unknown schedule '{args.schedule_id}'")
        return 1

    equipment = fleet.equipment_name(entry.equipment_type, entry.equipment_id)
    producer = fleet.producer_name(entry.producer_id)
    print(f"Removing {equipment} for {producer} on {format_date(entry.start_time)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    delete_row(args.data_file, "schedules", entry.id)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "delete_schedule",
        {"producerName": producer, "equipmentName": equipment},
    )
    print("Schedule removed.")
    return 0


# =============================================================================
# Registry commands
# =============================================================================


def registry_fields(args) -> Dict:
    """Collect the registry fields given on the command line."""
    fields = {}
    for dest, field in REGISTRY_OPTIONS[args.table].items():
        value = getattr(args, dest, None)
        if value is not None:
            fields[field] = value
    return fields


def cmd_registry(args):
    """Add, edit, delete or list tractors, implements or producers."""
    registry = REGISTRIES[args.table]
    fleet = load_fleet(args.data_file)

    if args.action == "list":
        if not require(fleet, args, Page.REGISTRIES, Capability.VIEW):
            return 1
        rows = make_registry_table(fleet, args.table)
        if not rows:
            print(f"No {registry.table} registered.")
            return 0
        print(tabulate(rows, headers=REGISTRY_HEADERS[args.table], tablefmt="simple"))
        return 0

    capability = Capability.CREATE if args.action == "add" else Capability.EDIT
    if not require(fleet, args, Page.REGISTRIES, capability):
        return 1

    fields = {}
    try:
        if args.action == "delete":
            fleet.check_can_delete(args.table, args.id)
        else:
            fields = registry.clean(registry_fields(args), partial=args.action == "edit")
            if args.action == "edit" and fleet.registry_name(args.table, args.id) is None:
                raise CoopError(f"No record '{args.id}' in {args.table}")
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    if args.action == "add":
        label = registry.label(fields)
        print(f"Adding {registry.singular} {label}:")
    else:
        label = fleet.registry_name(args.table, args.id)
        verb = "Removing" if args.action == "delete" else "Updating"
        print(f"{verb} {registry.singular} {label}:")
    for field, value in fields.items():
        print(f"  {field}: {value}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    if args.action == "add":
        stored = insert_row(args.data_file, args.table, fields)
        print(f"Saved ({stored['id']}).")
    elif args.action == "edit":
        label = registry.label(update_row(args.data_file, args.table, args.id, fields))
        print("Saved.")
    else:
        delete_row(args.data_file, args.table, args.id)
        print("Removed.")

    action = {"add": "create", "edit": "update", "delete": "delete"}[args.action]
    log_action(
        args.data_file,
        acting_user(fleet, args),
        f"{action}_{registry.singular}",
        {registry.log_key: label},
    )
    return 0


# =============================================================================
# Account and settings commands
# =============================================================================


def cmd_users(args):
    """List users."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SETTINGS, Capability.VIEW):
        return 1

    if not fleet.users:
        print("No users found.")
        return 0

    headers = ["Username", "Name", "Role", "Status"]
    print(tabulate(make_user_table(fleet), headers=headers, tablefmt="simple"))
    return 0


def update_user(args, status: Optional[str], role: Optional[str]):
    """Apply a status and/or role change to a user."""
    fleet = load_fleet(args.data_file)
    if not require(fleet, args, Page.SETTINGS, Capability.EDIT):
        return 1

    try:
        user, changes = fleet.build_user_update(args.username, status, role)
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    if not changes:
        print("No changes.")
        return 0

    role_obj = fleet.get_role(changes.get("roleId", user.role_id))
    role_name = role_obj.name if role_obj else None
    print(f"Updating {user.username}:")
    print(f"  Status: {changes.get('status', user.status)}")
    print(f"  Role:   {role_name or '-'}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    update_row(args.data_file, "users", user.id, changes)
    log_action(
        args.data_file,
        acting_user(fleet, args),
        "update_user",
        {
            "targetUserName": user.username,
            "status": changes.get("status", user.status),
            "roleName": role_name,
        },
    )
    print("User saved.")
    return 0


def cmd_approve_user(args):
    """Approve a pending user."""
    return update_user(args, "approved", args.role)


def cmd_set_role(args):
    """Change a user's role."""
    return update_user(args, None, args.role)


def cmd_settings(args):
    """Show or change the association settings."""
    fleet = load_fleet(args.data_file)
    changes = {}
    if args.name is not None:
        changes["associationName"] = args.name
    if args.pix_key is not None:
        changes["pixKey"] = args.pix_key

    if not changes:
        if not require(fleet, args, Page.SETTINGS, Capability.VIEW):
            return 1
        print(f"Association: {fleet.association_name}")
        print(f"PIX key:     {fleet.settings.get('pixKey') or '-'}")
        return 0

    if not require(fleet, args, Page.SETTINGS, Capability.EDIT):
        return 1
    try:
        changes = clean_settings(changes)
    except CoopError as e:
        print(f"Error: {e}")
        return 1

    print("Updating settings:")
    for key, value in changes.items():
        print(f"  {key}: {value if value is not None else '-'}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    save_settings(args.data_file, changes)
    log_action(args.data_file, acting_user(fleet, args), "update_settings", changes)
    print("Settings saved.")
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Equipment cooperative manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/coop.yaml alerts
  %(prog)s data/coop.yaml alerts --variant maintenance
  %(prog)s data/coop.yaml ledger
  %(prog)s data/coop.yaml billing --period last_month
  %(prog)s data/coop.yaml open-order p1 --tractor t1 --horimeter 120.5
  %(prog)s data/coop.yaml close-order o1 --horimeter 128
  %(prog)s data/coop.yaml fuel t1 130 60 390
  %(prog)s data/coop.yaml review t1 --horimeter 131
  %(prog)s data/coop.yaml tractor add "Valtra A950" --rate 150 --interval 250
  %(prog)s data/coop.yaml schedule add tractor t1 p1 2025-07-01T08:00
  %(prog)s data/coop.yaml approve-user ana --role Operator
  %(prog)s --user maria data/coop.yaml billing
""",
    )
    parser.add_argument(
        "data_file",
        type=Path,
        nargs="?",
        default=Config.DATA_FILE,
        help="Path to cooperative YAML file (default: $COOP_DATA_FILE)",
    )
    parser.add_argument(
        "--user",
        type=str,
        help="Act as this username (permission checks and audit log)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Alerts subcommand
    alerts_parser = subparsers.add_parser(
        "alerts", help="Show tractors due or overdue for maintenance"
    )
    alerts_parser.add_argument(
        "--variant",
        choices=[v.value for v in AlertVariant],
        default=AlertVariant.DASHBOARD.value,
        help="Qualifying rules (default: dashboard)",
    )

    subparsers.add_parser("ledger", help="Show this month's balance per tractor")
    subparsers.add_parser("autonomy", help="Show fuel efficiency per tractor")

    # Billing subcommand
    billing_parser = subparsers.add_parser(
        "billing", help="Show closed orders and revenue for a period"
    )
    billing_parser.add_argument(
        "--period",
        choices=BILLING_PERIODS,
        default="this_month",
        help="Billing period (default: this_month)",
    )

    # Orders subcommand
    orders_parser = subparsers.add_parser("orders", help="List service orders")
    orders_parser.add_argument(
        "--status",
        choices=[s.value for s in OrderStatus],
        help="Only show orders with this status",
    )

    # Open order subcommand
    open_parser = subparsers.add_parser("open-order", help="Open a service order")
    open_parser.add_argument("producer_id", type=str, help="Producer id")
    open_parser.add_argument("--tractor", type=str, help="Tractor id")
    open_parser.add_argument("--implement", type=str, help="Implement id")
    open_parser.add_argument(
        "--horimeter", type=float, help="Initial horimeter (required with --tractor)"
    )
    open_parser.add_argument(
        "--schedule", type=str, help="Schedule entry consumed by this order"
    )
    open_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Close order subcommand
    close_parser = subparsers.add_parser(
        "close-order", help="Close a service order and compute its cost"
    )
    close_parser.add_argument("order_id", type=str, help="Service order id")
    close_parser.add_argument("--horimeter", type=float, help="Final horimeter")
    close_parser.add_argument("--days", type=int, help="Rental days (implements)")
    close_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Fuel subcommand
    fuel_parser = subparsers.add_parser("fuel", help="Log a fueling")
    fuel_parser.add_argument("tractor_id", type=str, help="Tractor id")
    fuel_parser.add_argument("horimeter", type=float, help="Horimeter at fill time")
    fuel_parser.add_argument("liters", type=float, help="Liters filled")
    fuel_parser.add_argument("cost", type=float, help="Total cost")
    fuel_parser.add_argument("--date", type=str, help="Fill date (default: now)")
    fuel_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Expense subcommand
    expense_parser = subparsers.add_parser("expense", help="Log an expense")
    expense_parser.add_argument("tractor_id", type=str, help="Tractor id")
    expense_parser.add_argument("description", type=str, help="What was paid for")
    expense_parser.add_argument("cost", type=float, help="Cost")
    expense_parser.add_argument(
        "--type", choices=EXPENSE_TYPES, default="Other", help="Expense category"
    )
    expense_parser.add_argument("--date", type=str, help="Expense date (default: now)")
    expense_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Review subcommand
    review_parser = subparsers.add_parser(
        "review", help="Confirm a preventive review for a tractor"
    )
    review_parser.add_argument("tractor_id", type=str, help="Tractor id")
    review_parser.add_argument(
        "--horimeter",
        type=float,
        help="Horimeter at review (default: latest fueling horimeter)",
    )
    review_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Schedule subcommand (defaults to showing the next job)
    schedule_parser = subparsers.add_parser(
        "schedule", help="Show, list, add or remove scheduled jobs"
    )
    schedule_actions = schedule_parser.add_subparsers(dest="action")
    schedule_actions.add_parser("next", help="Show the next scheduled job")
    schedule_actions.add_parser("list", help="List the whole queue")
    schedule_add_parser = schedule_actions.add_parser("add", help="Add a booking")
    schedule_add_parser.add_argument(
        "equipment_type", choices=["tractor", "implement"], help="Equipment type"
    )
    schedule_add_parser.add_argument("equipment_id", type=str, help="Equipment id")
    schedule_add_parser.add_argument("producer_id", type=str, help="Producer id")
    schedule_add_parser.add_argument("start", type=str, help="Start date/time (ISO)")
    schedule_add_parser.add_argument("--description", type=str, help="Notes")
    schedule_add_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )
    schedule_delete_parser = schedule_actions.add_parser(
        "delete", help="Remove a booking"
    )
    schedule_delete_parser.add_argument("schedule_id", type=str, help="Schedule id")
    schedule_delete_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be removed"
    )

    # Delete fuel subcommand
    delete_fuel_parser = subparsers.add_parser("delete-fuel", help="Remove a fueling")
    delete_fuel_parser.add_argument("fueling_id", type=str, help="Fueling id")
    delete_fuel_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be removed"
    )

    # Registry subcommands
    add_registry_parser(subparsers, "tractors", "tractor", add_tractor_options)
    add_registry_parser(subparsers, "implements", "implement", add_implement_options)
    add_registry_parser(subparsers, "producers", "producer", add_producer_options)

    # Account subcommands
    subparsers.add_parser("users", help="List users")
    approve_parser = subparsers.add_parser("approve-user", help="Approve a pending user")
    approve_parser.add_argument("username", type=str, help="User to approve")
    approve_parser.add_argument("--role", type=str, help="Role id or name to assign")
    approve_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )
    role_parser = subparsers.add_parser("set-role", help="Change a user's role")
    role_parser.add_argument("username", type=str, help="User to change")
    role_parser.add_argument("role", type=str, help="Role id or name ('none' to clear)")
    role_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    # Settings subcommand
    settings_parser = subparsers.add_parser(
        "settings", help="Show or change the association settings"
    )
    settings_parser.add_argument("--name", type=str, help="Association name")
    settings_parser.add_argument("--pix-key", type=str, help="PIX key ('' to clear)")
    settings_parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be saved"
    )

    return parser


def add_tractor_options(parser, adding: bool):
    parser.add_argument(
        "--rate", type=float, required=adding, help="Hourly rate"
    )
    parser.add_argument("--interval", type=float, help="Maintenance interval (hours)")
    parser.add_argument(
        "--last-maintenance", type=float, help="Horimeter at the last review"
    )


def add_implement_options(parser, adding: bool):
    parser.add_argument("--rate", type=float, required=adding, help="Daily rate")


def add_producer_options(parser, adding: bool):
    parser.add_argument("--cpf", type=str, help="CPF")
    parser.add_argument("--address", type=str, help="Address")
    parser.add_argument("--property-name", type=str, help="Property name")
    parser.add_argument("--property-location", type=str, help="Property location")
    parser.add_argument(
        "--address-is-property",
        action=argparse.BooleanOptionalAction,
        help="The address is the property",
    )


def add_registry_parser(subparsers, table: str, singular: str, add_options):
    """Add a '<singular> {add,edit,delete,list}' command group."""
    group = subparsers.add_parser(singular, help=f"Manage the {singular} registry")
    group.set_defaults(table=table)
    actions = group.add_subparsers(dest="action", required=True)

    add_parser = actions.add_parser("add", help=f"Register a {singular}")
    add_parser.add_argument("name", type=str, help="Name")
    add_options(add_parser, True)

    edit_parser = actions.add_parser("edit", help=f"Change a {singular}")
    edit_parser.add_argument("id", type=str, help=f"{singular.capitalize()} id")
    edit_parser.add_argument("--name", type=str, help="New name")
    add_options(edit_parser, False)

    delete_parser = actions.add_parser("delete", help=f"Remove a {singular}")
    delete_parser.add_argument("id", type=str, help=f"{singular.capitalize()} id")

    for action_parser in (add_parser, edit_parser, delete_parser):
        action_parser.add_argument(
            "--dry-run", action="store_true", help="Show what would be saved"
        )
    actions.add_parser("list", help=f"List {table}")


COMMANDS = {
    "alerts": cmd_alerts,
    "ledger": cmd_ledger,
    "autonomy": cmd_autonomy,
    "billing": cmd_billing,
    "orders": cmd_orders,
    "open-order": cmd_open_order,
    "close-order": cmd_close_order,
    "fuel": cmd_fuel,
    "expense": cmd_expense,
    "review": cmd_review,
    "schedule": cmd_schedule,
    "delete-fuel": cmd_delete_fuel,
    "tractor": cmd_registry,
    "implement": cmd_registry,
    "producer": cmd_registry,
    "users": cmd_users,
    "approve-user": cmd_approve_user,
    "set-role": cmd_set_role,
    "settings": cmd_settings,
}


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else Config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Validate data file exists
    if not args.data_file.exists():
        print(f"Error: File not found: {args.data_file}")
        return 1

    logger.debug("Running %s on %s", args.command, args.data_file)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main() or 0)
