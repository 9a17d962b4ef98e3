"""Alert and accounting calculations over data snapshots.

Every function here is a pure projection: it reads the collections it is
given, never mutates them, and returns fresh values. Missing numeric fields
count as 0 and division by zero yields 0.
"""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .alert import AlertVariant, MaintenanceAlert
from .expense import Expense
from .fueling import Fueling
from .ledger import Autonomy, BillingSummary, TractorLedger
from .maintenance_record import MaintenanceRecord
from .service_order import ServiceOrder
from .status import AlertStatus
from .tractor import Tractor

WARNING_THRESHOLD_HOURS = 30

BILLING_PERIODS = ["this_month", "last_month", "this_year", "all"]

Timestamp = Union[str, date, datetime, None]


# =============================================================================
# Time helpers
# =============================================================================


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse a stored timestamp into a naive local datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = isoparse(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def resolve_now(now: Timestamp = None) -> datetime:
    """The given moment as a naive local datetime, defaulting to now."""
    return parse_timestamp(now) or datetime.now()


def start_of_month(now: datetime) -> datetime:
    """Day 1, 00:00 of the month containing now."""
    return datetime(now.year, now.month, 1)


def _on_or_after(value: Timestamp, start: datetime) -> bool:
    parsed = parse_timestamp(value)
    return parsed is not None and parsed >= start


# =============================================================================
# Maintenance alerts
# =============================================================================


def current_horimeter(tractor_id: str, fuelings: Iterable[Fueling]) -> float:
    """Highest horimeter reading across the tractor's fuelings (0 if none)."""
    readings = [f.horimeter or 0 for f in fuelings if f.tractor_id == tractor_id]
    return max([0] + readings)


def calc_next_maintenance(
    last_maintenance_horimeter: Optional[float], interval_hours: float
) -> float:
    """Horimeter at which the next maintenance is due."""
    return (last_maintenance_horimeter or 0) + interval_hours


def check_alert_status(
    hours_until_due: float, threshold: float = WARNING_THRESHOLD_HOURS
) -> Optional[AlertStatus]:
    """OVERDUE at or past due, WARNING within threshold, else None."""
    if hours_until_due <= 0:
        return AlertStatus.OVERDUE
    if hours_until_due <= threshold:
        return AlertStatus.WARNING
    return None


def calculate_maintenance_alerts(
    tractors: Iterable[Tractor],
    fuelings: Iterable[Fueling],
    variant: AlertVariant = AlertVariant.DASHBOARD,
    threshold: float = WARNING_THRESHOLD_HOURS,
) -> List[MaintenanceAlert]:
    """
    Find tractors due or overdue for maintenance.

    Logic:
    - Tractors without a maintenance interval never alert
    - current horimeter = max fueling horimeter for the tractor
    - next due = last maintenance horimeter + interval
    - Alert when hours until due <= threshold

    The two variants differ in which tractors qualify; see AlertVariant.
    Alerts follow the order of the tractors passed in.
    """
    fuelings = list(fuelings)
    alerts = []
    for tractor in tractors:
        if not tractor.tracks_maintenance:
            continue

        readings = [f.horimeter or 0 for f in fuelings if f.tractor_id == tractor.id]
        if variant == AlertVariant.DASHBOARD:
            if not readings and not tractor.last_maintenance_horimeter:
                continue
        elif not readings:
            continue

        current = max([0] + readings)
        next_due = calc_next_maintenance(
            tractor.last_maintenance_horimeter, tractor.maintenance_interval_hours
        )
        hours_until_due = next_due - current

        if variant == AlertVariant.DASHBOARD and current <= 0:
            continue

        status = check_alert_status(hours_until_due, threshold)
        if status is None:
            continue

        alerts.append(
            MaintenanceAlert(
                tractor_id=tractor.id,
                tractor_name=tractor.name,
                current_horimeter=current,
                next_maintenance_at=next_due,
                hours_until_due=hours_until_due,
                status=status,
            )
        )
    return alerts


# =============================================================================
# Monthly ledger
# =============================================================================


def calculate_tractor_ledger(
    orders: List[ServiceOrder],
    fuelings: List[Fueling],
    expenses: List[Expense],
    maintenance_records: List[MaintenanceRecord],
) -> TractorLedger:
    """Aggregate already-filtered rows for a single tractor."""
    total_hours = sum(o.hours_worked for o in orders)
    total_revenue = sum(o.total_cost or 0 for o in orders)

    fuel_cost = sum(f.cost or 0 for f in fuelings)
    other_cost = sum(e.cost or 0 for e in expenses)
    maintenance_cost = sum(m.cost or 0 for m in maintenance_records)
    total_expenses = fuel_cost + other_cost + maintenance_cost

    cost_per_hour = total_expenses / total_hours if total_hours > 0 else 0

    return TractorLedger(
        total_hours=total_hours,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        cost_per_hour=cost_per_hour,
        balance=total_revenue - total_expenses,
    )


def calculate_monthly_ledger(
    tractors: Iterable[Tractor],
    service_orders: Iterable[ServiceOrder],
    fuelings: Iterable[Fueling],
    expenses: Iterable[Expense],
    maintenance_records: Iterable[MaintenanceRecord],
    now: Timestamp = None,
) -> Dict[str, TractorLedger]:
    """
    Revenue, expenses and cost per hour for each tractor this month.

    A row counts when it belongs to the tractor and is dated on or after
    day 1, 00:00 of the current month. Service orders must be closed and are
    dated by closed_at. Every tractor gets an entry, zero-valued if idle.
    """
    month_start = start_of_month(resolve_now(now))

    orders = [
        o for o in service_orders if o.is_closed and _on_or_after(o.closed_at, month_start)
    ]
    fuelings = [f for f in fuelings if _on_or_after(f.date, month_start)]
    expenses = [e for e in expenses if _on_or_after(e.date, month_start)]
    records = [m for m in maintenance_records if _on_or_after(m.date, month_start)]

    ledgers = {}
    for tractor in tractors:
        ledgers[tractor.id] = calculate_tractor_ledger(
            [o for o in orders if o.tractor_id == tractor.id],
            [f for f in fuelings if f.tractor_id == tractor.id],
            [e for e in expenses if e.tractor_id == tractor.id],
            [m for m in records if m.tractor_id == tractor.id],
        )
    return ledgers


# =============================================================================
# Autonomy
# =============================================================================


def calculate_autonomy(fuelings: Iterable[Fueling]) -> Optional[Autonomy]:
    """
    Fuel efficiency over one tractor's fuelings.

    The last fill's liters have not been burned against a later reading yet,
    so liters and cost are summed over every fueling except the last.
    Returns None with fewer than two fuelings.
    """
    ordered = sorted(fuelings, key=lambda f: f.horimeter or 0)
    if len(ordered) < 2:
        return None

    total_hours = (ordered[-1].horimeter or 0) - (ordered[0].horimeter or 0)
    total_liters = sum(f.liters or 0 for f in ordered[:-1])
    total_cost = sum(f.cost or 0 for f in ordered[:-1])

    return Autonomy(
        hours_per_liter=total_hours / total_liters if total_liters > 0 else 0,
        cost_per_hour=total_cost / total_hours if total_hours > 0 else 0,
        total_hours=total_hours,
        total_liters=total_liters,
    )


def calculate_fleet_autonomy(
    tractors: Iterable[Tractor], fuelings: Iterable[Fueling]
) -> Dict[str, Autonomy]:
    """Autonomy for every tractor with at least two fuelings."""
    fuelings = list(fuelings)
    result = {}
    for tractor in tractors:
        autonomy = calculate_autonomy(f for f in fuelings if f.tractor_id == tractor.id)
        if autonomy is not None:
            result[tractor.id] = autonomy
    return result


# =============================================================================
# Billing
# =============================================================================


def calculate_billing_summary(
    service_orders: Iterable[ServiceOrder],
    period: str = "this_month",
    now: Timestamp = None,
) -> BillingSummary:
    """Closed orders and revenue for this_month, last_month, this_year or all."""
    if period not in BILLING_PERIODS:
        raise ValueError(f"Unknown billing period '{period}'")

    current = resolve_now(now)
    this_month = start_of_month(current)
    last_month = this_month - relativedelta(months=1)
    this_year = datetime(current.year, 1, 1)

    orders = []
    for order in service_orders:
        if not order.is_closed:
            continue
        closed = parse_timestamp(order.closed_at)
        if closed is None:
            continue
        if period == "this_month" and closed < this_month:
            continue
        if period == "last_month" and not (last_month <= closed < this_month):
            continue
        if period == "this_year" and closed < this_year:
            continue
        orders.append(order)

    return BillingSummary(
        period=period,
        orders=orders,
        total_revenue=sum(o.total_cost or 0 for o in orders),
    )
