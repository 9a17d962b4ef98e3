"""Fleet class - the main aggregate over a snapshot of cooperative data."""

from typing import Any, Dict, List, Optional, Tuple

from .alert import AlertVariant, MaintenanceAlert
from .calculations import (
    Timestamp,
    calculate_billing_summary,
    calculate_fleet_autonomy,
    calculate_maintenance_alerts,
    calculate_monthly_ledger,
    current_horimeter,
    parse_timestamp,
    resolve_now,
)
from .errors import OrderError, RecordError
from .expense import Expense
from .fueling import Fueling
from .ledger import Autonomy, BillingSummary, TractorLedger
from .maintenance_record import PREVENTIVE_REVIEW, MaintenanceRecord
from .permissions import Permissions, resolve_permissions
from .producer import Producer
from .schedule_entry import ScheduleEntry
from .service_order import ServiceOrder
from .status import OrderStatus
from .tractor import Implement, Tractor
from .user import USER_STATUSES, Role, User


def compute_order_cost(
    order: ServiceOrder,
    tractor: Optional[Tractor],
    implement: Optional[Implement],
    final_horimeter: Optional[float] = None,
    rental_days: Optional[int] = None,
) -> float:
    """
    Price a service order at closing time.

    - Tractor with both horimeters: hours worked x hourly rate
    - Otherwise implement with rental days: days x daily rate
    - Otherwise 0
    """
    if (
        tractor is not None
        and final_horimeter is not None
        and order.initial_horimeter is not None
    ):
        if final_horimeter <= order.initial_horimeter:
            raise OrderError("Final horimeter must be greater than the initial one")
        return (final_horimeter - order.initial_horimeter) * tractor.hourly_rate
    if implement is not None and rental_days is not None:
        return rental_days * implement.daily_rate
    return 0


class Fleet:
    """All cooperative records, as loaded at one moment."""

    def __init__(
        self,
        tractors: Optional[List[Tractor]] = None,
        implements: Optional[List[Implement]] = None,
        producers: Optional[List[Producer]] = None,
        service_orders: Optional[List[ServiceOrder]] = None,
        fuelings: Optional[List[Fueling]] = None,
        expenses: Optional[List[Expense]] = None,
        maintenance_history: Optional[List[MaintenanceRecord]] = None,
        schedules: Optional[List[ScheduleEntry]] = None,
        users: Optional[List[User]] = None,
        roles: Optional[List[Role]] = None,
        settings: Optional[Dict] = None,
    ):
        self.tractors = tractors or []
        self.implements = implements or []
        self.producers = producers or []
        self.service_orders = service_orders or []
        self.fuelings = fuelings or []
        self.expenses = expenses or []
        self.maintenance_history = maintenance_history or []
        self.schedules = schedules or []
        self.users = users or []
        self.roles = roles or []
        self.settings = settings or {}

    @property
    def association_name(self) -> str:
        return self.settings.get("associationName") or "Rural Manager"

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_tractor(self, tractor_id: Optional[str]) -> Optional[Tractor]:
        return next((t for t in self.tractors if t.id == tractor_id), None)

    def get_implement(self, implement_id: Optional[str]) -> Optional[Implement]:
        return next((i for i in self.implements if i.id == implement_id), None)

    def get_producer(self, producer_id: Optional[str]) -> Optional[Producer]:
        return next((p for p in self.producers if p.id == producer_id), None)

    def get_order(self, order_id: Optional[str]) -> Optional[ServiceOrder]:
        return next((o for o in self.service_orders if o.id == order_id), None)

    def get_user(self, username: Optional[str]) -> Optional[User]:
        """Find a user by username (case-insensitive)."""
        if not username:
            return None
        wanted = username.lower()
        return next((u for u in self.users if u.username.lower() == wanted), None)

    def producer_name(self, producer_id: Optional[str]) -> str:
        producer = self.get_producer(producer_id)
        return producer.full_name if producer else "Unknown"

    def equipment_name(self, equipment_type: str, equipment_id: str) -> str:
        if equipment_type == "tractor":
            item = self.get_tractor(equipment_id)
        else:
            item = self.get_implement(equipment_id)
        return item.name if item else "Unknown"

    def registry_name(self, table: str, row_id: Optional[str]) -> Optional[str]:
        """Display name of a tractor, implement or producer (None if missing)."""
        if table == "tractors":
            item = self.get_tractor(row_id)
            return item.name if item else None
        if table == "implements":
            item = self.get_implement(row_id)
            return item.name if item else None
        if table == "producers":
            producer = self.get_producer(row_id)
            return producer.full_name if producer else None
        raise RecordError(f"Unknown registry '{table}'")

    def get_fueling(self, fueling_id: Optional[str]) -> Optional[Fueling]:
        return next((f for f in self.fuelings if f.id == fueling_id), None)

    def get_schedule(self, schedule_id: Optional[str]) -> Optional[ScheduleEntry]:
        return next((s for s in self.schedules if s.id == schedule_id), None)

    def get_role(self, key: Optional[str]) -> Optional[Role]:
        """Find a role by id, or by name (case-insensitive)."""
        if not key:
            return None
        wanted = key.lower()
        return next(
            (r for r in self.roles if r.id == key or r.name.lower() == wanted), None
        )

    def permissions_for(self, user: Optional[User]) -> Permissions:
        return resolve_permissions(user, self.roles)

    def get_orders(self, status: Optional[OrderStatus] = None) -> List[ServiceOrder]:
        """Orders, newest order number first, optionally filtered by status."""
        orders = self.service_orders
        if status is not None:
            orders = [o for o in orders if o.status == status]
        return sorted(orders, key=lambda o: o.order_number or 0, reverse=True)

    # -------------------------------------------------------------------------
    # Engine projections
    # -------------------------------------------------------------------------

    def maintenance_alerts(
        self, variant: AlertVariant = AlertVariant.DASHBOARD
    ) -> List[MaintenanceAlert]:
        return calculate_maintenance_alerts(self.tractors, self.fuelings, variant)

    def monthly_ledger(self, now: Timestamp = None) -> Dict[str, TractorLedger]:
        return calculate_monthly_ledger(
            self.tractors,
            self.service_orders,
            self.fuelings,
            self.expenses,
            self.maintenance_history,
            now,
        )

    def autonomy(self) -> Dict[str, Autonomy]:
        return calculate_fleet_autonomy(self.tractors, self.fuelings)

    def billing(self, period: str = "this_month", now: Timestamp = None) -> BillingSummary:
        return calculate_billing_summary(self.service_orders, period, now)

    def current_horimeter(self, tractor_id: str) -> float:
        return current_horimeter(tractor_id, self.fuelings)

    def last_final_horimeter(self, tractor_id: str) -> float:
        """Highest final horimeter among the tractor's closed orders (0 if none)."""
        readings = [
            o.final_horimeter
            for o in self.service_orders
            if o.tractor_id == tractor_id
            and o.is_closed
            and o.final_horimeter is not None
        ]
        return max([0] + readings)

    def next_schedule(self, now: Timestamp = None) -> Optional[ScheduleEntry]:
        """The earliest schedule entry strictly in the future."""
        current = resolve_now(now)
        upcoming = [
            s for s in self.schedules
            if (parse_timestamp(s.start_time) or current) > current
        ]
        if not upcoming:
            return None
        return min(upcoming, key=lambda s: parse_timestamp(s.start_time))

    # -------------------------------------------------------------------------
    # Workflows
    # -------------------------------------------------------------------------

    def open_order_for_tractor(self, tractor_id: str) -> Optional[ServiceOrder]:
        return next(
            (o for o in self.service_orders if o.tractor_id == tractor_id and o.is_open),
            None,
        )

    def open_order_for_implement(self, implement_id: str) -> Optional[ServiceOrder]:
        return next(
            (
                o for o in self.service_orders
                if o.implement_id == implement_id and o.is_open
            ),
            None,
        )

    def check_can_open(
        self, tractor_id: Optional[str] = None, implement_id: Optional[str] = None
    ) -> None:
        """Raise OrderError if either piece of equipment already has an open order."""
        if tractor_id and self.open_order_for_tractor(tractor_id):
            tractor = self.get_tractor(tractor_id)
            name = tractor.name if tractor else tractor_id
            raise OrderError(
                f'Tractor "{name}" already has an open service order. '
                "Close it before opening a new one."
            )
        if implement_id and self.open_order_for_implement(implement_id):
            implement = self.get_implement(implement_id)
            name = implement.name if implement else implement_id
            raise OrderError(
                f'Implement "{name}" already has an open service order. '
                "Close it before opening a new one."
            )

    def next_order_number(self) -> int:
        return max([0] + [int(o.order_number or 0) for o in self.service_orders]) + 1

    def build_new_order(
        self,
        producer_id: str,
        tractor_id: Optional[str] = None,
        implement_id: Optional[str] = None,
        initial_horimeter: Optional[float] = None,
        now: Timestamp = None,
    ) -> ServiceOrder:
        """Validate and build (but do not save) a new open service order."""
        if not producer_id or (not tractor_id and not implement_id):
            raise OrderError("Select a producer and at least one piece of equipment")
        if self.get_producer(producer_id) is None:
            raise OrderError(f"Unknown producer '{producer_id}'")
        if tractor_id and self.get_tractor(tractor_id) is None:
            raise OrderError(f"Unknown tractor '{tractor_id}'")
        if implement_id and self.get_implement(implement_id) is None:
            raise OrderError(f"Unknown implement '{implement_id}'")

        self.check_can_open(tractor_id, implement_id)

        if tractor_id:
            if initial_horimeter is None:
                raise OrderError("Enter the tractor's initial horimeter")
            last = self.last_final_horimeter(tractor_id)
            if initial_horimeter < last:
                raise OrderError(
                    "Initial horimeter cannot be lower than the last recorded "
                    f"final horimeter ({last:g}h)"
                )

        return ServiceOrder(
            id=None,
            producer_id=producer_id,
            status=OrderStatus.OPEN,
            created_at=resolve_now(now).isoformat(),
            order_number=self.next_order_number(),
            tractor_id=tractor_id or None,
            implement_id=implement_id or None,
            initial_horimeter=initial_horimeter if tractor_id else None,
        )

    def build_closed_order(
        self,
        order_id: str,
        final_horimeter: Optional[float] = None,
        rental_days: Optional[int] = None,
        now: Timestamp = None,
    ) -> ServiceOrder:
        """Validate and build (but do not save) the closed version of an order."""
        order = self.get_order(order_id)
        if order is None:
            raise OrderError(f"Unknown service order '{order_id}'")
        if not order.is_open:
            raise OrderError(f"Service order #{order.order_number} is already closed")
        if order.tractor_id and final_horimeter is None:
            raise OrderError("Enter the tractor's final horimeter")
        if rental_days is not None and rental_days < 1:
            raise OrderError("Rental days must be at least 1")
        if not order.tractor_id and order.implement_id and rental_days is None:
            raise OrderError("Enter the number of rental days")

        tractor = self.get_tractor(order.tractor_id)
        implement = self.get_implement(order.implement_id)
        total_cost = compute_order_cost(
            order, tractor, implement, final_horimeter, rental_days
        )

        return ServiceOrder(
            id=order.id,
            producer_id=order.producer_id,
            status=OrderStatus.CLOSED,
            created_at=order.created_at,
            order_number=order.order_number,
            tractor_id=order.tractor_id,
            implement_id=order.implement_id,
            initial_horimeter=order.initial_horimeter,
            final_horimeter=final_horimeter,
            rental_days=rental_days,
            closed_at=resolve_now(now).isoformat(),
            total_cost=total_cost,
        )

    def build_review(
        self, tractor_id: str, horimeter: Optional[float] = None, now: Timestamp = None
    ) -> MaintenanceRecord:
        """
        Build the maintenance record confirming a preventive review.

        The horimeter defaults to the tractor's current horimeter.
        """
        if self.get_tractor(tractor_id) is None:
            raise OrderError(f"Unknown tractor '{tractor_id}'")
        if horimeter is None:
            horimeter = self.current_horimeter(tractor_id)
        if horimeter <= 0:
            raise OrderError("Horimeter must be a positive value")
        return MaintenanceRecord(
            id=None,
            tractor_id=tractor_id,
            type=PREVENTIVE_REVIEW,
            horimeter=horimeter,
            date=resolve_now(now).isoformat(),
            description="Periodic review recorded from a system alert.",
            cost=0,
        )

    # -------------------------------------------------------------------------
    # Registry, queue and account changes
    # -------------------------------------------------------------------------

    def references(self, table: str, row_id: str) -> Dict[str, int]:
        """Count the rows in other tables that point at a registry record."""
        if table == "tractors":
            counts = {
                "serviceOrders": sum(1 for o in self.service_orders if o.tractor_id == row_id),
                "fuelings": sum(1 for f in self.fuelings if f.tractor_id == row_id),
                "expenses": sum(1 for e in self.expenses if e.tractor_id == row_id),
                "maintenanceHistory": sum(
                    1 for m in self.maintenance_history if m.tractor_id == row_id
                ),
                "schedules": sum(
                    1 for s in self.schedules if s.is_tractor and s.equipment_id == row_id
                ),
            }
        elif table == "implements":
            counts = {
                "serviceOrders": sum(
                    1 for o in self.service_orders if o.implement_id == row_id
                ),
                "schedules": sum(
                    1 for s in self.schedules
                    if not s.is_tractor and s.equipment_id == row_id
                ),
            }
        elif table == "producers":
            counts = {
                "serviceOrders": sum(
                    1 for o in self.service_orders if o.producer_id == row_id
                ),
                "schedules": sum(1 for s in self.schedules if s.producer_id == row_id),
            }
        else:
            raise RecordError(f"Unknown registry '{table}'")
        return {name: count for name, count in counts.items() if count}

    def check_can_delete(self, table: str, row_id: str) -> None:
        """Raise RecordError unless the record exists and nothing refers to it."""
        if self.registry_name(table, row_id) is None:
            raise RecordError(f"No record '{row_id}' in {table}")

        refs = self.references(table, row_id)
        if refs:
            listed = ", ".join(f"{count} {name}" for name, count in refs.items())
            raise RecordError(f"'{row_id}' is still referenced by {listed}")

    def build_schedule_entry(
        self,
        equipment_type: str,
        equipment_id: str,
        producer_id: str,
        start_time: str,
        description: Optional[str] = None,
    ) -> ScheduleEntry:
        """Validate and build (but do not save) a queue entry."""
        if equipment_type == "tractor":
            found = self.get_tractor(equipment_id)
        elif equipment_type == "implement":
            found = self.get_implement(equipment_id)
        else:
            raise RecordError("Equipment type must be 'tractor' or 'implement'")
        if found is None:
            raise RecordError(f"Unknown {equipment_type} '{equipment_id}'")
        if self.get_producer(producer_id) is None:
            raise RecordError(f"Unknown producer '{producer_id}'")

        try:
            start = parse_timestamp(start_time)
        except (TypeError, ValueError):
            raise RecordError(f"Invalid start time '{start_time}'") from None
        if start is None:
            raise RecordError("Enter a start time")

        return ScheduleEntry(
            id=None,
            equipment_id=equipment_id,
            equipment_type=equipment_type,
            producer_id=producer_id,
            start_time=start.isoformat(),
            description=description or None,
        )

    def build_user_update(
        self,
        username: str,
        status: Optional[str] = None,
        role: Optional[str] = None,
    ) -> Tuple[User, Dict[str, Any]]:
        """
        Work out the changes to a user's status and role.

        role is a role id or name; "" or "none" removes the role. Arguments
        left as None are unchanged. Returns the user and only the fields
        that actually change.
        """
        user = self.get_user(username)
        if user is None:
            raise RecordError(f"Unknown user '{username}'")

        changes: Dict[str, Any] = {}
        if status is not None:
            if status not in USER_STATUSES:
                raise RecordError(f"Status must be one of: {', '.join(USER_STATUSES)}")
            if status != user.status:
                changes["status"] = status

        if role is not None:
            if not isinstance(role, str):
                raise RecordError("Role must be a role id or name")
            role_id = None
            if role.lower() not in ("", "none"):
                found = self.get_role(role)
                if found is None:
                    raise RecordError(f"Unknown role '{role}'")
                role_id = found.id
            if role_id != user.role_id:
                changes["roleId"] = role_id

        return user, changes
