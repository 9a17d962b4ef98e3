"""Dataclasses for the accounting side of the engine."""

from dataclasses import dataclass, field
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .service_order import ServiceOrder


@dataclass
class TractorLedger:
    """Revenue and expenses for one tractor over the current month."""

    total_hours: float = 0
    total_revenue: float = 0
    total_expenses: float = 0
    cost_per_hour: float = 0
    balance: float = 0

    @property
    def is_profitable(self) -> bool:
        return self.balance >= 0


@dataclass
class Autonomy:
    """Fuel efficiency across a tractor's fueling history."""

    hours_per_liter: float
    cost_per_hour: float
    total_hours: float
    total_liters: float


@dataclass
class BillingSummary:
    """Closed orders and their revenue over a billing period."""

    period: str
    orders: List["ServiceOrder"] = field(default_factory=list)
    total_revenue: float = 0
