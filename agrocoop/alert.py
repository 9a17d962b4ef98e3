"""MaintenanceAlert dataclass for calculated maintenance status."""

from dataclasses import dataclass
from enum import Enum

from .status import AlertStatus


class AlertVariant(Enum):
    """
    Qualifying rules for maintenance alerts.

    DASHBOARD: a tractor qualifies with fuelings or a recorded last-maintenance
    horimeter, and only alerts once its current horimeter is above 0.
    MAINTENANCE_PAGE: a tractor qualifies only with fuelings.
    """

    DASHBOARD = "dashboard"
    MAINTENANCE_PAGE = "maintenance"


@dataclass
class MaintenanceAlert:
    """A tractor that is due or overdue for maintenance."""

    tractor_id: str
    tractor_name: str
    current_horimeter: float
    next_maintenance_at: float
    hours_until_due: float
    status: AlertStatus

    @property
    def is_overdue(self) -> bool:
        return self.status == AlertStatus.OVERDUE

    @property
    def hours_overdue(self) -> float:
        """Hours past due (0 when not overdue)."""
        return abs(self.hours_until_due) if self.is_overdue else 0
