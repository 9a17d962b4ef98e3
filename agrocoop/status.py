"""Status enums for maintenance alerts and service orders."""

from enum import Enum


class AlertStatus(Enum):
    """Maintenance alert categories. Lower value = more urgent."""

    OVERDUE = 1
    WARNING = 2


class OrderStatus(Enum):
    """Service order lifecycle."""

    OPEN = "open"
    CLOSED = "closed"
