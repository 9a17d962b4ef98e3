"""MaintenanceRecord class for the maintenance history."""

from typing import Optional

PREVENTIVE_REVIEW = "Preventive review"


class MaintenanceRecord:
    """A record of maintenance performed on a tractor."""

    def __init__(
        self,
        id: Optional[str],
        tractor_id: str,
        type: str,
        horimeter: float,
        date: str,
        description: Optional[str] = None,
        cost: Optional[float] = None,
        created_at: Optional[str] = None,
    ):
        self.id = id
        self.tractor_id = tractor_id
        self.type = type
        self.horimeter = horimeter
        self.date = date
        self.description = description
        self.cost = cost
        self.created_at = created_at
