"""Tractor and Implement classes for the equipment registry."""

from typing import Optional


class Tractor:
    """A tractor rented by the hour and tracked by its horimeter."""

    def __init__(
        self,
        id: str,
        name: str,
        hourly_rate: float,
        maintenance_interval_hours: Optional[float] = None,
        last_maintenance_horimeter: Optional[float] = None,
    ):
        self.id = id
        self.name = name
        self.hourly_rate = hourly_rate
        self.maintenance_interval_hours = maintenance_interval_hours
        self.last_maintenance_horimeter = last_maintenance_horimeter

    @property
    def tracks_maintenance(self) -> bool:
        """Whether a maintenance interval is configured."""
        return bool(self.maintenance_interval_hours)


class Implement:
    """An implement rented by the day."""

    def __init__(self, id: str, name: str, daily_rate: float):
        self.id = id
        self.name = name
        self.daily_rate = daily_rate
