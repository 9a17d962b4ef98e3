"""ScheduleEntry class for the booking queue."""

from typing import Optional


class ScheduleEntry:
    """A booking of a tractor or implement for a producer."""

    def __init__(
        self,
        id: str,
        equipment_id: str,
        equipment_type: str,
        producer_id: str,
        start_time: str,
        description: Optional[str] = None,
        created_at: Optional[str] = None,
    ):
        self.id = id
        self.equipment_id = equipment_id
        self.equipment_type = equipment_type
        self.producer_id = producer_id
        self.start_time = start_time
        self.description = description
        self.created_at = created_at

    @property
    def is_tractor(self) -> bool:
        return self.equipment_type == "tractor"
