"""ServiceOrder class for equipment rentals."""

from typing import Optional

from .status import OrderStatus


class ServiceOrder:
    """A rental of a tractor and/or implement to a producer."""

    def __init__(
        self,
        id: Optional[str],
        producer_id: str,
        status: OrderStatus,
        created_at: str,
        order_number: Optional[int] = None,
        tractor_id: Optional[str] = None,
        implement_id: Optional[str] = None,
        initial_horimeter: Optional[float] = None,
        final_horimeter: Optional[float] = None,
        rental_days: Optional[int] = None,
        closed_at: Optional[str] = None,
        total_cost: Optional[float] = None,
    ):
        self.id = id
        self.producer_id = producer_id
        self.status = status
        self.created_at = created_at
        self.order_number = order_number
        self.tractor_id = tractor_id
        self.implement_id = implement_id
        self.initial_horimeter = initial_horimeter
        self.final_horimeter = final_horimeter
        self.rental_days = rental_days
        self.closed_at = closed_at
        self.total_cost = total_cost

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status == OrderStatus.CLOSED

    @property
    def hours_worked(self) -> float:
        """Horimeter delta, treating missing readings as 0."""
        return (self.final_horimeter or 0) - (self.initial_horimeter or 0)
