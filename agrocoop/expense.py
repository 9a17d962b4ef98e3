"""Expense class for tractor running costs."""

from typing import Optional

EXPENSE_TYPES = ["Part", "Labor", "Oil", "Filter", "Other"]


class Expense:
    """A cost booked against a tractor (parts, labor, oil...)."""

    def __init__(
        self,
        id: str,
        tractor_id: str,
        description: str,
        cost: float,
        date: str,
        type: str = "Other",
        created_at: Optional[str] = None,
    ):
        self.id = id
        self.tractor_id = tractor_id
        self.description = description
        self.cost = cost
        self.date = date
        self.type = type or "Other"
        self.created_at = created_at
