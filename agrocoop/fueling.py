"""Fueling class for fuel log entries."""


class Fueling:
    """A fuel fill recorded against a tractor at a given horimeter."""

    def __init__(
        self,
        id: str,
        tractor_id: str,
        horimeter: float,
        liters: float,
        cost: float,
        date: str,
    ):
        self.id = id
        self.tractor_id = tractor_id
        self.horimeter = horimeter
        self.liters = liters
        self.cost = cost
        self.date = date
