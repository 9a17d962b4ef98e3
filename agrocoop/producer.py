"""Producer class for cooperative members."""

from typing import Optional


class Producer:
    """A cooperative member who rents equipment."""

    def __init__(
        self,
        id: str,
        full_name: str,
        cpf: Optional[str] = None,
        address: Optional[str] = None,
        property_name: Optional[str] = None,
        property_location: Optional[str] = None,
        address_is_property: bool = False,
    ):
        self.id = id
        self.full_name = full_name
        self.cpf = cpf
        self.address = address
        self.property_name = property_name
        self.property_location = property_location
        self.address_is_property = address_is_property or False

    @property
    def first_name(self) -> str:
        return self.full_name.split(" ")[0] if self.full_name else ""
