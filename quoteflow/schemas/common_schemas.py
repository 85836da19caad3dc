from pydantic import BaseModel, Field
from typing import Optional
from typing_extensions import Annotated
from decimal import Decimal

NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
PercentDecimal = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)


def format_address(address: Optional[dict]) -> str:
    """'street, city zip' as shown on documents."""
    if not address:
        return ""
    street = (address.get("street") or "").strip()
    city = (address.get("city") or "").strip()
    zip_code = (address.get("zip_code") or "").strip()
    tail = " ".join(part for part in (city, zip_code) if part)
    return ", ".join(part for part in (street, tail) if part)
