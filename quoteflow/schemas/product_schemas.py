from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from quoteflow.schemas.common_schemas import NonNegativeDecimal, PercentDecimal


# --------------------------
# Product Schemas
# --------------------------
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    price: NonNegativeDecimal
    discount: PercentDecimal = Decimal("0")


class ProductUpdate(BaseModel):
    """All fields optional for partial updates."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    price: Optional[NonNegativeDecimal] = None
    discount: Optional[PercentDecimal] = None


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    category: str
    price: Decimal
    discount: Decimal
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductResponse(BaseModel):
    message: str
    data: Optional[ProductOut] = None


class ProductListResponse(BaseModel):
    message: str
    total: int
    data: List[ProductOut]
