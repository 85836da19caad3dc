# quoteflow/schemas/quote_schemas.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from quoteflow.models.quote_models import QuoteStatus
from quoteflow.models.template_models import QuoteType
from quoteflow.schemas.common_schemas import NonNegativeDecimal, PercentDecimal


# --------------------------
# Quote Item Schemas
# --------------------------
class QuoteItemIn(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)
    # snapshot from the product when omitted
    price: Optional[NonNegativeDecimal] = None
    discount: Optional[PercentDecimal] = None


class QuoteItemOut(BaseModel):
    id: int
    product_id: Optional[int]
    product_name: str
    quantity: int
    price: Decimal
    discount: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


# --------------------------
# Quote Schemas
# --------------------------
class QuoteCreate(BaseModel):
    type: QuoteType
    customer_id: int
    template_id: int
    valid_until: date
    items: List[QuoteItemIn] = Field(..., min_length=1)
    notes: Optional[str] = None


class QuoteUpdate(BaseModel):
    type: Optional[QuoteType] = None
    customer_id: Optional[int] = None
    template_id: Optional[int] = None
    valid_until: Optional[date] = None
    items: Optional[List[QuoteItemIn]] = Field(None, min_length=1)
    notes: Optional[str] = None


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


class QuoteCustomerOut(BaseModel):
    id: int
    name: str
    email: str
    company: str

    class Config:
        from_attributes = True


class QuoteTemplateRef(BaseModel):
    id: int
    title: str

    class Config:
        from_attributes = True


class QuoteOut(BaseModel):
    id: int
    quote_number: str
    type: QuoteType
    type_label: str
    status: QuoteStatus
    status_label: str
    customer: QuoteCustomerOut
    template: QuoteTemplateRef
    items: List[QuoteItemOut] = []
    valid_until: date
    is_expired: bool
    total_amount: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    notes: Optional[str] = None
    has_public_link: bool
    email_verified: bool
    is_signed: bool
    signature_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --------------------------
# Response Schemas
# --------------------------
class QuoteResponse(BaseModel):
    message: str
    data: Optional[QuoteOut] = None


class QuoteListResponse(BaseModel):
    message: str
    total: int
    data: List[QuoteOut] = []


class PublicLinkOut(BaseModel):
    url: str
    token: str


class PublicLinkResponse(BaseModel):
    message: str
    data: PublicLinkOut
