from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal

from quoteflow.models.quote_models import QuoteStatus


class EmailVerificationRequest(BaseModel):
    # plain str: an empty or malformed address must fail verification, not validation
    email: str = ""


class SignQuoteRequest(BaseModel):
    signature: str = Field(..., description="Signature image as a data URI")


class PublicQuoteItem(BaseModel):
    product_name: str
    quantity: int
    price: Decimal
    discount: Decimal
    line_total: Decimal


class PublicQuoteOut(BaseModel):
    quote_number: str
    title: str
    customer_name: str
    status: QuoteStatus
    status_label: str
    valid_until: date
    requires_verification: bool
    is_signed: bool
    signature_date: Optional[datetime] = None
    # present only after email verification
    items: Optional[List[PublicQuoteItem]] = None
    total_amount: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    total_with_vat: Optional[Decimal] = None
    notes: Optional[str] = None
    html: Optional[str] = None


class PublicQuoteResponse(BaseModel):
    message: str
    data: PublicQuoteOut
