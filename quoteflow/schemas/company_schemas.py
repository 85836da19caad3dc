from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from quoteflow.schemas.common_schemas import Address


class ContactInfo(BaseModel):
    phone: str = Field(..., min_length=1)
    email: EmailStr
    website: Optional[str] = None

    @field_validator("email")
    def normalize_email(cls, value):
        return value.strip().lower()


class BankDetails(BaseModel):
    bank_name: str = Field(..., min_length=1)
    branch_number: str = Field(..., min_length=1)
    account_number: str = Field(..., min_length=1)


class CompanyIn(BaseModel):
    name: str = Field(..., min_length=1)
    logo: str = Field(..., min_length=1)
    address: Address
    contact_info: ContactInfo
    signature: str = Field(..., min_length=1)
    tax_id: str = Field(..., min_length=1)
    bank_details: BankDetails


class CompanyOut(CompanyIn):
    id: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompanyResponse(BaseModel):
    message: str
    data: Optional[CompanyOut] = None
