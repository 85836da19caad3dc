from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import datetime

from quoteflow.schemas.common_schemas import Address


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    address: Address

    @field_validator("name", "phone", "company")
    def strip_text(cls, value):
        return value.strip()

    @field_validator("email")
    def normalize_email(cls, value):
        return value.strip().lower()


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("email")
    def normalize_email(cls, value):
        return value.strip().lower() if value else value


class CustomerOut(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    company: str
    address: Optional[Address] = None
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerResponse(BaseModel):
    message: str
    data: Optional[CustomerOut] = None


class CustomerListResponse(BaseModel):
    message: str
    total: int
    data: List[CustomerOut]
    warning: Optional[str] = None  # set when sort_by was invalid
