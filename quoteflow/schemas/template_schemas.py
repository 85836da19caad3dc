from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from quoteflow.models.template_models import QuoteType


class TemplateVariableIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class TemplateCreate(BaseModel):
    type: QuoteType
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    is_active: bool = True
    # derived from the placeholders in `content` when omitted
    variables: Optional[List[TemplateVariableIn]] = None


class TemplateUpdate(BaseModel):
    type: Optional[QuoteType] = None
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    variables: Optional[List[TemplateVariableIn]] = None


class TemplateVariableOut(BaseModel):
    name: str
    description: str


class TemplateOut(BaseModel):
    id: int
    type: QuoteType
    type_label: str
    title: str
    content: str
    is_active: bool
    variables: List[TemplateVariableOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateResponse(BaseModel):
    message: str
    data: Optional[TemplateOut] = None


class TemplateListResponse(BaseModel):
    message: str
    total: int
    data: List[TemplateOut]


class CatalogVariableOut(BaseModel):
    name: str
    origin: str
    description: str


class VariableCatalogResponse(BaseModel):
    message: str
    data: List[CatalogVariableOut]


class RenderedDocument(BaseModel):
    html: str


class RenderedDocumentResponse(BaseModel):
    message: str
    data: RenderedDocument
