from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, Enum, Index, func
from quoteflow.core.db import Base
import enum


# --------------------------
# Enums
# --------------------------
class QuoteType(str, enum.Enum):
    services = "services"
    workshops = "workshops"
    products = "products"


QUOTE_TYPE_LABELS = {
    QuoteType.services: "שירותים",
    QuoteType.workshops: "סדנאות",
    QuoteType.products: "מוצרים",
}


# --------------------------
# Quote Template
# --------------------------
class QuoteTemplate(Base):
    __tablename__ = "quote_templates"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(QuoteType, name="quote_type"), nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    variables = Column(JSON, nullable=False, default=list)  # [{"name", "description"}]
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


Index("ix_template_type_active", QuoteTemplate.type, QuoteTemplate.is_active)
