from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, func
from quoteflow.core.db import Base


class Company(Base):
    """
    Singleton business profile. Feeds the company* template variables and
    the header/signature of generated documents.
    """
    __tablename__ = "company"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    logo = Column(Text, nullable=False)          # URL or data URI
    address = Column(JSON, nullable=False)       # {"street", "city", "zip_code"}
    contact_info = Column(JSON, nullable=False)  # {"phone", "email", "website"}
    signature = Column(Text, nullable=False)     # URL or data URI
    tax_id = Column(String, nullable=False, index=True)
    bank_details = Column(JSON, nullable=False)  # {"bank_name", "branch_number", "account_number"}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
