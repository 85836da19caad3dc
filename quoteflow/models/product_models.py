from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, CheckConstraint, Index, func
)
from quoteflow.core.db import Base
from quoteflow.utils.decimal_utils import ZERO


# --------------------------
# Product
# --------------------------
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, index=True, nullable=False)
    price = Column(Numeric(12, 2), default=ZERO, nullable=False)
    discount = Column(Numeric(5, 2), default=ZERO, nullable=False)  # percent
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(price >= 0, name="check_product_price_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="check_product_discount_range"),
    )


Index("ix_product_name_category", Product.name, Product.category)
