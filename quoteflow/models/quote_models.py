# quoteflow/models/quote_models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Date, DateTime, Numeric, Text,
    Enum, CheckConstraint, Index, func
)
from sqlalchemy.orm import relationship
from quoteflow.core.db import Base
from quoteflow.models.template_models import QuoteType
from quoteflow.utils.decimal_utils import ZERO, money, to_decimal
from decimal import Decimal
import enum


# ==================================================
# STATUS STATE MACHINE
# ==================================================
class QuoteStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"
    signed = "signed"


QUOTE_STATUS_LABELS = {
    QuoteStatus.draft: "טיוטה",
    QuoteStatus.sent: "נשלחה",
    QuoteStatus.pending_approval: "ממתין לאישור",
    QuoteStatus.approved: "מאושרת",
    QuoteStatus.rejected: "נדחתה",
    QuoteStatus.signed: "חתומה",
}

# Operator-driven transitions. `signed` is reachable only by signing.
STATUS_TRANSITIONS = {
    QuoteStatus.draft: {QuoteStatus.sent},
    QuoteStatus.sent: {
        QuoteStatus.draft,
        QuoteStatus.pending_approval,
        QuoteStatus.approved,
        QuoteStatus.rejected,
    },
    QuoteStatus.pending_approval: {
        QuoteStatus.sent,
        QuoteStatus.approved,
        QuoteStatus.rejected,
    },
    QuoteStatus.approved: set(),
    QuoteStatus.rejected: set(),
    QuoteStatus.signed: set(),
}

TERMINAL_STATUSES = {QuoteStatus.rejected, QuoteStatus.signed}
EDITABLE_STATUSES = {QuoteStatus.draft, QuoteStatus.sent, QuoteStatus.pending_approval}
SIGNABLE_STATUSES = {QuoteStatus.sent, QuoteStatus.pending_approval, QuoteStatus.approved}


def can_transition(current: QuoteStatus, target: QuoteStatus) -> bool:
    return target in STATUS_TRANSITIONS.get(current, set())


def line_total(quantity, price, discount) -> Decimal:
    gross = Decimal(quantity) * to_decimal(price)
    return money(gross * (100 - to_decimal(discount)) / 100)


# ==================================================
# QUOTE MODEL
# ==================================================
class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    quote_number = Column(String, unique=True, nullable=False)
    type = Column(Enum(QuoteType, name="quote_type"), nullable=False)

    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("quote_templates.id", ondelete="RESTRICT"), nullable=False, index=True)

    status = Column(Enum(QuoteStatus, name="quote_status"), nullable=False, default=QuoteStatus.draft)
    valid_until = Column(Date, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)  # pre-tax
    notes = Column(Text, nullable=True)

    # Public access
    public_token = Column(String, unique=True, nullable=True)
    email_verification_token = Column(String, unique=True, nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    signature = Column(Text, nullable=True)
    signature_date = Column(DateTime(timezone=True), nullable=True)

    # Audit fields
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(total_amount >= 0, name="check_quote_total_non_negative"),
    )

    # Relationships
    customer = relationship("Customer", lazy="joined")
    template = relationship("QuoteTemplate", lazy="joined")
    items = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.position",
        lazy="selectin",
    )

    # ----------------------
    # Total calculation
    # ----------------------
    def calculate_totals(self):
        self.total_amount = money(sum((item.line_total for item in self.items), ZERO))
        return self.total_amount


# ==================================================
# QUOTE ITEM MODEL
# ==================================================
class QuoteItem(Base):
    __tablename__ = "quote_items"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    # nulled when the product is deleted; name and price are kept as snapshots
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(5, 2), nullable=False, default=ZERO)

    __table_args__ = (
        CheckConstraint(quantity >= 1, name="check_quote_item_quantity_positive"),
        CheckConstraint(price >= 0, name="check_quote_item_price_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="check_quote_item_discount_range"),
    )

    quote = relationship("Quote", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.price, self.discount)


# ==================================================
# QUOTE NUMBER SEQUENCE
# ==================================================
class QuoteSequence(Base):
    """Counter row incremented atomically to hand out quote numbers."""
    __tablename__ = "quote_sequences"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)


Index("ix_quote_customer_created", Quote.customer_id, Quote.created_at)
Index("ix_quote_status_created", Quote.status, Quote.created_at)
Index("ix_quote_valid_until_status", Quote.valid_until, Quote.status)
