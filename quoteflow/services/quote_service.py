# quoteflow/services/quote_service.py
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, update, asc, desc
from sqlalchemy.exc import IntegrityError

from quoteflow.core.config import (
    APP_TIMEZONE, PUBLIC_BASE_URL, QUOTE_NUMBER_RETRIES, VAT_RATE
)
from quoteflow.core.exceptions import (
    NotFoundError, ValidationFailed, InvalidStatusTransition, QuoteNotEditable,
    QuoteAlreadySigned, DomainRuleViolation, CompanyNotConfigured,
)
from quoteflow.core.security import generate_public_token
from quoteflow.models.customer_models import Customer
from quoteflow.models.product_models import Product
from quoteflow.models.quote_models import (
    Quote, QuoteItem, QuoteSequence, QuoteStatus, QUOTE_STATUS_LABELS,
    EDITABLE_STATUSES, can_transition,
)
from quoteflow.models.template_models import QuoteTemplate, QuoteType, QUOTE_TYPE_LABELS
from quoteflow.schemas.quote_schemas import (
    QuoteCreate, QuoteUpdate, QuoteItemIn, QuoteItemOut, QuoteOut,
    QuoteCustomerOut, QuoteTemplateRef, QuoteResponse, QuoteListResponse,
    PublicLinkOut, PublicLinkResponse,
)
from quoteflow.schemas.template_schemas import RenderedDocument, RenderedDocumentResponse
from quoteflow.services import template_engine
from quoteflow.services.company_service import load_company
from quoteflow.services.pdf_service import generate_quote_pdf
from quoteflow.utils.activity_helpers import log_operator_action
from quoteflow.utils.decimal_utils import ZERO, money, to_decimal

logger = logging.getLogger(__name__)

QUOTE_SEQUENCE_NAME = "quote"

SORT_FIELDS = {
    "created_at": Quote.created_at,
    "quote_number": Quote.id,  # numbers are issued in id order
    "total_amount": Quote.total_amount,
    "valid_until": Quote.valid_until,
}


# --------------------------
# Helpers
# --------------------------
def local_today() -> date:
    return datetime.now(ZoneInfo(APP_TIMEZONE)).date()


def is_expired(quote: Quote, today: Optional[date] = None) -> bool:
    """Expiry is derived, never stored: valid_until has passed in the business timezone."""
    return quote.valid_until < (today or local_today())


def vat_for(total_amount, vat_rate=VAT_RATE) -> Decimal:
    return money(to_decimal(total_amount) * to_decimal(vat_rate))


def with_vat(total_amount) -> Decimal:
    return money(total_amount) + vat_for(total_amount)


def public_url(token: str) -> str:
    return f"{PUBLIC_BASE_URL.rstrip('/')}/public/quotes/{token}"


def quote_out(quote: Quote, today: Optional[date] = None) -> QuoteOut:
    return QuoteOut(
        id=quote.id,
        quote_number=quote.quote_number,
        type=quote.type,
        type_label=QUOTE_TYPE_LABELS.get(quote.type, str(quote.type)),
        status=quote.status,
        status_label=QUOTE_STATUS_LABELS.get(quote.status, str(quote.status)),
        customer=QuoteCustomerOut.model_validate(quote.customer),
        template=QuoteTemplateRef.model_validate(quote.template),
        items=[QuoteItemOut.model_validate(item) for item in quote.items],
        valid_until=quote.valid_until,
        is_expired=is_expired(quote, today),
        total_amount=quote.total_amount,
        vat_amount=vat_for(quote.total_amount),
        total_with_vat=with_vat(quote.total_amount),
        notes=quote.notes,
        has_public_link=quote.public_token is not None,
        email_verified=bool(quote.email_verified),
        is_signed=quote.signature is not None,
        signature_date=quote.signature_date,
        created_at=quote.created_at,
        updated_at=quote.updated_at,
    )


async def get_quote_or_404(db: AsyncSession, quote_id: int) -> Quote:
    quote = await db.get(Quote, quote_id)
    if not quote:
        raise NotFoundError("הצעת המחיר לא נמצאה")
    return quote


async def _get_customer(db: AsyncSession, customer_id: int) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError(f"לקוח {customer_id} לא נמצא")
    return customer


async def _get_template(db: AsyncSession, template_id: int, quote_type: QuoteType, require_active: bool) -> QuoteTemplate:
    template = await db.get(QuoteTemplate, template_id)
    if not template:
        raise NotFoundError("התבנית לא נמצאה")
    if require_active and not template.is_active:
        raise ValidationFailed("התבנית שנבחרה אינה פעילה")
    if template.type != quote_type:
        raise ValidationFailed("סוג התבנית אינו תואם לסוג ההצעה")
    return template


async def _build_items(db: AsyncSession, items_in: List[QuoteItemIn], previous: List[QuoteItem] = ()) -> List[QuoteItem]:
    """
    Snapshot product name, price and discount into new QuoteItem rows.
    Fields the caller leaves out come from the item being replaced for the
    same product, otherwise from the live product.
    """
    if not items_in:
        raise ValidationFailed("יש להוסיף לפחות פריט אחד להצעה")

    prior = {item.product_id: item for item in previous if item.product_id is not None}
    items = []
    for position, item_in in enumerate(items_in):
        product = await db.get(Product, item_in.product_id)
        if not product:
            raise NotFoundError(f"מוצר {item_in.product_id} לא נמצא")

        snapshot = prior.get(product.id)
        if item_in.price is not None:
            price = item_in.price
        else:
            price = snapshot.price if snapshot else product.price
        if item_in.discount is not None:
            discount = item_in.discount
        else:
            discount = snapshot.discount if snapshot else (product.discount or ZERO)

        items.append(QuoteItem(
            product_id=product.id,
            product_name=snapshot.product_name if snapshot else product.name,
            position=position,
            quantity=item_in.quantity,
            price=price,
            discount=discount,
        ))
    return items


# --------------------------
# Quote numbering
# --------------------------
async def next_quote_number(db: AsyncSession) -> str:
    """
    Atomically take the next value of the quote counter. The counter row is
    created on first use; a concurrent creator losing that race falls back
    to the increment.
    """
    bump = (
        update(QuoteSequence)
        .where(QuoteSequence.name == QUOTE_SEQUENCE_NAME)
        .values(value=QuoteSequence.value + 1)
        .returning(QuoteSequence.value)
        .execution_options(synchronize_session=False)
    )
    value = (await db.execute(bump)).scalar()
    if value is None:
        try:
            async with db.begin_nested():
                db.add(QuoteSequence(name=QUOTE_SEQUENCE_NAME, value=1))
            value = 1
        except IntegrityError:
            value = (await db.execute(bump)).scalar_one()
    return f"Q{value}"


# --------------------------
# CREATE QUOTE
# --------------------------
async def create_quote(db: AsyncSession, data: QuoteCreate, current_user) -> QuoteResponse:
    customer = await _get_customer(db, data.customer_id)
    template = await _get_template(db, data.template_id, data.type, require_active=True)
    items = await _build_items(db, data.items)

    quote = Quote(
        type=data.type,
        customer=customer,
        template=template,
        status=QuoteStatus.draft,
        valid_until=data.valid_until,
        notes=data.notes,
        items=items,
        created_by=current_user.id if current_user else None,
        updated_by=current_user.id if current_user else None,
    )
    quote.calculate_totals()

    for attempt in range(1, QUOTE_NUMBER_RETRIES + 1):
        quote.quote_number = await next_quote_number(db)
        try:
            async with db.begin_nested():
                db.add(quote)
            break
        except IntegrityError:
            logger.warning(
                "Quote number collision, retrying",
                extra={"quote_number": quote.quote_number},
            )
            if attempt == QUOTE_NUMBER_RETRIES:
                await db.rollback()
                raise DomainRuleViolation("לא ניתן היה להקצות מספר הצעה, נסו שוב")

    await log_operator_action(db, current_user, f"Quote '{quote.quote_number}' created")
    await db.commit()
    await db.refresh(quote)

    logger.info("Quote created", extra={"quote_number": quote.quote_number, "quote_id": quote.id})
    return QuoteResponse(message="Quote created successfully", data=quote_out(quote))


# --------------------------
# GET / LIST
# --------------------------
async def get_quote(db: AsyncSession, quote_id: int) -> QuoteResponse:
    quote = await get_quote_or_404(db, quote_id)
    return QuoteResponse(message="Quote retrieved successfully", data=quote_out(quote))


async def list_quotes(
    db: AsyncSession,
    status: QuoteStatus = None,
    type: QuoteType = None,
    customer_id: int = None,
    search: str = None,
    expired: bool = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "created_at",
    order: str = "desc",
) -> QuoteListResponse:
    query = select(Quote)
    if status is not None:
        query = query.where(Quote.status == status)
    if type is not None:
        query = query.where(Quote.type == type)
    if customer_id is not None:
        query = query.where(Quote.customer_id == customer_id)
    if search:
        query = query.where(Quote.quote_number.ilike(f"%{search}%"))

    today = local_today()
    if expired is True:
        query = query.where(Quote.valid_until < today)
    elif expired is False:
        query = query.where(Quote.valid_until >= today)

    sort_col = SORT_FIELDS.get(sort_by.lower(), Quote.created_at)
    query = query.order_by(asc(sort_col) if order.lower() == "asc" else desc(sort_col), desc(Quote.id))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.offset(offset).limit(limit))

    return QuoteListResponse(
        message="Quotes retrieved successfully",
        total=total,
        data=[quote_out(q, today) for q in result.scalars().all()],
    )


# --------------------------
# UPDATE QUOTE
# --------------------------
def _ensure_editable(quote: Quote):
    if quote.signature is not None:
        raise QuoteAlreadySigned()
    if quote.status not in EDITABLE_STATUSES:
        raise QuoteNotEditable(
            f"לא ניתן לערוך הצעה בסטטוס '{QUOTE_STATUS_LABELS.get(quote.status, quote.status)}'"
        )


async def update_quote(db: AsyncSession, quote_id: int, data: QuoteUpdate, current_user) -> QuoteResponse:
    quote = await get_quote_or_404(db, quote_id)
    _ensure_editable(quote)

    changes = data.model_dump(exclude_unset=True)

    if changes.get("customer_id") is not None and changes["customer_id"] != quote.customer_id:
        quote.customer = await _get_customer(db, changes["customer_id"])

    new_type = changes.get("type") or quote.type
    new_template_id = changes.get("template_id") or quote.template_id
    if new_type != quote.type or new_template_id != quote.template_id:
        quote.template = await _get_template(
            db, new_template_id, new_type,
            require_active=new_template_id != quote.template_id,
        )
        quote.type = new_type

    if changes.get("valid_until") is not None:
        quote.valid_until = changes["valid_until"]
    if "notes" in changes:
        quote.notes = changes["notes"]

    if data.items is not None:
        quote.items = await _build_items(db, data.items, previous=list(quote.items))
        quote.calculate_totals()

    quote.updated_by = current_user.id if current_user else None

    await log_operator_action(db, current_user, f"Quote '{quote.quote_number}' updated")
    await db.commit()
    await db.refresh(quote)

    return QuoteResponse(message="Quote updated successfully", data=quote_out(quote))


# --------------------------
# STATUS
# --------------------------
async def set_status(db: AsyncSession, quote_id: int, new_status: QuoteStatus, current_user) -> QuoteResponse:
    quote = await get_quote_or_404(db, quote_id)
    current = quote.status

    if current == new_status:
        return QuoteResponse(message="Quote status unchanged", data=quote_out(quote))
    if not can_transition(current, new_status):
        raise InvalidStatusTransition(
            QUOTE_STATUS_LABELS.get(current, str(current)),
            QUOTE_STATUS_LABELS.get(new_status, str(new_status)),
        )

    quote.status = new_status
    quote.updated_by = current_user.id if current_user else None

    await log_operator_action(
        db, current_user,
        f"Quote '{quote.quote_number}' status changed: {current.value} → {new_status.value}"
    )
    await db.commit()
    await db.refresh(quote)

    logger.info(
        "Quote status changed to %s", new_status.value,
        extra={"quote_number": quote.quote_number, "quote_id": quote.id},
    )
    return QuoteResponse(message="Quote status updated successfully", data=quote_out(quote))


# --------------------------
# DELETE
# --------------------------
async def delete_quote(db: AsyncSession, quote_id: int, current_user) -> QuoteResponse:
    quote = await get_quote_or_404(db, quote_id)
    if quote.signature is not None or quote.status == QuoteStatus.signed:
        raise QuoteAlreadySigned()

    snapshot = quote_out(quote)
    await db.delete(quote)
    await log_operator_action(db, current_user, f"Quote '{snapshot.quote_number}' deleted")
    await db.commit()

    return QuoteResponse(message="Quote deleted successfully", data=snapshot)


# --------------------------
# PUBLIC LINK
# --------------------------
async def issue_public_link(db: AsyncSession, quote_id: int, current_user) -> PublicLinkResponse:
    """
    Idempotent: the first call mints the tokens, later calls return the same
    link. A draft is moved to `sent`, since a draft cannot be signed.
    """
    quote = await get_quote_or_404(db, quote_id)
    changed = False

    if quote.public_token is None:
        result = await db.execute(
            update(Quote)
            .where(Quote.id == quote_id, Quote.public_token.is_(None))
            .values(
                public_token=generate_public_token(),
                email_verification_token=generate_public_token(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            await log_operator_action(db, current_user, f"Public link issued for quote '{quote.quote_number}'")
        changed = True

    if quote.status == QuoteStatus.draft:
        quote.status = QuoteStatus.sent
        quote.updated_by = current_user.id if current_user else None
        await log_operator_action(
            db, current_user,
            f"Quote '{quote.quote_number}' status changed: {QuoteStatus.draft.value} → {QuoteStatus.sent.value} (public link)"
        )
        changed = True

    if changed:
        await db.commit()
        await db.refresh(quote)

    return PublicLinkResponse(
        message="Public link ready",
        data=PublicLinkOut(url=public_url(quote.public_token), token=quote.public_token),
    )


# --------------------------
# RENDERING
# --------------------------
async def render_quote_html(db: AsyncSession, quote: Quote) -> str:
    """HTML view of the quote; company variables render empty when no profile exists."""
    company = await load_company(db)
    context = template_engine.context_from_quote(quote, company)
    return template_engine.render(quote.template.content, context)


async def render_quote_pdf(db: AsyncSession, quote: Quote) -> bytes:
    company = await load_company(db)
    if company is None:
        raise CompanyNotConfigured()
    context = template_engine.context_from_quote(quote, company)
    return await generate_quote_pdf(quote.template.content, context, quote_number=quote.quote_number)


async def preview_quote(db: AsyncSession, quote_id: int) -> RenderedDocumentResponse:
    quote = await get_quote_or_404(db, quote_id)
    return RenderedDocumentResponse(
        message="Quote preview rendered",
        data=RenderedDocument(html=await render_quote_html(db, quote)),
    )


async def quote_pdf(db: AsyncSession, quote_id: int):
    """Returns (filename, pdf bytes) for the dashboard download."""
    quote = await get_quote_or_404(db, quote_id)
    return f"quote-{quote.quote_number}.pdf", await render_quote_pdf(db, quote)
