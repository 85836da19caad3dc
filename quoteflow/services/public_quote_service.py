# quoteflow/services/public_quote_service.py
import hmac
import logging
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update

from quoteflow.core.config import SIGNATURE_MAX_LENGTH
from quoteflow.core.exceptions import (
    NotFoundError, ValidationFailed, QuoteExpired, QuoteAlreadySigned, DomainRuleViolation,
    EmailVerificationFailed, VerificationRequired,
)
from quoteflow.core.security import create_email_verification_cookie, read_email_verification_cookie
from quoteflow.models.quote_models import Quote, QuoteStatus, QUOTE_STATUS_LABELS, SIGNABLE_STATUSES
from quoteflow.schemas.public_schemas import PublicQuoteItem, PublicQuoteOut, PublicQuoteResponse
from quoteflow.services.quote_service import (
    get_quote_or_404, is_expired, render_quote_html, render_quote_pdf, vat_for, with_vat
)

logger = logging.getLogger(__name__)


# --------------------------
# Cookie helpers
# --------------------------
def verification_cookie_name(token: str) -> str:
    return f"quote_{token}_verified"


def verification_cookie_path(token: str) -> str:
    return f"/public/quotes/{token}"


def is_request_verified(request: Request, quote: Quote) -> bool:
    """True when the request carries a valid verification cookie for this quote."""
    if not quote.email_verified or not quote.public_token or not quote.email_verification_token:
        return False
    value = request.cookies.get(verification_cookie_name(quote.public_token))
    if not value:
        return False
    payload = read_email_verification_cookie(value)
    if not payload:
        return False
    return (
        hmac.compare_digest(str(payload.get("sub", "")), quote.public_token)
        and hmac.compare_digest(str(payload.get("vid", "")), quote.email_verification_token)
    )


# --------------------------
# Lookup
# --------------------------
async def get_quote_by_token(db: AsyncSession, token: str) -> Quote:
    """Quote behind a public token; unknown tokens are 404 and expired quotes 410."""
    quote = None
    if token:
        result = await db.execute(select(Quote).where(Quote.public_token == token))
        quote = result.scalars().first()
    if not quote:
        raise NotFoundError("הצעת המחיר לא נמצאה")
    if is_expired(quote):
        raise QuoteExpired()
    return quote


# --------------------------
# View
# --------------------------
def _summary(quote: Quote, verified: bool) -> PublicQuoteOut:
    return PublicQuoteOut(
        quote_number=quote.quote_number,
        title=quote.template.title,
        customer_name=quote.customer.name,
        status=quote.status,
        status_label=QUOTE_STATUS_LABELS.get(quote.status, str(quote.status)),
        valid_until=quote.valid_until,
        requires_verification=not verified,
        is_signed=quote.signature is not None,
        signature_date=quote.signature_date,
    )


async def get_public_quote(db: AsyncSession, token: str, request: Request) -> PublicQuoteResponse:
    quote = await get_quote_by_token(db, token)
    verified = is_request_verified(request, quote)

    data = _summary(quote, verified)

    if verified:
        data.items = [
            PublicQuoteItem(
                product_name=item.product_name,
                quantity=item.quantity,
                price=item.price,
                discount=item.discount,
                line_total=item.line_total,
            )
            for item in quote.items
        ]
        data.total_amount = quote.total_amount
        data.vat_amount = vat_for(quote.total_amount)
        data.total_with_vat = with_vat(quote.total_amount)
        data.notes = quote.notes
        data.html = await render_quote_html(db, quote)

    return PublicQuoteResponse(message="Quote retrieved successfully", data=data)


# --------------------------
# Email verification
# --------------------------
def _normalize_email(value) -> str:
    return (value or "").strip().lower()


async def verify_email(db: AsyncSession, token: str, email: str):
    """
    Match the visitor's address against the customer's. Returns
    (response, cookie value) on success.
    """
    quote = await get_quote_by_token(db, token)

    supplied = _normalize_email(email)
    expected = _normalize_email(quote.customer.email)
    if not supplied or not expected or not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.info("Email verification failed", extra={"quote_number": quote.quote_number})
        raise EmailVerificationFailed()

    if not quote.email_verified:
        quote.email_verified = True
        await db.commit()
        await db.refresh(quote)

    cookie = create_email_verification_cookie(quote.public_token, quote.email_verification_token)
    logger.info("Email verified for public quote", extra={"quote_number": quote.quote_number})

    response = PublicQuoteResponse(message="Email verified successfully", data=_summary(quote, True))
    return response, cookie


# --------------------------
# Signing
# --------------------------
def _validate_signature(signature) -> str:
    signature = (signature or "").strip()
    if not signature:
        raise ValidationFailed("נדרשת חתימה")
    if len(signature) > SIGNATURE_MAX_LENGTH:
        raise ValidationFailed("קובץ החתימה גדול מדי")
    return signature


async def sign_quote(db: AsyncSession, quote_id: int, signature: str) -> Quote:
    """
    Attach the customer's signature once. The write is conditional on the
    quote still being unsigned, so a second concurrent signer gets a 409.
    """
    signature = _validate_signature(signature)
    quote = await get_quote_or_404(db, quote_id)

    if is_expired(quote):
        raise QuoteExpired()
    if quote.signature is not None:
        raise QuoteAlreadySigned()
    if quote.status not in SIGNABLE_STATUSES:
        raise DomainRuleViolation(
            f"לא ניתן לחתום על הצעה בסטטוס '{QUOTE_STATUS_LABELS.get(quote.status, quote.status)}'"
        )

    result = await db.execute(
        update(Quote)
        .where(
            Quote.id == quote_id,
            Quote.signature.is_(None),
            Quote.status.in_(list(SIGNABLE_STATUSES)),
        )
        .values(
            signature=signature,
            signature_date=datetime.now(timezone.utc),
            status=QuoteStatus.signed,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise QuoteAlreadySigned()

    await db.commit()
    await db.refresh(quote)

    logger.info("Quote signed", extra={"quote_number": quote.quote_number, "quote_id": quote.id})
    return quote


async def sign_public_quote(db: AsyncSession, token: str, signature: str, request: Request) -> PublicQuoteResponse:
    quote = await get_quote_by_token(db, token)
    if not is_request_verified(request, quote):
        raise VerificationRequired()

    quote = await sign_quote(db, quote.id, signature)
    return PublicQuoteResponse(message="Quote signed successfully", data=_summary(quote, True))


# --------------------------
# PDF
# --------------------------
async def public_quote_pdf(db: AsyncSession, token: str, request: Request):
    """Returns (filename, pdf bytes) for a verified visitor."""
    quote = await get_quote_by_token(db, token)
    if not is_request_verified(request, quote):
        raise VerificationRequired()
    return f"quote-{quote.quote_number}.pdf", await render_quote_pdf(db, quote)
