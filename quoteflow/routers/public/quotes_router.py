# quoteflow/routers/public/quotes_router.py
"""
Customer-facing quote routes. No login: access is by the unguessable
token, and anything beyond the summary needs a verified-email cookie.
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.core.config import COOKIE_SECURE, VERIFICATION_COOKIE_DAYS
from quoteflow.core.db import get_db
from quoteflow.schemas.public_schemas import EmailVerificationRequest, SignQuoteRequest, PublicQuoteResponse
from quoteflow.services import public_quote_service

router = APIRouter(prefix="/quotes", tags=["Public Quotes"])


@router.get("/{token}", response_model=PublicQuoteResponse)
async def get_public_quote_route(token: str, request: Request, db: AsyncSession = Depends(get_db)):
    return await public_quote_service.get_public_quote(db, token, request)


@router.post("/{token}/verify-email", response_model=PublicQuoteResponse)
async def verify_email_route(
    token: str,
    data: EmailVerificationRequest,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    result, cookie = await public_quote_service.verify_email(db, token, data.email)
    response.set_cookie(
        key=public_quote_service.verification_cookie_name(token),
        value=cookie,
        max_age=VERIFICATION_COOKIE_DAYS * 24 * 60 * 60,
        path=public_quote_service.verification_cookie_path(token),
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="strict",
    )
    return result


@router.post("/{token}/sign", response_model=PublicQuoteResponse)
async def sign_quote_route(
    token: str,
    data: SignQuoteRequest,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    return await public_quote_service.sign_public_quote(db, token, data.signature, request)


@router.get("/{token}/pdf")
async def public_quote_pdf_route(token: str, request: Request, db: AsyncSession = Depends(get_db)):
    filename, pdf = await public_quote_service.public_quote_pdf(db, token, request)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
