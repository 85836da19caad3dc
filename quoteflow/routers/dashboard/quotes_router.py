# quoteflow/routers/dashboard/quotes_router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.core.db import get_db
from quoteflow.models.quote_models import QuoteStatus
from quoteflow.models.template_models import QuoteType
from quoteflow.models.user_models import ROLE_ADMIN, OPERATOR_ROLES
from quoteflow.schemas.quote_schemas import (
    QuoteCreate, QuoteUpdate, QuoteStatusUpdate,
    QuoteResponse, QuoteListResponse, PublicLinkResponse,
)
from quoteflow.schemas.template_schemas import RenderedDocumentResponse
from quoteflow.services import quote_service
from quoteflow.utils.get_user import get_current_user
from quoteflow.utils.check_roles import require_role

router = APIRouter(prefix="/quotes", tags=["Quotes"])


# --------------------------
# CREATE
# --------------------------
@router.post("/", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
@require_role(OPERATOR_ROLES)
async def create_quote_route(
    data: QuoteCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await quote_service.create_quote(db, data, _user)


# --------------------------
# LIST
# --------------------------
@router.get("/", response_model=QuoteListResponse)
@require_role(OPERATOR_ROLES)
async def list_quotes_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    status: Optional[QuoteStatus] = Query(None),
    type: Optional[QuoteType] = Query(None),
    customer_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Match quote number"),
    expired: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at", description="created_at, quote_number, total_amount, valid_until"),
    order: str = Query("desc")
):
    return await quote_service.list_quotes(
        db, status=status, type=type, customer_id=customer_id, search=search, expired=expired,
        limit=limit, offset=offset, sort_by=sort_by, order=order,
    )


# --------------------------
# GET / UPDATE / DELETE
# --------------------------
@router.get("/{quote_id}", response_model=QuoteResponse)
@require_role(OPERATOR_ROLES)
async def get_quote_route(quote_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await quote_service.get_quote(db, quote_id)


@router.put("/{quote_id}", response_model=QuoteResponse)
@require_role(OPERATOR_ROLES)
async def update_quote_route(
    quote_id: int,
    data: QuoteUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await quote_service.update_quote(db, quote_id, data, _user)


@router.delete("/{quote_id}", response_model=QuoteResponse)
@require_role([ROLE_ADMIN])
async def delete_quote_route(quote_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await quote_service.delete_quote(db, quote_id, _user)


# --------------------------
# ACTIONS
# --------------------------
@router.post("/{quote_id}/status", response_model=QuoteResponse)
@require_role(OPERATOR_ROLES)
async def set_quote_status_route(
    quote_id: int,
    data: QuoteStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await quote_service.set_status(db, quote_id, data.status, _user)


@router.post("/{quote_id}/public-link", response_model=PublicLinkResponse)
@require_role(OPERATOR_ROLES)
async def issue_public_link_route(quote_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await quote_service.issue_public_link(db, quote_id, _user)


@router.get("/{quote_id}/preview", response_model=RenderedDocumentResponse)
@require_role(OPERATOR_ROLES)
async def preview_quote_route(quote_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await quote_service.preview_quote(db, quote_id)


@router.get("/{quote_id}/pdf")
@require_role(OPERATOR_ROLES)
async def quote_pdf_route(quote_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    filename, pdf = await quote_service.quote_pdf(db, quote_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
