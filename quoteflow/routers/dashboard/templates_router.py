# quoteflow/routers/dashboard/templates_router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.core.db import get_db
from quoteflow.models.template_models import QuoteType
from quoteflow.models.user_models import ROLE_ADMIN, OPERATOR_ROLES
from quoteflow.schemas.template_schemas import (
    TemplateCreate, TemplateUpdate, TemplateResponse, TemplateListResponse,
    VariableCatalogResponse, RenderedDocumentResponse,
)
from quoteflow.services import template_service
from quoteflow.utils.get_user import get_current_user
from quoteflow.utils.check_roles import require_role

router = APIRouter(prefix="/templates", tags=["Quote Templates"])


# declared before /{template_id} so "variables" is not parsed as an id
@router.get("/variables", response_model=VariableCatalogResponse)
@require_role(OPERATOR_ROLES)
async def list_variables_route(_user=Depends(get_current_user)):
    return await template_service.list_catalog()


@router.post("/", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
@require_role(OPERATOR_ROLES)
async def create_template_route(
    data: TemplateCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await template_service.create_template(db, data, _user)


@router.get("/", response_model=TemplateListResponse)
@require_role(OPERATOR_ROLES)
async def list_templates_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    type: Optional[QuoteType] = Query(None),
    is_active: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at", description="title, type, created_at"),
    order: str = Query("desc")
):
    return await template_service.list_templates(db, type, is_active, limit, offset, sort_by, order)


@router.get("/{template_id}", response_model=TemplateResponse)
@require_role(OPERATOR_ROLES)
async def get_template_route(template_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await template_service.get_template(db, template_id)


@router.get("/{template_id}/preview", response_model=RenderedDocumentResponse)
@require_role(OPERATOR_ROLES)
async def preview_template_route(template_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """
    Render the template with the company profile and sample client values.
    """
    return await template_service.preview_template(db, template_id)


@router.put("/{template_id}", response_model=TemplateResponse)
@require_role(OPERATOR_ROLES)
async def update_template_route(
    template_id: int,
    data: TemplateUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await template_service.update_template(db, template_id, data, _user)


@router.delete("/{template_id}", response_model=TemplateResponse)
@require_role([ROLE_ADMIN])
async def delete_template_route(template_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await template_service.delete_template(db, template_id, _user)
