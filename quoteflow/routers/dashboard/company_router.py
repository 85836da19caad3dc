# quoteflow/routers/dashboard/company_router.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.core.db import get_db
from quoteflow.models.user_models import OPERATOR_ROLES
from quoteflow.schemas.company_schemas import CompanyIn, CompanyResponse
from quoteflow.services import company_service
from quoteflow.utils.get_user import get_current_user
from quoteflow.utils.check_roles import require_role

router = APIRouter(prefix="/company", tags=["Company"])


@router.get("/", response_model=CompanyResponse)
@require_role(OPERATOR_ROLES)
async def get_company_route(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await company_service.get_company(db)


@router.put("/", response_model=CompanyResponse)
@require_role(OPERATOR_ROLES)
async def upsert_company_route(data: CompanyIn, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await company_service.upsert_company(db, data, _user)
