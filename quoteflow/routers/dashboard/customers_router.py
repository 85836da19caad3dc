from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from quoteflow.schemas.customer_schema import (
    CustomerCreate, CustomerUpdate,
    CustomerResponse, CustomerListResponse
)
from quoteflow.services import customer_service
from quoteflow.core.db import get_db
from quoteflow.models.user_models import ROLE_ADMIN, OPERATOR_ROLES
from quoteflow.utils.get_user import get_current_user
from quoteflow.utils.check_roles import require_role

router = APIRouter(prefix="/customers", tags=["Customers"])


# CREATE
@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@require_role(OPERATOR_ROLES)
async def create_customer_route(
    customer: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await customer_service.create_customer(db, customer, _user)


# GET SINGLE
@router.get("/{customer_id}", response_model=CustomerResponse)
@require_role(OPERATOR_ROLES)
async def get_customer_route(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await customer_service.get_customer(db, customer_id)


# GET ALL WITH SEARCH, PAGINATION, SORTING
@router.get("/", response_model=CustomerListResponse)
@require_role(OPERATOR_ROLES)
async def list_customers_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    search: str = Query(None, description="Match name, email or phone"),
    company: str = Query(None, description="Filter by company"),
    limit: int = Query(50, ge=1, le=100, description="Limit number of results"),
    offset: int = Query(0, ge=0, description="Offset for pagination"),
    sort_by: str = Query("created_at", description="Sort by field: name, email, company, created_at"),
    order: str = Query("desc", description="Order: asc or desc")
):
    return await customer_service.get_all_customers(db, search, company, limit, offset, sort_by, order)


# UPDATE
@router.put("/{customer_id}", response_model=CustomerResponse)
@require_role(OPERATOR_ROLES)
async def update_customer_route(
    customer_id: int,
    customer: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await customer_service.update_customer(db, customer_id, customer, _user)


# DELETE
@router.delete("/{customer_id}", response_model=CustomerResponse)
@require_role([ROLE_ADMIN])
async def delete_customer_route(
    customer_id: int,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await customer_service.delete_customer(db, customer_id, _user)
