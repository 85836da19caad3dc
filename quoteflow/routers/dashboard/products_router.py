# quoteflow/routers/dashboard/products_router.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from quoteflow.core.db import get_db
from quoteflow.models.user_models import ROLE_ADMIN, OPERATOR_ROLES
from quoteflow.schemas.product_schemas import ProductCreate, ProductUpdate, ProductResponse, ProductListResponse
from quoteflow.services import product_service
from quoteflow.utils.get_user import get_current_user
from quoteflow.utils.check_roles import require_role

router = APIRouter(prefix="/products", tags=["Products"])


# ---------------------------------------------------
# CREATE PRODUCT
# ---------------------------------------------------
@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
@require_role(OPERATOR_ROLES)
async def create_product_route(
    data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await product_service.create_product(db, data, _user)


# ---------------------------------------------------
# LIST PRODUCTS
# ---------------------------------------------------
@router.get("/", response_model=ProductListResponse)
@require_role(OPERATOR_ROLES)
async def list_products_route(
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
    search: str = Query(None, description="Match name or description"),
    category: str = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("created_at", description="name, price, category, created_at"),
    order: str = Query("desc")
):
    return await product_service.get_all_products(db, search, category, limit, offset, sort_by, order)


# ---------------------------------------------------
# GET PRODUCT
# ---------------------------------------------------
@router.get("/{product_id}", response_model=ProductResponse)
@require_role(OPERATOR_ROLES)
async def get_product_route(product_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await product_service.get_product(db, product_id)


# ---------------------------------------------------
# UPDATE PRODUCT
# ---------------------------------------------------
@router.put("/{product_id}", response_model=ProductResponse)
@require_role(OPERATOR_ROLES)
async def update_product_route(
    product_id: int,
    data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user)
):
    return await product_service.update_product(db, product_id, data, _user)


# ---------------------------------------------------
# DELETE PRODUCT
# ---------------------------------------------------
@router.delete("/{product_id}", response_model=ProductResponse)
@require_role([ROLE_ADMIN])
async def delete_product_route(product_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await product_service.delete_product(db, product_id, _user)
