# quoteflow/services/product_service.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, asc, desc, or_

from quoteflow.core.exceptions import NotFoundError
from quoteflow.models.product_models import Product
from quoteflow.schemas.product_schemas import (
    ProductCreate, ProductUpdate, ProductOut, ProductResponse, ProductListResponse
)
from quoteflow.utils.activity_helpers import log_operator_action

SORT_FIELDS = {
    "name": Product.name,
    "price": Product.price,
    "category": Product.category,
    "created_at": Product.created_at,
}


async def _get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise NotFoundError("המוצר לא נמצא")
    return product


# ---------------------------------------------------
# CREATE PRODUCT
# ---------------------------------------------------
async def create_product(db: AsyncSession, data: ProductCreate, current_user) -> ProductResponse:
    product = Product(**data.model_dump())
    db.add(product)
    await db.flush()  # ensures product.id is available

    await log_operator_action(db, current_user, f"Product '{product.name}' (ID: {product.id}) created")
    await db.commit()
    await db.refresh(product)
    return ProductResponse(message="Product created successfully", data=ProductOut.model_validate(product))


# ---------------------------------------------------
# LIST PRODUCTS
# ---------------------------------------------------
async def get_all_products(
    db: AsyncSession,
    search: str = None,
    category: str = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "created_at",
    order: str = "desc",
) -> ProductListResponse:
    query = select(Product)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if category:
        query = query.where(Product.category == category)

    sort_col = SORT_FIELDS.get(sort_by.lower(), Product.created_at)
    query = query.order_by(asc(sort_col) if order.lower() == "asc" else desc(sort_col), desc(Product.id))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.offset(offset).limit(limit))

    return ProductListResponse(
        message="Products fetched successfully",
        total=total,
        data=[ProductOut.model_validate(p) for p in result.scalars().all()],
    )


# ---------------------------------------------------
# GET SINGLE PRODUCT
# ---------------------------------------------------
async def get_product(db: AsyncSession, product_id: int) -> ProductResponse:
    product = await _get_product_or_404(db, product_id)
    return ProductResponse(message="Product fetched successfully", data=ProductOut.model_validate(product))


# ---------------------------------------------------
# UPDATE PRODUCT
# ---------------------------------------------------
async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate, current_user) -> ProductResponse:
    """
    Update product details. Existing quotes keep their snapshotted prices.
    """
    product = await _get_product_or_404(db, product_id)

    changes = []
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        old_val = getattr(product, key)
        if old_val != value:
            changes.append(f"{key}: {old_val} → {value}")
            setattr(product, key, value)

    if changes:
        await log_operator_action(
            db, current_user,
            f"Product '{product.name}' (ID: {product.id}) updated: {', '.join(changes)}"
        )
        await db.commit()
        await db.refresh(product)

    return ProductResponse(message="Product updated successfully", data=ProductOut.model_validate(product))


# ---------------------------------------------------
# DELETE PRODUCT (hard delete)
# ---------------------------------------------------
async def delete_product(db: AsyncSession, product_id: int, current_user) -> ProductResponse:
    """
    Quote items referencing the product keep their name/price snapshot;
    their product_id is nulled by the foreign key.
    """
    product = await _get_product_or_404(db, product_id)
    snapshot = ProductOut.model_validate(product)

    await db.delete(product)
    await log_operator_action(db, current_user, f"Product '{snapshot.name}' (ID: {snapshot.id}) deleted")
    await db.commit()

    return ProductResponse(message="Product deleted successfully", data=snapshot)
