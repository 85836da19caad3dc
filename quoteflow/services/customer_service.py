# quoteflow/services/customer_service.py
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, asc, desc, or_
from sqlalchemy.exc import IntegrityError

from quoteflow.core.exceptions import NotFoundError, DuplicateEntity, ReferencedEntity
from quoteflow.models.customer_models import Customer
from quoteflow.models.quote_models import Quote
from quoteflow.schemas.customer_schema import (
    CustomerCreate, CustomerUpdate, CustomerOut, CustomerResponse, CustomerListResponse
)
from quoteflow.utils.activity_helpers import log_operator_action

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "לקוח עם כתובת אימייל זו כבר קיים"


async def _get_customer_or_404(db: AsyncSession, customer_id: int) -> Customer:
    customer = await db.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("הלקוח לא נמצא")
    return customer


async def _email_taken(db: AsyncSession, email: str, exclude_id: int = None) -> bool:
    stmt = select(Customer.id).where(Customer.email == email)
    if exclude_id is not None:
        stmt = stmt.where(Customer.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


# CREATE CUSTOMER
async def create_customer(db: AsyncSession, data: CustomerCreate, current_user) -> CustomerResponse:
    if await _email_taken(db, data.email):
        raise DuplicateEntity(DUPLICATE_EMAIL_MESSAGE)

    customer = Customer(
        **data.model_dump(),
        created_by=current_user.id if current_user else None,
        updated_by=current_user.id if current_user else None,
    )
    db.add(customer)
    try:
        await db.flush()
    except IntegrityError:
        # lost a race with a concurrent insert of the same email
        await db.rollback()
        logger.warning("Duplicate customer email rejected on insert: %s", data.email)
        raise DuplicateEntity(DUPLICATE_EMAIL_MESSAGE)

    await log_operator_action(db, current_user, f"Customer '{customer.name}' (ID: {customer.id}) created")
    await db.commit()
    await db.refresh(customer)

    return CustomerResponse(message="Customer created successfully", data=CustomerOut.model_validate(customer))


# GET SINGLE CUSTOMER
async def get_customer(db: AsyncSession, customer_id: int) -> CustomerResponse:
    customer = await _get_customer_or_404(db, customer_id)
    return CustomerResponse(message="Customer retrieved successfully", data=CustomerOut.model_validate(customer))


# LIST CUSTOMERS
async def get_all_customers(
    db: AsyncSession,
    search: str = None,
    company: str = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "created_at",
    order: str = "desc"
) -> CustomerListResponse:
    query = select(Customer)

    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Customer.name.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    if company:
        query = query.where(Customer.company.ilike(f"%{company}%"))

    sort_col_map = {
        "name": Customer.name,
        "email": Customer.email,
        "company": Customer.company,
        "created_at": Customer.created_at,
    }

    warning = None
    if sort_by.lower() not in sort_col_map:
        warning = f"sort_by '{sort_by}' is invalid, defaulted to 'created_at'"
        sort_col = Customer.created_at
    else:
        sort_col = sort_col_map[sort_by.lower()]

    sort_order = asc(sort_col) if order.lower() == "asc" else desc(sort_col)
    query = query.order_by(sort_order, desc(Customer.id))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    result = await db.execute(query.offset(offset).limit(limit))
    customers = result.scalars().all()

    return CustomerListResponse(
        message="Customers retrieved successfully",
        total=total,
        data=[CustomerOut.model_validate(c) for c in customers],
        warning=warning,
    )


# UPDATE CUSTOMER
async def update_customer(db: AsyncSession, customer_id: int, data: CustomerUpdate, current_user) -> CustomerResponse:
    customer = await _get_customer_or_404(db, customer_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes and changes["email"] != customer.email:
        if await _email_taken(db, changes["email"], exclude_id=customer_id):
            raise DuplicateEntity(DUPLICATE_EMAIL_MESSAGE)

    for key, value in changes.items():
        setattr(customer, key, value.strip() if isinstance(value, str) else value)
    customer.updated_by = current_user.id if current_user else None

    await log_operator_action(db, current_user, f"Customer '{customer.name}' (ID: {customer.id}) updated")
    await db.commit()
    await db.refresh(customer)

    return CustomerResponse(message="Customer updated successfully", data=CustomerOut.model_validate(customer))


# DELETE CUSTOMER (hard delete)
async def delete_customer(db: AsyncSession, customer_id: int, current_user) -> CustomerResponse:
    customer = await _get_customer_or_404(db, customer_id)

    quote_count = (await db.execute(
        select(func.count(Quote.id)).where(Quote.customer_id == customer_id)
    )).scalar() or 0
    if quote_count:
        raise ReferencedEntity(f"לא ניתן למחוק לקוח שיש לו {quote_count} הצעות מחיר")

    snapshot = CustomerOut.model_validate(customer)
    await db.delete(customer)
    await log_operator_action(db, current_user, f"Customer '{snapshot.name}' (ID: {snapshot.id}) deleted")
    await db.commit()

    return CustomerResponse(message="Customer deleted successfully", data=snapshot)
