# quoteflow/services/template_service.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func, asc, desc

from quoteflow.core.exceptions import NotFoundError, ReferencedEntity, ValidationFailed
from quoteflow.models.quote_models import Quote
from quoteflow.models.template_models import QuoteTemplate, QuoteType, QUOTE_TYPE_LABELS
from quoteflow.schemas.template_schemas import (
    TemplateCreate, TemplateUpdate, TemplateOut, TemplateVariableOut,
    TemplateResponse, TemplateListResponse,
    CatalogVariableOut, VariableCatalogResponse,
    RenderedDocument, RenderedDocumentResponse,
)
from quoteflow.services import template_engine
from quoteflow.services.company_service import load_company
from quoteflow.utils.activity_helpers import log_operator_action

SORT_FIELDS = {
    "title": QuoteTemplate.title,
    "type": QuoteTemplate.type,
    "created_at": QuoteTemplate.created_at,
}


# --------------------------
# Helpers
# --------------------------
def template_out(template: QuoteTemplate) -> TemplateOut:
    return TemplateOut(
        id=template.id,
        type=template.type,
        type_label=QUOTE_TYPE_LABELS.get(template.type, str(template.type)),
        title=template.title,
        content=template.content,
        is_active=template.is_active,
        variables=[TemplateVariableOut(**v) for v in (template.variables or [])],
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


def _checked_variables(content: str, declared=None) -> list:
    """
    Reject content or declared variables outside the catalog and return the
    variable list to store.
    """
    placeholders = template_engine.extract_placeholders(content)
    unknown = template_engine.unknown_variables(placeholders)
    if declared:
        unknown += [n for n in template_engine.unknown_variables(v.name for v in declared) if n not in unknown]
    if unknown:
        raise ValidationFailed(f"משתנים לא מוכרים בתבנית: {', '.join(unknown)}")

    if declared:
        return [v.model_dump() for v in declared]
    return template_engine.describe_variables(placeholders)


async def get_template_or_404(db: AsyncSession, template_id: int) -> QuoteTemplate:
    template = await db.get(QuoteTemplate, template_id)
    if not template:
        raise NotFoundError("התבנית לא נמצאה")
    return template


# --------------------------
# CRUD
# --------------------------
async def create_template(db: AsyncSession, data: TemplateCreate, current_user) -> TemplateResponse:
    variables = _checked_variables(data.content, data.variables)

    template = QuoteTemplate(
        type=data.type,
        title=data.title.strip(),
        content=data.content,
        is_active=data.is_active,
        variables=variables,
    )
    db.add(template)
    await db.flush()

    await log_operator_action(db, current_user, f"Template '{template.title}' (ID: {template.id}) created")
    await db.commit()
    await db.refresh(template)

    return TemplateResponse(message="Template created successfully", data=template_out(template))


async def get_template(db: AsyncSession, template_id: int) -> TemplateResponse:
    template = await get_template_or_404(db, template_id)
    return TemplateResponse(message="Template retrieved successfully", data=template_out(template))


async def list_templates(
    db: AsyncSession,
    type: QuoteType = None,
    is_active: bool = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "created_at",
    order: str = "desc",
) -> TemplateListResponse:
    query = select(QuoteTemplate)
    if type is not None:
        query = query.where(QuoteTemplate.type == type)
    if is_active is not None:
        query = query.where(QuoteTemplate.is_active == is_active)

    sort_col = SORT_FIELDS.get(sort_by.lower(), QuoteTemplate.created_at)
    query = query.order_by(asc(sort_col) if order.lower() == "asc" else desc(sort_col), desc(QuoteTemplate.id))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.offset(offset).limit(limit))

    return TemplateListResponse(
        message="Templates retrieved successfully",
        total=total,
        data=[template_out(t) for t in result.scalars().all()],
    )


async def update_template(db: AsyncSession, template_id: int, data: TemplateUpdate, current_user) -> TemplateResponse:
    template = await get_template_or_404(db, template_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "content" in changes or "variables" in changes:
        template.variables = _checked_variables(changes.get("content", template.content), data.variables)
    if "content" in changes:
        template.content = changes["content"]
    if "title" in changes:
        template.title = changes["title"].strip()
    if "type" in changes:
        template.type = changes["type"]
    if "is_active" in changes:
        template.is_active = changes["is_active"]

    await log_operator_action(db, current_user, f"Template '{template.title}' (ID: {template.id}) updated")
    await db.commit()
    await db.refresh(template)

    return TemplateResponse(message="Template updated successfully", data=template_out(template))


async def delete_template(db: AsyncSession, template_id: int, current_user) -> TemplateResponse:
    template = await get_template_or_404(db, template_id)

    in_use = (await db.execute(
        select(func.count(Quote.id)).where(Quote.template_id == template_id)
    )).scalar() or 0
    if in_use:
        raise ReferencedEntity(f"התבנית משמשת ב-{in_use} הצעות מחיר ולא ניתן למחוק אותה")

    snapshot = template_out(template)
    await db.delete(template)
    await log_operator_action(db, current_user, f"Template '{snapshot.title}' (ID: {snapshot.id}) deleted")
    await db.commit()

    return TemplateResponse(message="Template deleted successfully", data=snapshot)


# --------------------------
# Catalog & preview
# --------------------------
async def list_catalog() -> VariableCatalogResponse:
    return VariableCatalogResponse(
        message="Template variables retrieved successfully",
        data=[
            CatalogVariableOut(name=v.name, origin=v.origin.value, description=v.description)
            for v in template_engine.catalog()
        ],
    )


def sample_context(company=None, now: datetime = None) -> template_engine.RenderContext:
    """Stand-in client and quote values for previewing a template in the editor."""
    now = now or datetime.now(timezone.utc)
    items = [
        template_engine.RenderLine("מוצר לדוגמה", 2, Decimal("50"), Decimal("10")),
        template_engine.RenderLine("שירות לדוגמה", 1, Decimal("250"), Decimal("0")),
    ]
    return template_engine.RenderContext(
        company=template_engine.company_facts(company),
        client={
            "name": "ישראל ישראלי",
            "company": "חברה לדוגמה בע\"מ",
            "address": {"street": "הרצל 1", "city": "תל אביב", "zip_code": "6100000"},
            "phone": "050-0000000",
            "email": "client@example.com",
        },
        quote={
            "quote_number": "Q0",
            "valid_until": (now + timedelta(days=30)).date(),
            "total_amount": sum((item.line_total for item in items), Decimal("0.00")),
            "signature": None,
            "signature_date": None,
        },
        items=items,
        now=now,
    )


async def preview_template(db: AsyncSession, template_id: int) -> RenderedDocumentResponse:
    template = await get_template_or_404(db, template_id)
    company = await load_company(db)
    rendered = template_engine.render(template.content, sample_context(company))
    return RenderedDocumentResponse(message="Template preview rendered", data=RenderedDocument(html=rendered))
