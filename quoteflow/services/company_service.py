# quoteflow/services/company_service.py
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from quoteflow.core.exceptions import NotFoundError
from quoteflow.models.company_models import Company
from quoteflow.schemas.company_schemas import CompanyIn, CompanyOut, CompanyResponse
from quoteflow.utils.activity_helpers import log_operator_action


async def load_company(db: AsyncSession) -> Optional[Company]:
    """The company profile row, or None when it was never configured."""
    result = await db.execute(select(Company).order_by(Company.id).limit(1))
    return result.scalars().first()


async def get_company(db: AsyncSession) -> CompanyResponse:
    company = await load_company(db)
    if not company:
        raise NotFoundError("פרטי החברה לא הוגדרו")
    return CompanyResponse(message="Company profile retrieved successfully", data=CompanyOut.model_validate(company))


async def upsert_company(db: AsyncSession, data: CompanyIn, current_user) -> CompanyResponse:
    company = await load_company(db)
    values = data.model_dump()

    if company is None:
        company = Company(**values)
        db.add(company)
        message = "Company profile created successfully"
    else:
        for key, value in values.items():
            setattr(company, key, value)
        message = "Company profile updated successfully"

    await db.flush()
    await log_operator_action(db, current_user, f"Company profile '{company.name}' saved")
    await db.commit()
    await db.refresh(company)

    return CompanyResponse(message=message, data=CompanyOut.model_validate(company))
