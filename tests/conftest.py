# tests/conftest.py
import os
import sys
import tempfile
from datetime import date, timedelta
from types import SimpleNamespace

# settings are read at import time, so they go in before any quoteflow import
_BOOTSTRAP_DIR = tempfile.mkdtemp(prefix="quoteflow-tests-")
os.environ["DB_TYPE"] = "sqlite"
os.environ["SQLITE_PATH"] = os.path.join(_BOOTSTRAP_DIR, "bootstrap.db")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["COOKIE_SECURE"] = "false"
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["VAT_RATE"] = "0.17"
os.environ["PDF_FONT_PATH"] = os.path.join(_BOOTSTRAP_DIR, "missing-font.ttf")

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from quoteflow.core.db import build_engine, build_sessionmaker, get_db, init_models  # noqa: E402
from quoteflow.core.security import hash_password  # noqa: E402
from quoteflow.models.company_models import Company  # noqa: E402
from quoteflow.models.customer_models import Customer  # noqa: E402
from quoteflow.models.product_models import Product  # noqa: E402
from quoteflow.models.template_models import QuoteTemplate, QuoteType  # noqa: E402
from quoteflow.models.user_models import User, ROLE_ADMIN, ROLE_OPERATOR  # noqa: E402
from quoteflow.schemas.quote_schemas import QuoteCreate, QuoteItemIn  # noqa: E402

TEMPLATE_CONTENT = (
    "<h1>הצעת מחיר {{quoteNumber}}</h1>"
    "<p>שלום {{clientName}}, סה\"כ: {{quoteTotal}}</p>"
    "{{productsTable}}"
    "<p>בתוקף עד {{quoteValidUntil}}</p>"
)

PASSWORD = "secret-pass"


# ── Database (fresh SQLite file per test) ─────────────────────────────────────

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def client(session_factory):
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── Users ─────────────────────────────────────────────────────────────────────

async def _make_user(session_factory, username, role):
    async with session_factory() as session:
        user = User(username=username, password_hash=hash_password(PASSWORD), role=role, is_active=True)
        session.add(user)
        await session.commit()
        return user.id


async def _login(client, username):
    response = await client.post("/auth/login", json={"username": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
async def operator_headers(client, session_factory):
    await _make_user(session_factory, "operator", ROLE_OPERATOR)
    return await _login(client, "operator")


@pytest.fixture
async def admin_headers(client, session_factory):
    await _make_user(session_factory, "admin", ROLE_ADMIN)
    return await _login(client, "admin")


# ── Domain seed data ──────────────────────────────────────────────────────────

@pytest.fixture
async def seed(session_factory):
    """One customer, two products, an active and an inactive template."""
    async with session_factory() as session:
        customer = Customer(
            name="דנה כהן",
            email="dana@example.com",
            phone="050-1234567",
            company="כהן בע\"מ",
            address={"street": "הרצל 10", "city": "חיפה", "zip_code": "3100000"},
        )
        workshop = Product(name="סדנת צילום", description="סדנה בת 4 שעות", category="סדנאות", price=50.0, discount=0.0)
        lens = Product(name="עדשה", description="עדשת 50 מ\"מ", category="ציוד", price=100.0, discount=10.0)
        template = QuoteTemplate(
            type=QuoteType.services,
            title="הצעת שירותים",
            content=TEMPLATE_CONTENT,
            is_active=True,
            variables=[],
        )
        retired = QuoteTemplate(
            type=QuoteType.services,
            title="תבנית ישנה",
            content="{{clientName}}",
            is_active=False,
            variables=[],
        )
        products_template = QuoteTemplate(
            type=QuoteType.products,
            title="הצעת מוצרים",
            content="{{productsTable}}",
            is_active=True,
            variables=[],
        )
        session.add_all([customer, workshop, lens, template, retired, products_template])
        await session.commit()

        return SimpleNamespace(
            customer_id=customer.id,
            customer_email=customer.email,
            workshop_id=workshop.id,
            lens_id=lens.id,
            template_id=template.id,
            retired_template_id=retired.id,
            products_template_id=products_template.id,
        )


@pytest.fixture
async def company(session_factory):
    async with session_factory() as session:
        row = Company(
            name="סטודיו אור",
            logo="data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg==",
            address={"street": "יפו 1", "city": "ירושלים", "zip_code": "9100000"},
            contact_info={"phone": "02-5555555", "email": "office@or.example", "website": "or.example"},
            signature="data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg==",
            tax_id="515555555",
            bank_details={"bank_name": "הפועלים", "branch_number": "600", "account_number": "123456"},
        )
        session.add(row)
        await session.commit()
        return row.id


def quote_payload(seed, quantity=2, price=None, discount=10.0, valid_until=None, quote_type=QuoteType.services,
                  template_id=None) -> QuoteCreate:
    return QuoteCreate(
        type=quote_type,
        customer_id=seed.customer_id,
        template_id=template_id or seed.template_id,
        valid_until=valid_until or date.today() + timedelta(days=30),
        items=[QuoteItemIn(product_id=seed.workshop_id, quantity=quantity, price=price, discount=discount)],
        notes="כולל הגעה לאתר",
    )
