"""
Dashboard API: auth flow, role checks and CRUD over customers, products,
templates, company profile and quotes.
"""
from datetime import date, timedelta

from conftest import PASSWORD, TEMPLATE_CONTENT

CUSTOMER = {
    "name": "יוסי לוי",
    "email": "Yossi@Example.com",
    "phone": "052-7654321",
    "company": "לוי ושות'",
    "address": {"street": "ביאליק 5", "city": "רמת גן", "zip_code": "5200000"},
}

COMPANY = {
    "name": "סטודיו אור",
    "logo": "https://cdn.example/logo.png",
    "address": {"street": "יפו 1", "city": "ירושלים", "zip_code": "9100000"},
    "contact_info": {"phone": "02-5555555", "email": "Office@Or.example", "website": "or.example"},
    "signature": "https://cdn.example/signature.png",
    "tax_id": "515555555",
    "bank_details": {"bank_name": "הפועלים", "branch_number": "600", "account_number": "123456"},
}


# ── Auth ──────────────────────────────────────────────────────────────────────

async def test_routes_require_a_token(client):
    assert (await client.get("/api/customers/")).status_code == 401


async def test_bad_password_is_rejected(client, operator_headers):
    response = await client.post("/auth/login", json={"username": "operator", "password": "nope"})
    assert response.status_code == 401


async def test_refresh_rotates_and_logout_invalidates(client, session_factory, operator_headers):
    login = await client.post("/auth/login", json={"username": "operator", "password": PASSWORD})
    refresh_token = login.json()["refresh_token"]

    rotated = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != refresh_token

    reused = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert reused.status_code == 401

    headers = {"token": rotated.json()["access_token"]}
    assert (await client.get("/api/customers/", headers=headers)).status_code == 200
    assert (await client.post("/auth/logout", headers=headers)).status_code == 200
    assert (await client.get("/api/customers/", headers=headers)).status_code == 401


# ── Customers ─────────────────────────────────────────────────────────────────

async def test_customer_crud_and_duplicate_email(client, operator_headers, admin_headers):
    created = await client.post("/api/customers/", json=CUSTOMER, headers=operator_headers)
    assert created.status_code == 201
    customer = created.json()["data"]
    assert customer["email"] == "yossi@example.com"

    duplicate = await client.post("/api/customers/", json={**CUSTOMER, "email": "YOSSI@example.com"},
                                  headers=operator_headers)
    assert duplicate.status_code == 409

    listing = await client.get("/api/customers/", params={"search": "יוסי"}, headers=operator_headers)
    assert listing.json()["total"] == 1

    updated = await client.put(f"/api/customers/{customer['id']}", json={"phone": "03-1111111"},
                               headers=operator_headers)
    assert updated.json()["data"]["phone"] == "03-1111111"

    assert (await client.delete(f"/api/customers/{customer['id']}", headers=operator_headers)).status_code == 403
    assert (await client.delete(f"/api/customers/{customer['id']}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/api/customers/{customer['id']}", headers=admin_headers)).status_code == 404


async def test_customer_with_quotes_cannot_be_deleted(client, admin_headers, seed):
    quote = await client.post("/api/quotes/", headers=admin_headers, json={
        "type": "services",
        "customer_id": seed.customer_id,
        "template_id": seed.template_id,
        "valid_until": (date.today() + timedelta(days=14)).isoformat(),
        "items": [{"product_id": seed.workshop_id, "quantity": 1}],
    })
    assert quote.status_code == 201

    response = await client.delete(f"/api/customers/{seed.customer_id}", headers=admin_headers)
    assert response.status_code == 409
    response = await client.delete(f"/api/templates/{seed.template_id}", headers=admin_headers)
    assert response.status_code == 409


# ── Products ──────────────────────────────────────────────────────────────────

async def test_product_crud(client, operator_headers, admin_headers):
    payload = {"name": "סדנת קרמיקה", "description": "מפגש זוגי", "category": "סדנאות", "price": 350, "discount": 5}
    created = (await client.post("/api/products/", json=payload, headers=operator_headers)).json()["data"]

    listing = await client.get("/api/products/", params={"category": "סדנאות", "sort_by": "price"},
                               headers=operator_headers)
    assert [p["id"] for p in listing.json()["data"]] == [created["id"]]

    bad = await client.post("/api/products/", json={**payload, "discount": 120}, headers=operator_headers)
    assert bad.status_code == 422
    # prices are whole agorot
    fractional = await client.post("/api/products/", json={**payload, "price": "10.005"}, headers=operator_headers)
    assert fractional.status_code == 422

    updated = await client.put(f"/api/products/{created['id']}", json={"price": 400}, headers=operator_headers)
    assert updated.json()["data"]["price"] == "400.00"
    assert (await client.delete(f"/api/products/{created['id']}", headers=admin_headers)).status_code == 200


# ── Templates ─────────────────────────────────────────────────────────────────

async def test_template_rejects_unknown_variables(client, operator_headers):
    response = await client.post("/api/templates/", headers=operator_headers, json={
        "type": "workshops", "title": "סדנה", "content": "<p>{{clientName}} {{favouriteColour}}</p>",
    })
    assert response.status_code == 422
    assert "favouriteColour" in response.json()["detail"]


async def test_template_create_derives_variables_and_previews(client, operator_headers):
    created = await client.post("/api/templates/", headers=operator_headers, json={
        "type": "workshops", "title": "סדנה", "content": TEMPLATE_CONTENT,
    })
    assert created.status_code == 201
    template = created.json()["data"]
    assert template["type_label"] == "סדנאות"
    assert [v["name"] for v in template["variables"]] == [
        "quoteNumber", "clientName", "quoteTotal", "productsTable", "quoteValidUntil",
    ]

    catalog = (await client.get("/api/templates/variables", headers=operator_headers)).json()["data"]
    assert {"name": "clientName", "origin": "client", "description": "שם הלקוח"} in catalog

    preview = await client.get(f"/api/templates/{template['id']}/preview", headers=operator_headers)
    html = preview.json()["data"]["html"]
    assert "שלום ישראל ישראלי" in html
    assert "₪340" in html

    listing = await client.get("/api/templates/", params={"type": "workshops"}, headers=operator_headers)
    assert listing.json()["total"] == 1


# ── Company ───────────────────────────────────────────────────────────────────

async def test_company_profile_upsert(client, operator_headers):
    assert (await client.get("/api/company/", headers=operator_headers)).status_code == 404

    first = (await client.put("/api/company/", json=COMPANY, headers=operator_headers)).json()["data"]
    assert first["contact_info"]["email"] == "office@or.example"

    second = (await client.put("/api/company/", json={**COMPANY, "name": "סטודיו אור חדש"},
                               headers=operator_headers)).json()["data"]
    assert second["id"] == first["id"]
    assert (await client.get("/api/company/", headers=operator_headers)).json()["data"]["name"] == "סטודיו אור חדש"


# ── Quotes ────────────────────────────────────────────────────────────────────

async def test_quote_flow_over_http(client, operator_headers, admin_headers, seed):
    created = await client.post("/api/quotes/", headers=operator_headers, json={
        "type": "services",
        "customer_id": seed.customer_id,
        "template_id": seed.template_id,
        "valid_until": (date.today() + timedelta(days=14)).isoformat(),
        "items": [{"product_id": seed.workshop_id, "quantity": 2, "discount": 10}],
    })
    assert created.status_code == 201
    quote = created.json()["data"]
    assert quote["quote_number"] == "Q1"
    assert quote["total_amount"] == "90.00"
    assert quote["status_label"] == "טיוטה"

    bad_move = await client.post(f"/api/quotes/{quote['id']}/status", json={"status": "approved"},
                                 headers=operator_headers)
    assert bad_move.status_code == 409

    sent = await client.post(f"/api/quotes/{quote['id']}/status", json={"status": "sent"}, headers=operator_headers)
    assert sent.json()["data"]["status"] == "sent"

    preview = await client.get(f"/api/quotes/{quote['id']}/preview", headers=operator_headers)
    assert 'שלום דנה כהן, סה"כ: ₪90' in preview.json()["data"]["html"]

    link = await client.post(f"/api/quotes/{quote['id']}/public-link", headers=operator_headers)
    assert link.json()["data"]["url"].startswith("http://testserver/public/quotes/")

    # no company profile yet
    assert (await client.get(f"/api/quotes/{quote['id']}/pdf", headers=operator_headers)).status_code == 409

    listing = await client.get("/api/quotes/", params={"status": "sent"}, headers=operator_headers)
    assert listing.json()["total"] == 1

    empty_items = await client.put(f"/api/quotes/{quote['id']}", json={"items": []}, headers=operator_headers)
    assert empty_items.status_code == 422

    activities = await client.get("/activities/", headers=admin_headers)
    assert activities.status_code == 200
    messages = [a["message"] for a in activities.json()["data"]]
    assert "Quote 'Q1' created" in messages
    assert (await client.get("/activities/", headers=operator_headers)).status_code == 403
