"""
PDF builder: font requirements, image loading and the async wrapper's
error mapping. The full render runs only where a Hebrew-capable system
font is installed.
"""
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
import reportlab
from reportlab.platypus import Image, Table

from quoteflow.core.exceptions import DocumentGenerationError, DocumentGenerationTimeout, FontUnavailable
from quoteflow.services import pdf_service
from quoteflow.services.template_engine import RenderContext, RenderLine

PIXEL = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="

VERA = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf")

HEBREW_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/Library/Fonts/Arial Unicode.ttf",
]
HEBREW_FONT = next((p for p in HEBREW_FONT_CANDIDATES if os.path.isfile(p)), None)


def make_context(logo=PIXEL):
    return RenderContext(
        client={"name": "דנה כהן", "company": "כהן בע\"מ", "email": "dana@example.com", "phone": "050-1234567",
                "address": {"street": "הרצל 10", "city": "חיפה", "zip_code": "3100000"}},
        quote={"quote_number": "Q12", "total_amount": 190, "valid_until": datetime(2030, 1, 1).date(),
               "signature": None, "signature_date": None},
        items=[RenderLine("סדנת צילום", 2, 50, 10), RenderLine("עדשה 50 מ\"מ", 1, 100, 0)],
        company={"name": "סטודיו אור", "logo": logo, "address": None,
                 "contact_info": {"phone": "02-5555555"}, "signature": PIXEL},
        now=datetime(2024, 3, 5, tzinfo=timezone.utc),
    )


CONTENT = (
    "<p>{{companyLogo}}</p>"
    "<h1>הצעת מחיר {{quoteNumber}} עבור {{clientName}}</h1>"
    "<p>תאריך: {{quoteDate}}</p>"
    "{{productsTable}}"
    "<p>חתימה: {{companySignature}}</p>"
)


# ── Fonts ─────────────────────────────────────────────────────────────────────

def test_missing_font_is_unavailable(tmp_path):
    with pytest.raises(FontUnavailable) as exc_info:
        pdf_service.register_font(str(tmp_path / "nope.ttf"))
    assert exc_info.value.status_code == 503


def test_font_without_hebrew_glyphs_is_unavailable():
    with pytest.raises(FontUnavailable):
        pdf_service.register_font(VERA)


async def test_async_entry_point_keeps_font_error(tmp_path):
    with pytest.raises(FontUnavailable):
        await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12", font_path=str(tmp_path / "nope.ttf"))


# ── Images ────────────────────────────────────────────────────────────────────

def test_data_uri_images_are_decoded():
    assert pdf_service.load_image_bytes(PIXEL).startswith(b"\x89PNG")
    assert pdf_service.load_image_bytes("data:image/svg+xml,<svg/>") is None
    assert pdf_service.load_image_bytes("ftp://example.com/logo.png") is None
    assert pdf_service.load_image_bytes("") is None


def test_unreachable_image_is_skipped():
    assert pdf_service.image_flowable("http://127.0.0.1:9/logo.png", timeout=1) is None


def test_garbage_image_is_skipped():
    assert pdf_service.image_flowable("data:image/png;base64,bm90LWFuLWltYWdl") is None


# ── Story ─────────────────────────────────────────────────────────────────────

def test_blocks_come_only_from_template_placeholders():
    context = make_context()
    context.client["name"] = "[[block:productsTable]] [[block:companySignature]]"
    story = pdf_service.build_story("<p>שלום {{clientName}}</p>", context, "Helvetica", 400)
    assert not any(isinstance(flowable, (Table, Image)) for flowable in story)

    story = pdf_service.build_story("<p>{{productsTable}}</p>", context, "Helvetica", 400)
    assert sum(isinstance(flowable, Table) for flowable in story) == 1


# ── Async wrapper ─────────────────────────────────────────────────────────────

async def test_slow_build_times_out(monkeypatch):
    def slow_build(*args, **kwargs):
        time.sleep(0.5)
        return b"%PDF-1.4"

    monkeypatch.setattr(pdf_service, "build_quote_pdf", slow_build)
    with pytest.raises(DocumentGenerationTimeout) as exc_info:
        await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12", timeout=0.05)
    assert exc_info.value.status_code == 504


async def test_timed_out_builds_do_not_pile_up(monkeypatch):
    lock = threading.Lock()
    running = {"now": 0, "peak": 0}

    def slow_build(*args, **kwargs):
        with lock:
            running["now"] += 1
            running["peak"] = max(running["peak"], running["now"])
        time.sleep(0.3)
        with lock:
            running["now"] -= 1
        return b"%PDF-1.4"

    pool = ThreadPoolExecutor(max_workers=1)
    monkeypatch.setattr(pdf_service, "_pdf_executor", pool)
    monkeypatch.setattr(pdf_service, "build_quote_pdf", slow_build)
    for _ in range(3):
        with pytest.raises(DocumentGenerationTimeout):
            await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12", timeout=0.05)
    pool.shutdown(wait=True)

    assert running["peak"] == 1


async def test_unexpected_failure_maps_to_generation_error(monkeypatch):
    def broken_build(*args, **kwargs):
        raise RuntimeError("layout exploded")

    monkeypatch.setattr(pdf_service, "build_quote_pdf", broken_build)
    with pytest.raises(DocumentGenerationError):
        await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12")


async def test_malformed_stream_is_never_returned(monkeypatch):
    monkeypatch.setattr(pdf_service, "build_quote_pdf", lambda *args, **kwargs: b"<html>")
    with pytest.raises(DocumentGenerationError):
        await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12")


# ── Full render ───────────────────────────────────────────────────────────────

@pytest.mark.skipif(HEBREW_FONT is None, reason="no Hebrew-capable TTF installed")
async def test_renders_hebrew_quote_pdf():
    pdf = await pdf_service.generate_quote_pdf(CONTENT, make_context(), "Q12", font_path=HEBREW_FONT)
    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


@pytest.mark.skipif(HEBREW_FONT is None, reason="no Hebrew-capable TTF installed")
async def test_unreachable_logo_does_not_fail_the_document():
    context = make_context(logo="http://127.0.0.1:9/logo.png")
    pdf = await pdf_service.generate_quote_pdf(CONTENT, context, "Q12", font_path=HEBREW_FONT)
    assert pdf.startswith(b"%PDF")


@pytest.mark.skipif(HEBREW_FONT is None, reason="no Hebrew-capable TTF installed")
async def test_dashboard_pdf_download(client, operator_headers, seed, company, monkeypatch):
    from datetime import date, timedelta

    monkeypatch.setattr(pdf_service, "PDF_FONT_PATH", HEBREW_FONT)
    created = await client.post("/api/quotes/", headers=operator_headers, json={
        "type": "services",
        "customer_id": seed.customer_id,
        "template_id": seed.template_id,
        "valid_until": (date.today() + timedelta(days=7)).isoformat(),
        "items": [{"product_id": seed.lens_id, "quantity": 3}],
    })
    quote_id = created.json()["data"]["id"]

    response = await client.get(f"/api/quotes/{quote_id}/pdf", headers=operator_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert 'filename="quote-Q1.pdf"' in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")
