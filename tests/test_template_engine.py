"""
Template engine: variable resolution, formatting, HTML rendering and the
text/block parts used by the PDF builder.
No database needed.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from quoteflow.services import template_engine as te
from quoteflow.services.template_engine import RenderContext, RenderLine

FIXED_NOW = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)


def make_context(name="דנה", total=100, items=None, company=None, **quote):
    return RenderContext(
        client={"name": name, "company": "כהן בע\"מ", "email": "dana@example.com", "phone": "050-1234567",
                "address": {"street": "הרצל 10", "city": "חיפה", "zip_code": "3100000"}},
        quote={"quote_number": "Q7", "total_amount": total, **quote},
        items=items or [],
        company=company,
        now=FIXED_NOW,
        vat_rate=0.17,
    )


# ── Substitution ──────────────────────────────────────────────────────────────

def test_hebrew_greeting_with_total():
    content = 'שלום {{clientName}}, סה"כ: {{quoteTotal}}'
    assert te.render(content, make_context()) == 'שלום דנה, סה"כ: ₪100'


def test_unknown_placeholder_passes_through():
    out = te.render("{{mysteryField}} / {{clientName}}", make_context())
    assert out == "{{mysteryField}} / דנה"


def test_substituted_values_are_not_rescanned():
    out = te.render("{{clientName}}", make_context(name="{{quoteTotal}}"))
    assert out == "{{quoteTotal}}"


def test_render_is_deterministic_for_fixed_now():
    content = "{{quoteDate}} {{quoteNumber}} {{productsTable}}"
    ctx = make_context(items=[RenderLine("סדנה", 2, 50, 10)], total=90)
    first = te.render(content, ctx)
    assert first == te.render(content, ctx)
    assert first.startswith("5.3.2024 Q7 ")


def test_missing_values_render_empty():
    assert te.render("[{{companyName}}][{{signatureDate}}]", make_context()) == "[][]"


def test_html_target_escapes_values():
    out = te.render("{{clientName}}", make_context(name='<b>"x"</b>'))
    assert out == "&lt;b&gt;&quot;x&quot;&lt;/b&gt;"


def test_image_variable_html():
    company = {"name": "סטודיו", "logo": "https://cdn.example/logo.png", "contact_info": {}}
    out = te.render("{{companyLogo}}", make_context(company=company))
    assert out == '<img src="https://cdn.example/logo.png" alt="לוגו החברה" class="company-logo" />'


# ── Totals & formatting ───────────────────────────────────────────────────────

def test_totals_discount_and_vat():
    ctx = make_context(items=[RenderLine("סדנה", 2, 50, 10)], total=90)
    out = te.render("{{quoteTotal}}|{{quoteDiscount}}|{{quoteVat}}|{{quoteFinalTotal}}", ctx)
    assert out == "₪90|₪10|₪15.3|₪105.3"


@pytest.mark.parametrize("value,expected", [
    (100, "₪100"),
    (1234.5, "₪1,234.5"),
    (1234.567, "₪1,234.57"),
    (0, "₪0"),
    (1000000, "₪1,000,000"),
])
def test_format_currency(value, expected):
    assert te.format_currency(value) == expected


def test_format_date_and_percent():
    assert te.format_date(date(2025, 1, 9)) == "9.1.2025"
    # 23:30 UTC is already the next day in Israel
    assert te.format_date(datetime(2024, 6, 30, 23, 30, tzinfo=timezone.utc)) == "1.7.2024"
    assert te.format_percent(10) == "10%"
    assert te.format_percent(12.5) == "12.5%"


def test_products_table_html_rows():
    ctx = make_context(items=[RenderLine("סדנה", 2, 50, 10), RenderLine("עדשה", 1, 100, 0)], total=190)
    table = te.render("{{productsTable}}", ctx)
    assert table.startswith('<table class="products-table">')
    assert "<td>סדנה</td><td>2</td><td>₪50</td><td>10%</td><td>₪90</td>" in table
    assert 'סה"כ לתשלום:' in table
    assert "&quot;" not in table
    assert "₪222.3" in table


def test_summary_rows_without_vat():
    ctx = make_context(total=100)
    ctx.vat_rate = 0
    assert te.summary_rows(ctx) == [['סה"כ לתשלום:', "₪100"]]


# ── Catalog helpers ───────────────────────────────────────────────────────────

def test_extract_and_validate_placeholders():
    content = "{{clientName}} {{quoteTotal}} {{clientName}} {{bogus}}"
    names = te.extract_placeholders(content)
    assert names == ["clientName", "quoteTotal", "bogus"]
    assert te.unknown_variables(names) == ["bogus"]
    assert [v["name"] for v in te.describe_variables(names)] == ["clientName", "quoteTotal"]


def test_catalog_is_closed_and_complete():
    names = {v.name for v in te.catalog()}
    assert {"companyName", "companyLogo", "quoteNumber", "quoteVat", "clientSignature", "productsTable"} <= names
    assert all(v.origin in te.VariableOrigin for v in te.catalog())


# ── Markup to text ────────────────────────────────────────────────────────────

def test_html_to_text_keeps_placeholders():
    markup = "<h1>שלום {{clientName}}</h1><p>שורה&nbsp;2</p><p></p><ul><li>פריט</li></ul>"
    assert te.html_to_text(markup) == "שלום {{clientName}}\nשורה 2\n\n• פריט"


# ── PDF parts ─────────────────────────────────────────────────────────────────

def test_render_parts_leaves_values_raw_and_cuts_blocks():
    company = {"name": "סטודיו", "logo": "data:image/png;base64,AAAA", "address": None,
               "contact_info": {}, "signature": ""}
    ctx = make_context(name="<דנה>", company=company)
    parts = te.render_parts("לפני {{clientName}}\n{{companyLogo}}אמצע{{companySignature}}{{productsTable}}", ctx)
    # the empty signature leaves nothing behind
    assert parts == [
        ("text", "לפני <דנה>\n"),
        ("block", "companyLogo"),
        ("text", "אמצע"),
        ("block", "productsTable"),
    ]


def test_block_syntax_inside_values_stays_text():
    ctx = make_context(name="[[block:productsTable]]")
    ctx.client["company"] = "{{companySignature}}"
    parts = te.render_parts("שלום {{clientName}} מ{{clientCompany}}", ctx)
    assert parts == [("text", "שלום [[block:productsTable]] מ{{companySignature}}")]


def test_render_parts_keeps_unknown_placeholders():
    assert te.render_parts("{{bogus}}", make_context()) == [("text", "{{bogus}}")]


# ── Money ─────────────────────────────────────────────────────────────────────

def test_line_total_rounds_half_up_in_decimal():
    assert te.line_total(1, 1.005, 0) == Decimal("1.01")
    assert te.line_total(3, "0.35", 50) == Decimal("0.53")
    assert te.line_total(2, Decimal("50.00"), Decimal("10")) == Decimal("90.00")


def test_vat_on_half_agora_rounds_up():
    ctx = make_context(total="0.50")
    # 0.50 * 0.17 = 0.085
    assert ctx.vat_amount == Decimal("0.09")
    assert ctx.final_total == Decimal("0.59")
