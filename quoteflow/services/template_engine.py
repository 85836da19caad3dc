# quoteflow/services/template_engine.py
"""
Template variable substitution.

Templates are markup with `{{variableName}}` placeholders. The set of
variables is closed: every name lives in VARIABLE_CATALOG with a resolver
that reads it from a RenderContext. Templates are checked against the
catalog when saved; at render time unknown placeholders pass through
untouched.

Two renderers share the same resolvers and formatting:

    render        - HTML for the dashboard preview and the public quote page
    render_parts  - plain text split into ("text", str) and ("block", name)
                    parts for the PDF builder; image and table placeholders
                    become blocks that the builder swaps for flowables
"""
import enum
import html
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from quoteflow.core.config import APP_TIMEZONE, CURRENCY_SYMBOL, VAT_RATE
from quoteflow.models.quote_models import line_total
from quoteflow.schemas.common_schemas import format_address
from quoteflow.utils.decimal_utils import ZERO, money, to_decimal

TARGET_HTML = "html"
TARGET_TEXT = "text"

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

TABLE_HEADERS = ["מוצר", "כמות", "מחיר ליחידה", "הנחה", 'סה"כ']


class VariableOrigin(str, enum.Enum):
    company = "company"
    quote = "quote"
    client = "client"
    computed = "computed"


class VariableKind(str, enum.Enum):
    text = "text"
    image = "image"
    table = "table"


# --------------------------
# Render context
# --------------------------
@dataclass
class RenderLine:
    product_name: str
    quantity: int
    price: Decimal
    discount: Decimal

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.price, self.discount)


@dataclass
class RenderContext:
    client: Dict[str, Any]
    quote: Dict[str, Any]
    items: List[RenderLine]
    company: Optional[Dict[str, Any]] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    vat_rate: Decimal = VAT_RATE

    @property
    def subtotal(self) -> Decimal:
        stored = self.quote.get("total_amount")
        if stored is not None:
            return money(stored)
        return money(sum((item.line_total for item in self.items), ZERO))

    @property
    def gross_total(self) -> Decimal:
        return money(sum((item.quantity * to_decimal(item.price) for item in self.items), ZERO))

    @property
    def discount_amount(self) -> Decimal:
        return max(self.gross_total - self.subtotal, ZERO)

    @property
    def vat_amount(self) -> Decimal:
        return money(self.subtotal * to_decimal(self.vat_rate))

    @property
    def final_total(self) -> Decimal:
        return self.subtotal + self.vat_amount


def context_from_quote(quote, company=None, now: Optional[datetime] = None, vat_rate: Decimal = VAT_RATE) -> RenderContext:
    """Build a RenderContext from a loaded Quote (customer and items populated)."""
    customer = quote.customer
    return RenderContext(
        company=company_facts(company),
        client={
            "name": customer.name,
            "company": customer.company,
            "address": customer.address,
            "phone": customer.phone,
            "email": customer.email,
        },
        quote={
            "quote_number": quote.quote_number,
            "valid_until": quote.valid_until,
            "total_amount": quote.total_amount,
            "signature": quote.signature,
            "signature_date": quote.signature_date,
        },
        items=[
            RenderLine(
                product_name=item.product_name,
                quantity=item.quantity,
                price=item.price,
                discount=item.discount,
            )
            for item in quote.items
        ],
        now=now or datetime.now(timezone.utc),
        vat_rate=vat_rate,
    )


def company_facts(company) -> Optional[Dict[str, Any]]:
    if company is None:
        return None
    return {
        "name": company.name,
        "logo": company.logo,
        "address": company.address,
        "contact_info": company.contact_info or {},
        "signature": company.signature,
    }


# --------------------------
# Formatting
# --------------------------
def _trim_decimals(number: Decimal) -> str:
    text = f"{abs(number):,.2f}".rstrip("0").rstrip(".")
    return f"-{text}" if number < 0 else text


def format_currency(value) -> str:
    """₪ amount with thousands separators and at most two decimals: ₪1,234.5"""
    if value is None:
        return ""
    text = _trim_decimals(money(value))
    if text.startswith("-"):
        return f"-{CURRENCY_SYMBOL}{text[1:]}"
    return f"{CURRENCY_SYMBOL}{text}"


def format_percent(value) -> str:
    if value is None:
        return ""
    return f"{_trim_decimals(money(value))}%"


def format_date(value) -> str:
    """he-IL short date, D.M.YYYY."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(ZoneInfo(APP_TIMEZONE)).date()
    if isinstance(value, date):
        return f"{value.day}.{value.month}.{value.year}"
    return str(value)


def _vat_label(vat_rate) -> str:
    return f'מע"מ ({format_percent(to_decimal(vat_rate) * 100)})'


def product_rows(context: RenderContext) -> List[List[str]]:
    """Formatted item rows in header order (name, qty, unit price, discount, total)."""
    return [
        [
            item.product_name,
            str(item.quantity),
            format_currency(item.price),
            format_percent(item.discount),
            format_currency(item.line_total),
        ]
        for item in context.items
    ]


def summary_rows(context: RenderContext) -> List[List[str]]:
    """Trailing (label, value) rows; the last one is always the grand total."""
    rows = []
    if context.vat_rate:
        rows.append(['סה"כ לפני מע"מ:', format_currency(context.subtotal)])
        rows.append([f"{_vat_label(context.vat_rate)}:", format_currency(context.vat_amount)])
    rows.append(['סה"כ לתשלום:', format_currency(context.final_total)])
    return rows


# --------------------------
# Variable catalog
# --------------------------
@dataclass(frozen=True)
class TemplateVariable:
    name: str
    origin: VariableOrigin
    description: str
    resolver: Callable[[RenderContext], Any]
    kind: VariableKind = VariableKind.text
    alt: str = ""
    css_class: str = ""


def _company(ctx: RenderContext, key: str, default=""):
    return (ctx.company or {}).get(key) or default


def _contact(ctx: RenderContext, key: str) -> str:
    return (_company(ctx, "contact_info", {}) or {}).get(key) or ""


_CATALOG = [
    # Company
    TemplateVariable("companyName", VariableOrigin.company, "שם החברה",
                     lambda c: _company(c, "name")),
    TemplateVariable("companyLogo", VariableOrigin.company, "לוגו החברה",
                     lambda c: _company(c, "logo"), VariableKind.image, "לוגו החברה", "company-logo"),
    TemplateVariable("companyAddress", VariableOrigin.company, "כתובת החברה",
                     lambda c: format_address(_company(c, "address", None))),
    TemplateVariable("companyPhone", VariableOrigin.company, "טלפון החברה",
                     lambda c: _contact(c, "phone")),
    TemplateVariable("companyEmail", VariableOrigin.company, "אימייל החברה",
                     lambda c: _contact(c, "email")),
    TemplateVariable("companyWebsite", VariableOrigin.company, "אתר החברה",
                     lambda c: _contact(c, "website")),
    TemplateVariable("companySignature", VariableOrigin.company, "חתימת החברה",
                     lambda c: _company(c, "signature"), VariableKind.image, "חתימת החברה", "signature"),
    # Quote
    TemplateVariable("quoteNumber", VariableOrigin.quote, "מספר הצעה",
                     lambda c: c.quote.get("quote_number") or ""),
    TemplateVariable("quoteDate", VariableOrigin.quote, "תאריך הפקת ההצעה",
                     lambda c: format_date(c.now)),
    TemplateVariable("quoteValidUntil", VariableOrigin.quote, "בתוקף עד",
                     lambda c: format_date(c.quote.get("valid_until"))),
    TemplateVariable("quoteTotal", VariableOrigin.quote, 'סה"כ לפני מע"מ',
                     lambda c: format_currency(c.subtotal)),
    TemplateVariable("quoteDiscount", VariableOrigin.quote, "סכום ההנחה",
                     lambda c: format_currency(c.discount_amount)),
    TemplateVariable("quoteVat", VariableOrigin.quote, 'סכום המע"מ',
                     lambda c: format_currency(c.vat_amount)),
    TemplateVariable("quoteFinalTotal", VariableOrigin.quote, 'סה"כ לתשלום כולל מע"מ',
                     lambda c: format_currency(c.final_total)),
    TemplateVariable("signatureDate", VariableOrigin.quote, "תאריך החתימה",
                     lambda c: format_date(c.quote.get("signature_date"))),
    # Client
    TemplateVariable("clientName", VariableOrigin.client, "שם הלקוח",
                     lambda c: c.client.get("name") or ""),
    TemplateVariable("clientCompany", VariableOrigin.client, "חברת הלקוח",
                     lambda c: c.client.get("company") or ""),
    TemplateVariable("clientAddress", VariableOrigin.client, "כתובת הלקוח",
                     lambda c: format_address(c.client.get("address"))),
    TemplateVariable("clientPhone", VariableOrigin.client, "טלפון הלקוח",
                     lambda c: c.client.get("phone") or ""),
    TemplateVariable("clientEmail", VariableOrigin.client, "אימייל הלקוח",
                     lambda c: c.client.get("email") or ""),
    TemplateVariable("clientSignature", VariableOrigin.client, "חתימת הלקוח",
                     lambda c: c.quote.get("signature") or "", VariableKind.image, "חתימת הלקוח", "signature"),
    # Computed
    TemplateVariable("productsTable", VariableOrigin.computed, "טבלת מוצרים",
                     lambda c: c, VariableKind.table),
]

VARIABLE_CATALOG: Dict[str, TemplateVariable] = {v.name: v for v in _CATALOG}


def catalog() -> List[TemplateVariable]:
    return list(_CATALOG)


def extract_placeholders(content: str) -> List[str]:
    """Placeholder names in order of first appearance."""
    seen = []
    for name in PLACEHOLDER_RE.findall(content or ""):
        if name not in seen:
            seen.append(name)
    return seen


def unknown_variables(names) -> List[str]:
    return [name for name in names if name not in VARIABLE_CATALOG]


def describe_variables(names) -> List[Dict[str, str]]:
    return [
        {"name": name, "description": VARIABLE_CATALOG[name].description}
        for name in names
        if name in VARIABLE_CATALOG
    ]


# --------------------------
# Rendering
# --------------------------
def _products_table_html(context: RenderContext) -> str:
    head = "".join(f"<th>{html.escape(h, quote=False)}</th>" for h in TABLE_HEADERS)
    body = []
    for row in product_rows(context):
        cells = "".join(f"<td>{html.escape(cell, quote=False)}</td>" for cell in row)
        body.append(f"<tr>{cells}</tr>")
    for label, value in summary_rows(context):
        body.append(
            f'<tr class="summary"><td colspan="{len(TABLE_HEADERS) - 1}">{html.escape(label, quote=False)}</td>'
            f"<td>{html.escape(value, quote=False)}</td></tr>"
        )
    return (
        '<table class="products-table">'
        f"<thead><tr>{head}</tr></thead>"
        f"<tbody>{''.join(body)}</tbody>"
        "</table>"
    )


def render_variable(variable: TemplateVariable, context: RenderContext, target: str = TARGET_HTML) -> str:
    """
    HTML for one variable, or its raw text when target is TARGET_TEXT.
    Image and table variables only have an HTML form.
    """
    value = variable.resolver(context)

    if variable.kind == VariableKind.table:
        return _products_table_html(context)

    if variable.kind == VariableKind.image:
        if not value:
            return ""
        return (
            f'<img src="{html.escape(str(value), quote=True)}" '
            f'alt="{html.escape(variable.alt)}" class="{variable.css_class}" />'
        )

    text = "" if value is None else str(value)
    return html.escape(text, quote=True) if target == TARGET_HTML else text


def render(content: str, context: RenderContext) -> str:
    """
    Replace every known `{{name}}` in one pass. Unknown names are left as-is
    and substituted values are never scanned again.
    """
    cache: Dict[str, str] = {}

    def replace(match):
        name = match.group(1)
        variable = VARIABLE_CATALOG.get(name)
        if variable is None:
            return match.group(0)
        if name not in cache:
            cache[name] = render_variable(variable, context)
        return cache[name]

    return PLACEHOLDER_RE.sub(replace, content or "")


def render_parts(content: str, context: RenderContext) -> List[Tuple[str, str]]:
    """
    Text rendering for the PDF builder, as ("text", str) and ("block", name)
    parts in document order.

    Blocks are cut at the placeholder positions of the template itself, so a
    substituted value can never open a block of its own. Empty images leave
    nothing behind.
    """
    parts: List[Tuple[str, str]] = []
    pending: List[str] = []

    def flush():
        text = "".join(pending)
        pending.clear()
        if text:
            parts.append(("text", text))

    content = content or ""
    position = 0
    for match in PLACEHOLDER_RE.finditer(content):
        pending.append(content[position:match.start()])
        position = match.end()

        variable = VARIABLE_CATALOG.get(match.group(1))
        if variable is None:
            pending.append(match.group(0))
        elif variable.kind == VariableKind.text:
            pending.append(render_variable(variable, context, TARGET_TEXT))
        elif variable.kind == VariableKind.table or variable.resolver(context):
            flush()
            parts.append(("block", variable.name))

    pending.append(content[position:])
    flush()
    return parts


# --------------------------
# Markup -> text (PDF path)
# --------------------------
_LINE_BREAK_RE = re.compile(r"<\s*br\s*/?\s*>|<\s*/\s*(p|div|h[1-6]|li|tr|table|ul|ol)\s*>", re.IGNORECASE)
_LIST_ITEM_RE = re.compile(r"<\s*li[^>]*>", re.IGNORECASE)
_CELL_END_RE = re.compile(r"<\s*/\s*t[dh]\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def html_to_text(markup: str) -> str:
    """Flatten editor markup into plain lines; placeholders survive untouched."""
    text = _LINE_BREAK_RE.sub("\n", markup or "")
    text = _LIST_ITEM_RE.sub("• ", text)
    text = _CELL_END_RE.sub("  ", text)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")

    lines = []
    for line in text.splitlines():
        line = line.strip()
        if not line and (not lines or not lines[-1]):
            continue
        lines.append(line)
    return "\n".join(lines).strip()
