"""
Quotation document builder.

Two steps, kept separate so the shaping rules can be tested without
rendering anything:

    shape_pricing()        Quotation + Inquiry -> PricingView
    DocumentBuilder.build() Inquiry + PricingView -> BuiltDocument (PDF bytes)

Shaping rules:
    - Quotation has line items: one row per item. Missing material and
      thickness fall back to "Zintec" / "1.5", quantity to 1, price to 0.
    - Quotation has no line items: one row per inquiry part, price 0.
    - validUntil defaults to now + validity days, terms to the standard text.

Rendering uses reportlab in invariant mode, so the same input always gives
the same bytes. The canonical filename is
``quotation_<inquiryNumber>_<epoch ms>.pdf``.
"""

from __future__ import annotations

import io
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

import bleach
from pypdf import PdfReader
from reportlab.lib.colors import HexColor, black
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from models import BuiltDocument, Inquiry, PricingRow, PricingView, Quotation, utcnow
from models.quotation import DEFAULT_TERMS
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

DEFAULT_MATERIAL = "Zintec"
DEFAULT_THICKNESS = "1.5"
DEFAULT_VALIDITY_DAYS = 30
DEFAULT_CURRENCY = "USD"

MAX_REMARKS_LENGTH = 200
MAX_TERMS_LENGTH = 2000

HEADER_BG = HexColor("#d9e2f1")
RULE_CLR = HexColor("#999999")


def _sanitize_text(text: Any, max_length: Optional[int] = None) -> str:
    """Strip markup from free text captured by the web forms."""
    if text is None:
        return ""
    text = str(text).strip()
    if not text:
        return ""
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _as_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number or default


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _rows_from_items(items: Iterable[Dict[str, Any]]) -> List[PricingRow]:
    return [
        PricingRow(
            part_ref=_sanitize_text(item.get("partRef")),
            material=_sanitize_text(item.get("material")) or DEFAULT_MATERIAL,
            thickness=_sanitize_text(item.get("thickness")) or DEFAULT_THICKNESS,
            quantity=_as_int(item.get("quantity"), 1),
            price=_as_float(item.get("unitPrice")),
            remarks=_sanitize_text(item.get("remark"), MAX_REMARKS_LENGTH),
        )
        for item in items
    ]


def _rows_from_parts(parts: Iterable[Dict[str, Any]]) -> List[PricingRow]:
    return [
        PricingRow(
            part_ref=_sanitize_text(part.get("partRef")),
            material=_sanitize_text(part.get("material")) or DEFAULT_MATERIAL,
            thickness=_sanitize_text(part.get("thickness")) or DEFAULT_THICKNESS,
            quantity=_as_int(part.get("quantity"), 1),
            price=0.0,
            remarks=_sanitize_text(part.get("remarks"), MAX_REMARKS_LENGTH),
        )
        for part in parts
    ]


def shape_pricing(
    quotation: Quotation,
    inquiry: Inquiry,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
    default_terms: str = DEFAULT_TERMS,
    default_currency: str = DEFAULT_CURRENCY,
    now: Optional[datetime] = None,
) -> PricingView:
    """
    Flatten a quotation (and its inquiry) into builder input.

    Args:
        quotation: Authoritative quotation record
        inquiry: The inquiry it was priced for
        validity_days: Validity used when the quotation has no validUntil
        default_terms: Terms used when the quotation has none
        default_currency: Currency used when the inquiry has none
        now: Reference time for the validity default

    Returns:
        PricingView ready for DocumentBuilder.build()
    """
    items = quotation.items or []
    if items:
        rows = _rows_from_items(items)
    else:
        rows = _rows_from_parts(inquiry.parts or [])

    valid_until = quotation.valid_until or (now or utcnow()) + timedelta(days=validity_days)

    customer = {
        key: _sanitize_text(value)
        for key, value in (quotation.customer_info or {}).items()
        if key in ("name", "company", "email", "phone")
    }
    if not customer.get("name") and inquiry.customer_name:
        customer["name"] = _sanitize_text(inquiry.customer_name)

    return PricingView(
        parts=tuple(rows),
        total_amount=_as_float(quotation.total_amount),
        currency=inquiry.currency or default_currency,
        valid_until=valid_until,
        terms=_sanitize_text(quotation.terms, MAX_TERMS_LENGTH) or default_terms,
        quotation_number=quotation.quotation_number or "",
        customer=customer,
        from_inquiry_parts=not items,
    )


class DocumentBuilder:
    """
    Renders quotation PDFs.

    Stateless apart from configuration; safe to share across rebuild threads.
    """

    # Column x positions on an A4 page (points)
    COLUMNS = (
        ("Part Ref", 40),
        ("Material", 130),
        ("Thickness", 230),
        ("Qty", 300),
        ("Unit Price", 345),
        ("Line Total", 420),
        ("Remarks", 495),
    )
    ROW_HEIGHT = 16
    TOP = 800
    BOTTOM = 70

    def __init__(self, company_name: str = "", clock: Callable[[], float] = time.time):
        """
        Args:
            company_name: Printed in the page header
            clock: Returns epoch seconds; used for the canonical filename
        """
        self._company_name = company_name
        self._clock = clock

    def canonical_filename(self, inquiry: Inquiry, offset_ms: int = 0) -> str:
        """Name for a fresh build; offset_ms steps past a name already taken."""
        epoch_ms = int(self._clock() * 1000) + offset_ms
        return f"quotation_{inquiry.inquiry_number}_{epoch_ms}.pdf"

    def build(self, inquiry: Inquiry, pricing: PricingView) -> BuiltDocument:
        """
        Render the quotation PDF.

        Raises:
            ValueError: If the rendered output cannot be read back as a PDF
        """
        logger.info(
            f"Building PDF for inquiry {inquiry.inquiry_number} "
            f"({len(pricing.parts)} rows, from_inquiry_parts={pricing.from_inquiry_parts})"
        )

        content = self._render(inquiry, pricing)

        try:
            page_count = len(PdfReader(io.BytesIO(content)).pages)
        except Exception as e:
            raise ValueError(f"Generated PDF is unreadable: {e}")
        if page_count == 0:
            raise ValueError("Generated PDF has no pages")

        return BuiltDocument(
            content=content,
            filename=self.canonical_filename(inquiry),
            page_count=page_count,
        )

    # =========================================================================
    # RENDERING
    # =========================================================================

    def _render(self, inquiry: Inquiry, pricing: PricingView) -> bytes:
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        c.setTitle(f"Quotation {pricing.quotation_number}".strip())
        c.setAuthor(self._company_name)

        y = self._draw_header(c, inquiry, pricing)
        y = self._draw_table_header(c, y)

        for row in pricing.parts:
            if y < self.BOTTOM:
                c.showPage()
                y = self._draw_table_header(c, self.TOP)
            self._draw_row(c, y, row)
            y -= self.ROW_HEIGHT

        if y < self.BOTTOM + 80:
            c.showPage()
            y = self.TOP
        self._draw_footer(c, y, pricing)

        c.save()
        return buffer.getvalue()

    def _draw_header(self, c: canvas.Canvas, inquiry: Inquiry, pricing: PricingView) -> float:
        y = self.TOP
        c.setFont("Helvetica-Bold", 16)
        c.drawString(40, y, self._company_name or "Quotation")
        c.setFont("Helvetica-Bold", 12)
        c.drawRightString(555, y, "QUOTATION")

        y -= 24
        c.setFont("Helvetica", 9)
        c.drawString(40, y, f"Quotation No: {pricing.quotation_number}")
        c.drawRightString(555, y, f"Inquiry No: {inquiry.inquiry_number}")
        y -= 14
        c.drawString(40, y, f"Valid until: {pricing.valid_until:%b %d, %Y}")
        c.drawRightString(555, y, f"Currency: {pricing.currency}")

        block_top = y - 22
        left = self._draw_block(c, 40, block_top, "Customer", [
            pricing.customer.get(key, "") for key in ("name", "company", "email", "phone")
        ])

        address = inquiry.delivery_address or {}
        right = self._draw_block(c, 320, block_top, "Deliver to", [
            _sanitize_text(address.get("street")),
            ", ".join(p for p in (address.get("city"), address.get("state")) if p),
            " ".join(p for p in (address.get("country"), address.get("zipCode")) if p),
        ])

        return min(left, right) - 30

    def _draw_block(self, c: canvas.Canvas, x: float, y: float, title: str, lines: List[str]) -> float:
        lines = [line for line in lines if line]
        if not lines:
            return y + 22
        c.setFont("Helvetica-Bold", 9)
        c.drawString(x, y, title)
        c.setFont("Helvetica", 9)
        for line in lines:
            y -= 12
            c.drawString(x, y, _sanitize_text(line))
        return y

    def _draw_table_header(self, c: canvas.Canvas, y: float) -> float:
        c.setFillColor(HEADER_BG)
        c.rect(36, y - 4, 523, self.ROW_HEIGHT, stroke=0, fill=1)
        c.setFillColor(black)
        c.setFont("Helvetica-Bold", 8)
        for name, x in self.COLUMNS:
            c.drawString(x, y, name)
        return y - self.ROW_HEIGHT - 2

    def _draw_row(self, c: canvas.Canvas, y: float, row: PricingRow) -> None:
        c.setFont("Helvetica", 8)
        values = (
            row.part_ref[:16],
            row.material[:18],
            row.thickness[:12],
            str(row.quantity),
            f"{row.price:,.2f}",
            f"{row.line_total:,.2f}",
            row.remarks[:14],
        )
        for (_, x), value in zip(self.COLUMNS, values):
            c.drawString(x, y, value)
        c.setStrokeColor(RULE_CLR)
        c.line(36, y - 5, 559, y - 5)
        c.setStrokeColor(black)

    def _draw_footer(self, c: canvas.Canvas, y: float, pricing: PricingView) -> None:
        y -= 10
        c.setFont("Helvetica-Bold", 10)
        c.drawRightString(555, y, f"Total: {pricing.currency} {pricing.total_amount:,.2f}")

        y -= 28
        c.setFont("Helvetica-Bold", 9)
        c.drawString(40, y, "Terms")
        c.setFont("Helvetica", 8)
        for line in _wrap(pricing.terms, 110):
            y -= 11
            c.drawString(40, y, line)


def _wrap(text: str, width: int) -> List[str]:
    """Greedy word wrap."""
    lines: List[str] = []
    current = ""
    for word in text.split():
        if current and len(current) + 1 + len(word) > width:
            lines.append(current)
            current = word
        else:
            current = f"{current} {word}" if current else word
    if current:
        lines.append(current)
    return lines
