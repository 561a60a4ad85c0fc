from __future__ import annotations

# =========================================
# pdf_utils.py
# Jove Storefront - Invoice PDF
# =========================================
# Produces a simple, printable invoice for a stored order using ReportLab.
# Amounts are printed in USD (the charged currency).
# =========================================

from io import BytesIO
from datetime import datetime

from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas


def _safe(s) -> str:
    if s is None:
        return ""
    return str(s)


def _usd(v) -> str:
    return f"${float(v or 0):,.2f}"


def _wrap(text: str, max_chars: int) -> list[str]:
    if len(text) <= max_chars:
        return [text]
    words = text.split()
    lines, cur = [], ""
    for w in words:
        if len(cur) + len(w) + 1 <= max_chars:
            cur = (cur + " " + w).strip()
        else:
            if cur:
                lines.append(cur)
            cur = w
    if cur:
        lines.append(cur)
    return lines


def build_invoice_pdf_bytes(order: dict) -> bytes:
    """
    Returns PDF bytes.
    order: OrderRecord.to_dict() (order_number, customer_*, delivery_*, totals, order_items)
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    width, height = letter

    margin = 0.6 * inch
    y = height - margin

    col_item = margin
    col_qty = margin + 4.6 * inch
    col_unit = margin + 5.3 * inch
    col_sub = width - margin

    def items_header(y, title):
        c.setFont("Helvetica-Bold", 12)
        c.drawString(margin, y, title)
        y -= 0.22 * inch
        c.setFont("Helvetica-Bold", 9)
        c.drawString(col_item, y, "Item")
        c.drawString(col_qty, y, "Qty")
        c.drawString(col_unit, y, "Unit")
        c.drawRightString(col_sub, y, "Subtotal")
        y -= 0.12 * inch
        c.setLineWidth(0.5)
        c.line(margin, y, width - margin, y)
        y -= 0.14 * inch
        c.setFont("Helvetica", 9)
        return y

    # ---- Header
    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y, "Maison Jove - Invoice")
    y -= 0.28 * inch

    c.setFont("Helvetica", 10)
    c.drawString(margin, y, f"Order: {_safe(order.get('order_number'))}")
    c.drawRightString(width - margin, y, f"Payment: {_safe(order.get('payment_method'))}")
    y -= 0.18 * inch

    created_at = _safe(order.get("created_at")) or datetime.utcnow().isoformat()
    c.drawString(margin, y, f"Date: {created_at}")
    y -= 0.30 * inch

    # ---- Customer block
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Bill to")
    y -= 0.18 * inch

    c.setFont("Helvetica", 10)
    for line in (
        _safe(order.get("customer_name")),
        _safe(order.get("customer_email")),
        _safe(order.get("customer_phone")),
        ", ".join(p for p in (_safe(order.get("delivery_address")), _safe(order.get("delivery_city")),
                              _safe(order.get("delivery_postal_code"))) if p),
    ):
        if line:
            c.drawString(margin, y, line)
            y -= 0.16 * inch
    y -= 0.12 * inch

    # ---- Items
    y = items_header(y, "Items")
    items = order.get("order_items") or []
    if not items:
        c.drawString(margin, y, "(No items)")
        y -= 0.18 * inch

    for row in items:
        name = _safe(row.get("product_name") or row.get("jewelry_type"))
        summary_lines = _wrap(_safe(row.get("customization_summary")), 80)
        row_lines = [name] + [s for s in summary_lines if s]

        for i, text in enumerate(row_lines):
            if y < margin + 1.4 * inch:
                c.showPage()
                y = items_header(height - margin, "Items (cont.)")
            if i == 0:
                c.setFont("Helvetica-Bold", 9)
                c.drawString(col_item, y, text)
                c.setFont("Helvetica", 9)
                c.drawString(col_qty, y, _safe(row.get("quantity")))
                c.drawString(col_unit, y, _usd(row.get("total_price")))
                c.drawRightString(col_sub, y, _usd(row.get("subtotal")))
            else:
                c.setFont("Helvetica-Oblique", 8)
                c.drawString(col_item + 0.1 * inch, y, text)
                c.setFont("Helvetica", 9)
            y -= 0.14 * inch
        y -= 0.06 * inch

    # ---- Totals
    if y < margin + 1.4 * inch:
        c.showPage()
        y = height - margin
    y -= 0.10 * inch
    c.line(col_unit - 0.4 * inch, y, width - margin, y)
    y -= 0.18 * inch

    c.setFont("Helvetica", 10)
    totals = [("Subtotal", _usd(order.get("subtotal")))]
    if order.get("discount_amount"):
        label = f"Discount {_safe(order.get('discount_code'))}".strip()
        totals.append((label, "-" + _usd(order.get("discount_amount"))))
    totals.append(("Delivery", _usd(order.get("delivery_fee")) if order.get("delivery_fee") else "Free"))
    for label, value in totals:
        c.drawString(col_unit - 0.4 * inch, y, label)
        c.drawRightString(col_sub, y, value)
        y -= 0.16 * inch

    c.setFont("Helvetica-Bold", 11)
    c.drawString(col_unit - 0.4 * inch, y, "Total (USD)")
    c.drawRightString(col_sub, y, _usd(order.get("total")))

    # ---- Footer note
    c.setFont("Helvetica-Oblique", 8)
    c.drawString(margin, margin * 0.8, "All prices charged in USD. Thank you for choosing Maison Jove.")

    c.showPage()
    c.save()

    buf.seek(0)
    return buf.read()
