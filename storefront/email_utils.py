from __future__ import annotations

# =========================================
# email_utils.py
# Jove Storefront - Order confirmation emails
# =========================================
# Sends:
#  - Internal notification email (to INTERNAL_NOTIFY_EMAIL or ORDER_NOTIFY_EMAIL)
#  - Customer confirmation email (to order['customer_email'])
# Both carry the invoice PDF built by pdf_utils.build_invoice_pdf_bytes().
#
# Configuration (Flask app.config or environment variables):
#   SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS
#   SMTP_USE_TLS (true/false), SMTP_USE_SSL (true/false)
#   FROM_EMAIL (default: SMTP_USER)
#   INTERNAL_NOTIFY_EMAIL (or ORDER_NOTIFY_EMAIL)
#   BCC_EMAIL (optional)
# =========================================

import os
import smtplib
from email.message import EmailMessage
from typing import Optional

from .currency import format_for_market

STORE_NAME = "Maison Jove"


def _cfg(app, key: str, default=None):
    # Prefer Flask app.config, fall back to environment
    if app and key in app.config:
        return app.config.get(key, default)
    return os.getenv(key, default)


def _as_bool(val) -> bool:
    if isinstance(val, bool):
        return val
    if val is None:
        return False
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def _money(order: dict, key: str, rates=None) -> str:
    # Charged in USD; show the customer's market currency alongside
    usd = order.get(key) or 0
    shown = f"${float(usd):,.2f}"
    market = order.get("market") or "lb"
    local = format_for_market(usd, market, rates, show_code=True)
    if not local.endswith(" USD"):
        shown += f" (approx. {local})"
    return shown


def _items_block(order: dict) -> list[str]:
    items = order.get("order_items") or []
    if not items:
        return ["  (none)"]
    lines = []
    for i, row in enumerate(items, start=1):
        name = row.get("product_name") or row.get("jewelry_type", "")
        lines.append(f"  {i}. {name} x{row.get('quantity', 1)}  ${float(row.get('subtotal') or 0):,.2f}")
        summary = row.get("customization_summary")
        if summary:
            lines.append(f"     {summary}")
    return lines


def _totals_block(order: dict, rates=None) -> list[str]:
    lines = [f"  Subtotal: {_money(order, 'subtotal', rates)}"]
    if order.get("discount_amount"):
        code = order.get("discount_code") or ""
        lines.append(f"  Discount {code}: -{_money(order, 'discount_amount', rates)}")
    fee = order.get("delivery_fee")
    lines.append(f"  Delivery: {_money(order, 'delivery_fee', rates) if fee else 'Free'}")
    lines.append(f"  Total: {_money(order, 'total', rates)}")
    return lines


def _build_internal_subject(order: dict) -> str:
    return f"[{STORE_NAME}] New order {order.get('order_number','')} ({order.get('payment_method','')})"


def _build_internal_body(order: dict, rates=None) -> str:
    lines = []
    lines.append("A new order was received.")
    lines.append("")
    lines.append(f"Order: {order.get('order_number','')}")
    lines.append(f"Market: {order.get('market','')}")
    lines.append(f"Payment: {order.get('payment_method','')}")
    lines.append("")
    lines.append("Customer")
    lines.append(f"  Name: {order.get('customer_name','')}")
    lines.append(f"  Email: {order.get('customer_email','')}")
    lines.append(f"  Phone: {order.get('customer_phone') or ''}")
    lines.append(f"  Address: {order.get('delivery_address') or ''}, {order.get('delivery_city') or ''}")
    lines.append("")
    lines.append("Items")
    lines.extend(_items_block(order))
    lines.append("")
    lines.append("Totals")
    lines.extend(_totals_block(order, rates))
    return "\n".join(lines)


def _build_customer_subject(order: dict) -> str:
    return f"{STORE_NAME} - Order confirmation ({order.get('order_number','')})"


def _build_customer_body(order: dict, rates=None) -> str:
    lines = [
        f"Hi {order.get('customer_name','')},",
        "",
        "Thank you for your order. Our atelier will start on your piece shortly.",
        "",
        f"Order number: {order.get('order_number','')}",
        "",
    ]
    lines.extend(_items_block(order))
    lines.append("")
    lines.extend(_totals_block(order, rates))
    lines.append("")
    lines.append("Your invoice is attached.")
    lines.append("")
    lines.append("Thanks,")
    lines.append(STORE_NAME)
    return "\n".join(lines) + "\n"


def _send_email(
    host: str,
    port: int,
    user: Optional[str],
    password: Optional[str],
    use_tls: bool,
    use_ssl: bool,
    msg: EmailMessage,
):
    if use_ssl:
        with smtplib.SMTP_SSL(host, port) as s:
            if user and password:
                s.login(user, password)
            s.send_message(msg)
        return

    with smtplib.SMTP(host, port) as s:
        s.ehlo()
        if use_tls:
            s.starttls()
            s.ehlo()
        if user and password:
            s.login(user, password)
        s.send_message(msg)


def send_order_emails(order: dict, pdf_bytes: bytes, rates=None) -> bool:
    """
    Sends internal + customer emails for a stored order (OrderRecord.to_dict()).
    Raises if SMTP is misconfigured or a send fails (caller can catch).
    """
    try:
        from flask import current_app
        app = current_app._get_current_object()
    except RuntimeError:
        app = None

    smtp_host = _cfg(app, "SMTP_HOST")
    smtp_port = int(_cfg(app, "SMTP_PORT", 587))
    smtp_user = _cfg(app, "SMTP_USER")
    smtp_pass = _cfg(app, "SMTP_PASS")
    use_tls = _as_bool(_cfg(app, "SMTP_USE_TLS", True))
    use_ssl = _as_bool(_cfg(app, "SMTP_USE_SSL", False))

    from_email = _cfg(app, "FROM_EMAIL", smtp_user)
    internal_to = _cfg(app, "INTERNAL_NOTIFY_EMAIL", _cfg(app, "ORDER_NOTIFY_EMAIL"))
    bcc_email = _cfg(app, "BCC_EMAIL", None)

    if not smtp_host:
        raise RuntimeError("SMTP_HOST is not configured")
    if not from_email:
        raise RuntimeError("FROM_EMAIL (or SMTP_USER) is not configured")
    if not internal_to:
        raise RuntimeError("INTERNAL_NOTIFY_EMAIL (or ORDER_NOTIFY_EMAIL) is not configured")

    filename = f"invoice_{order.get('order_number','')}.pdf"
    smtp = dict(host=smtp_host, port=smtp_port, user=smtp_user, password=smtp_pass,
                use_tls=use_tls, use_ssl=use_ssl)

    # ---- Internal notification
    internal_msg = EmailMessage()
    internal_msg["Subject"] = _build_internal_subject(order)
    internal_msg["From"] = from_email
    internal_msg["To"] = internal_to
    if bcc_email:
        internal_msg["Bcc"] = bcc_email
    internal_msg.set_content(_build_internal_body(order, rates))
    internal_msg.add_attachment(pdf_bytes, maintype="application", subtype="pdf", filename=filename)
    _send_email(msg=internal_msg, **smtp)

    # ---- Customer confirmation
    cust_email = (order.get("customer_email") or "").strip()
    if cust_email:
        customer_msg = EmailMessage()
        customer_msg["Subject"] = _build_customer_subject(order)
        customer_msg["From"] = from_email
        customer_msg["To"] = cust_email
        if bcc_email:
            customer_msg["Bcc"] = bcc_email
        customer_msg.set_content(_build_customer_body(order, rates))
        customer_msg.add_attachment(pdf_bytes, maintype="application", subtype="pdf", filename=filename)
        _send_email(msg=customer_msg, **smtp)

    return True
