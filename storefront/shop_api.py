from __future__ import annotations

# =========================================
# shop_api.py
# Jove Storefront - Customer-facing JSON API
# =========================================
# - Catalog + live price quotes (USD, plus display currency for the market)
# - Session cart of frozen line items
# - Promo code validation
# - Checkout: assemble order -> persist -> confirmation emails (best-effort)
# - Order lookup + invoice PDF
# =========================================

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file, session

from .app import currency_rates
from .currency import convert, is_valid_market, parse_market, payment_methods_for
from .email_utils import send_order_emails
from .errors import PromoCodeRejected, ValidationError
from .models import OrderRecord, PromoCodeRecord, load_catalog_item, save_order
from .money import ZERO, as_float, to_money
from .orders import OrderLineItem, assemble_order, generate_order_number, make_line_item
from .pdf_utils import build_invoice_pdf_bytes
from .pricing import compute_price, describe_selection
from .promos import (
    CUSTOMER_LIMIT,
    EXPIRED,
    INACTIVE,
    MIN_ORDER_VALUE,
    NOT_YET_VALID,
    USAGE_LIMIT,
    check_promo_code,
    compute_discount,
    normalize_code,
)

shop_api = Blueprint("shop_api", __name__, url_prefix="/api")

CART_KEY = "cart"

PROMO_MESSAGES = {
    INACTIVE: "This promo code is no longer active",
    NOT_YET_VALID: "This promo code is not yet valid",
    EXPIRED: "This promo code has expired",
    USAGE_LIMIT: "This promo code has reached its usage limit",
    CUSTOMER_LIMIT: "You have already used this promo code the maximum number of times",
    MIN_ORDER_VALUE: "Minimum order value of ${detail} required for this promo code",
}

CUSTOMER_FIELDS = (
    "customer_name", "customer_email", "customer_phone",
    "delivery_address", "delivery_city", "delivery_postal_code", "delivery_notes", "notes",
)


# -------------------- Helpers --------------------
def _payload() -> dict:
    return request.get_json(silent=True) or {}


def request_market(payload: dict | None = None) -> str:
    """Market from body/query, then the market cookie, then DEFAULT_MARKET."""
    payload = payload or {}
    raw = payload.get("market") or request.args.get("market") or request.cookies.get("market")
    if not raw:
        return parse_market(current_app.config["DEFAULT_MARKET"]).value
    if not is_valid_market(raw):
        raise ValidationError(f"Unknown market: {raw!r}")
    return parse_market(raw).value


def display(amount_usd, market: str) -> dict:
    return convert(amount_usd, market, currency_rates()).to_dict()


def promo_message(exc: PromoCodeRejected) -> str:
    return PROMO_MESSAGES.get(exc.reason, "Invalid promo code").replace("{detail}", exc.detail or "")


def customer_from(payload: dict) -> dict:
    customer = {k: (str(payload.get(k) or "").strip() or None) for k in CUSTOMER_FIELDS}
    if not customer["customer_name"] or not customer["customer_email"]:
        raise ValidationError("Missing required customer info (name/email)")
    return customer


def resolve_promo(code: str | None, subtotal, email: str | None):
    """-> (PromoCodeRecord, DiscountSpec) or (None, None) when no code was given."""
    code = normalize_code(code)
    if not code:
        return None, None
    record = PromoCodeRecord.find(code)
    if record is None:
        raise PromoCodeRejected("unknown_code")
    spec = check_promo_code(record.to_promo(), subtotal, record.customer_uses(email or ""))
    return record, spec


def send_confirmation(order_rec: OrderRecord) -> tuple[bool, str | None]:
    """Build the invoice and email it; failures are logged, never raised."""
    data = order_rec.to_dict()
    try:
        pdf_bytes = build_invoice_pdf_bytes(data)
        send_order_emails(order=data, pdf_bytes=pdf_bytes, rates=currency_rates())
        return True, None
    except Exception as e:
        current_app.logger.exception("Order email failed for %s", order_rec.order_number)
        return False, str(e)


# -------------------- Cart storage --------------------
def load_cart() -> list[OrderLineItem]:
    return [OrderLineItem.from_dict(row) for row in session.get(CART_KEY, [])]


def store_cart(items: list[OrderLineItem]):
    session[CART_KEY] = [li.to_dict() for li in items]


def cart_response(items: list[OrderLineItem], market: str, status: int = 200):
    subtotal = sum((li.subtotal for li in items), ZERO)
    return jsonify({
        "ok": True,
        "items": [li.to_dict() for li in items],
        "subtotal": as_float(subtotal),
        "display_subtotal": display(subtotal, market),
        "market": market,
    }), status


def _cart_index(items: list, index: int) -> int:
    if index < 0 or index >= len(items):
        raise ValidationError(f"No cart line {index}")
    return index


# -------------------- Catalog + pricing --------------------
@shop_api.get("/catalog/<jewelry_type>")
def catalog(jewelry_type):
    market = request_market()
    item = load_catalog_item(jewelry_type)

    def price_pair(v):
        if v is None:
            return None
        return {"usd": float(v), "display": display(v, market)}

    return jsonify({
        "ok": True,
        "market": market,
        "payment_methods": list(payment_methods_for(market)),
        "item": {
            "jewelry_type": item.jewelry_type,
            "name": item.name,
            "base_price": price_pair(item.base_price),
            "base_price_lab_grown": price_pair(item.base_price_lab_grown),
            "black_onyx_base_price": price_pair(item.black_onyx_base_price),
            "black_onyx_base_price_lab_grown": price_pair(item.black_onyx_base_price_lab_grown),
            "settings": [
                {
                    "id": s.id,
                    "title": s.title,
                    "type": s.type,
                    "required": s.required,
                    "options": [
                        {
                            "id": o.id,
                            "name": o.name,
                            "price": price_pair(o.price),
                            "price_lab_grown": price_pair(o.price_lab_grown),
                        }
                        for o in s.options
                    ],
                }
                for s in item.settings
            ],
        },
    })


@shop_api.post("/price")
def price_quote():
    """
    POST /api/price
    JSON: {"jewelry_type": "ring", "customizations": {...}, "market": "au"}
    """
    data = _payload()
    market = request_market(data)
    jewelry_type = (data.get("jewelry_type") or "").strip()
    if not jewelry_type:
        raise ValidationError("jewelry_type is required")

    item = load_catalog_item(jewelry_type)
    customizations = data.get("customizations") or {}
    breakdown = compute_price(item, customizations)

    out = breakdown.to_dict()
    out.update({
        "ok": True,
        "market": market,
        "summary": describe_selection(item, customizations),
        "display_total": display(breakdown.total, market),
    })
    return jsonify(out)


# -------------------- Cart --------------------
@shop_api.get("/cart")
def cart_view():
    return cart_response(load_cart(), request_market())


@shop_api.post("/cart")
def cart_add():
    data = _payload()
    market = request_market(data)
    jewelry_type = (data.get("jewelry_type") or "").strip()
    if not jewelry_type:
        raise ValidationError("jewelry_type is required")

    item = load_catalog_item(jewelry_type)
    line = make_line_item(item, data.get("customizations") or {}, data.get("quantity", 1))

    items = load_cart()
    items.append(line)
    store_cart(items)
    return cart_response(items, market, 201)


@shop_api.patch("/cart/<int:index>")
def cart_update(index):
    data = _payload()
    items = load_cart()
    i = _cart_index(items, index)
    items[i] = items[i].with_quantity(data.get("quantity"))
    store_cart(items)
    return cart_response(items, request_market(data))


@shop_api.delete("/cart/<int:index>")
def cart_remove(index):
    items = load_cart()
    items.pop(_cart_index(items, index))
    store_cart(items)
    return cart_response(items, request_market())


# -------------------- Promo codes --------------------
@shop_api.post("/promo-codes/validate")
def promo_validate():
    """
    POST /api/promo-codes/validate
    JSON: {"code": "...", "subtotal": 690, "customerEmail": "..."}
    """
    data = _payload()
    code = data.get("code")
    email = data.get("customerEmail") or data.get("customer_email")
    if not code or data.get("subtotal") in (None, "") or not email:
        return jsonify({"valid": False, "message": "Missing required fields"}), 400

    subtotal = to_money(data.get("subtotal"))
    try:
        record, spec = resolve_promo(code, subtotal, email)
    except PromoCodeRejected as e:
        return jsonify({"valid": False, "message": promo_message(e)})
    if spec is None:
        return jsonify({"valid": False, "message": "Invalid promo code"})

    amount = compute_discount(spec, subtotal)
    return jsonify({
        "valid": True,
        "message": f"Promo code applied! You saved ${amount:.2f}",
        "discount": {
            "type": spec.kind,
            "value": float(spec.value),
            "amount": float(amount),
            "finalTotal": float(subtotal - amount),
        },
        "promoCode": {"id": record.id, "code": record.code, "description": record.description},
    })


# -------------------- Checkout --------------------
@shop_api.post("/checkout")
def checkout():
    """
    POST /api/checkout
    JSON: customer_* / delivery_* fields, payment_method, promo_code (optional), market
    Uses the session cart; prices are the ones frozen when items were added.
    """
    data = _payload()
    market = request_market(data)
    customer = customer_from(data)

    payment_method = (data.get("payment_method") or "").strip()
    allowed = payment_methods_for(market)
    if payment_method not in allowed:
        raise ValidationError(f"Payment method must be one of: {', '.join(allowed)}")

    items = load_cart()
    cart_subtotal = sum((li.subtotal for li in items), ZERO)

    try:
        promo, spec = resolve_promo(data.get("promo_code"), cart_subtotal, customer["customer_email"])
    except PromoCodeRejected as e:
        return jsonify({"ok": False, "error": promo_message(e)}), 400

    order = assemble_order(
        items,
        delivery_fee=to_money(current_app.config.get("DELIVERY_FEE") or 0),
        discount=spec,
        discount_code=promo.code if promo else None,
    )

    order_number = generate_order_number()
    rec = save_order(order, order_number, customer, market, payment_method, promo=promo)
    current_app.logger.info("Order %s created: total=%s market=%s", order_number, order.total, market)

    session.pop(CART_KEY, None)

    email_sent, email_error = send_confirmation(rec)

    return jsonify({
        "ok": True,
        "order_id": rec.id,
        "order_number": order_number,
        "total": float(order.total),
        "display_total": display(order.total, market),
        "email_sent": email_sent,
        "email_error": email_error,
    }), 201


# -------------------- Order lookup --------------------
def _order_by_number(order_number: str) -> OrderRecord:
    return OrderRecord.query.filter_by(order_number=order_number).first_or_404()


@shop_api.get("/orders/<order_number>")
def order_view(order_number):
    rec = _order_by_number(order_number)
    out = rec.to_dict()
    out["display_total"] = display(rec.total, rec.market)
    return jsonify({"ok": True, "order": out})


@shop_api.get("/orders/<order_number>/invoice")
def order_invoice(order_number):
    rec = _order_by_number(order_number)
    pdf_bytes = build_invoice_pdf_bytes(rec.to_dict())
    return send_file(
        BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"invoice_{rec.order_number}.pdf",
    )
