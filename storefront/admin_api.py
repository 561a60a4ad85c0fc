from __future__ import annotations

# =========================================
# admin_api.py
# Jove Storefront - Admin JSON API
# =========================================
# - Login/logout (Flask-Login); staff can work orders, admins manage the
#   catalog prices, promo codes and users
# - Manual orders go through the same assembler as checkout
# =========================================

import os
from datetime import datetime

from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from .catalog import JewelryItem
from .currency import is_valid_market, parse_market, payment_methods_for
from .errors import ValidationError
from .models import (
    ORDER_STATUSES,
    OrderLog,
    OrderRecord,
    PromoCodeRecord,
    PromoCodeUsage,
    User,
    db,
    get_item_record,
    get_option_record,
    import_catalog_item,
    load_catalog_item,
    save_order,
)
from .money import ZERO, optional_money, to_money
from .orders import OrderLineItem, assemble_order, generate_order_number, make_line_item
from .promos import DISCOUNT_KINDS, PAYOUT_KINDS, DiscountSpec, normalize_code, normalize_payout_kind
from .shop_api import customer_from, send_confirmation

admin_api = Blueprint("admin_api", __name__, url_prefix="/admin")

BASE_PRICE_FIELDS = (
    "base_price_lab_grown",
    "black_onyx_base_price",
    "black_onyx_base_price_lab_grown",
)


# -------------------- Helpers --------------------
def _payload() -> dict:
    return request.get_json(silent=True) or {}


def admin_required():
    if not current_user.is_authenticated:
        abort(401)
    if not getattr(current_user, "is_admin", lambda: False)():
        abort(403)


def log_event(order_id: int, action: str, details: str | None = None):
    actor = current_user.username if current_user.is_authenticated else None
    entry = OrderLog(order_id=order_id, actor_username=actor, action=action, details=details)
    db.session.add(entry)
    db.session.commit()


def _parse_dt(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r} (use ISO format)")


def _optional_int(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Expected a whole number, got {value!r}")


# -------------------- Auth --------------------
@admin_api.post("/login")
def login():
    data = _payload()
    username = (data.get("username") or "").strip()
    password = (data.get("password") or "").strip()

    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        login_user(user)
        return jsonify({"ok": True, "username": user.username, "role": user.role})

    return jsonify({"ok": False, "error": "Invalid login."}), 401


@admin_api.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


# -------------------- Orders --------------------
@admin_api.get("/orders")
@login_required
def orders():
    query = OrderRecord.query
    status = request.args.get("status")
    if status:
        query = query.filter(OrderRecord.status == status)
    elif request.args.get("active"):
        query = query.filter(OrderRecord.status.notin_(["delivered", "cancelled"]))

    rows = query.order_by(OrderRecord.created_at.desc()).all()
    return jsonify({"ok": True, "orders": [o.to_dict(with_items=False) for o in rows]})


@admin_api.get("/orders/<int:order_id>")
@login_required
def order_view(order_id):
    rec = db.get_or_404(OrderRecord, order_id)
    out = rec.to_dict()

    logs = []
    if current_user.is_admin():
        logs = OrderLog.query.filter_by(order_id=rec.id).order_by(OrderLog.timestamp.desc()).all()
    out["logs"] = [
        {
            "timestamp": l.timestamp.isoformat(),
            "actor": l.actor_username,
            "action": l.action,
            "details": l.details,
        }
        for l in logs
    ]
    out["influencer_payout"] = float(rec.influencer_payout)
    return jsonify({"ok": True, "order": out})


@admin_api.post("/orders/<int:order_id>/status")
@login_required
def order_status(order_id):
    rec = db.get_or_404(OrderRecord, order_id)
    new_status = (_payload().get("status") or "").strip()
    if new_status not in ORDER_STATUSES:
        return jsonify({"ok": False, "error": "Invalid status."}), 400

    old = rec.status
    rec.status = new_status
    db.session.commit()
    log_event(rec.id, "status_change", f"Status changed: {old} → {new_status}")
    current_app.logger.info("Order %s status %s -> %s", rec.order_number, old, new_status)
    return jsonify({"ok": True, "status": rec.status})


@admin_api.post("/orders/<int:order_id>/resend-email")
@login_required
def order_resend_email(order_id):
    rec = db.get_or_404(OrderRecord, order_id)
    sent, error = send_confirmation(rec)
    log_event(rec.id, "email", "Confirmation re-sent" if sent else f"Email failed: {error}")
    return jsonify({"ok": sent, "email_sent": sent, "email_error": error}), (200 if sent else 502)


def _manual_line_item(row: dict) -> OrderLineItem:
    """Catalog-priced when customizations are given, otherwise a hand-priced custom piece."""
    jewelry_type = (row.get("jewelry_type") or "").strip()
    if not jewelry_type:
        raise ValidationError("Each item needs a jewelry_type")

    if row.get("customizations") is not None:
        item = load_catalog_item(jewelry_type)
        return make_line_item(item, row["customizations"], row.get("quantity", 1))

    if row.get("total_price") in (None, ""):
        raise ValidationError("Custom items need a total_price")
    total_price = to_money(row["total_price"])
    if total_price < ZERO:
        raise ValidationError("Item price cannot be negative")
    return OrderLineItem(
        jewelry_type=jewelry_type,
        product_name=row.get("product_name") or "",
        customization_summary=row.get("customization_summary") or "Custom item",
        base_price=to_money(row.get("base_price", row["total_price"])),
        total_price=total_price,
        quantity=row.get("quantity", 1),
    )


@admin_api.post("/orders/manual")
@login_required
def order_manual():
    """
    POST /admin/orders/manual
    JSON: customer_* fields, items[], delivery_fee, discount_type/discount_value/discount_code,
          payment_method, market
    """
    data = _payload()
    customer = customer_from(data)

    market = data.get("market") or current_app.config["DEFAULT_MARKET"]
    if not is_valid_market(market):
        raise ValidationError(f"Unknown market: {market!r}")
    market = parse_market(market).value

    payment_method = (data.get("payment_method") or payment_methods_for(market)[0]).strip()

    items = [_manual_line_item(row) for row in data.get("items") or []]

    discount = None
    if data.get("discount_type") and data.get("discount_value") not in (None, "", 0):
        discount = DiscountSpec.create(data["discount_type"], data["discount_value"])

    fee = data.get("delivery_fee")
    if fee in (None, ""):
        fee = current_app.config.get("MANUAL_ORDER_DELIVERY_FEE") or 0

    order = assemble_order(
        items,
        delivery_fee=to_money(fee),
        discount=discount,
        discount_code=normalize_code(data.get("discount_code")) or None,
    )
    order_number = generate_order_number()
    rec = save_order(order, order_number, customer, market, payment_method,
                     source="manual", actor=current_user.username)
    return jsonify({"ok": True, "order": rec.to_dict()}), 201


# -------------------- Promo codes --------------------
def _apply_promo_fields(rec: PromoCodeRecord, data: dict):
    if "discount_type" in data or "discount_value" in data:
        spec = DiscountSpec.create(
            data.get("discount_type", rec.discount_type),
            data.get("discount_value", rec.discount_value),
        )
        if spec.value < 0:
            raise ValidationError("discount_value cannot be negative")
        rec.discount_type = spec.kind
        rec.discount_value = to_money(spec.value)

    for key in ("description", "influencer_name"):
        if key in data:
            setattr(rec, key, (data.get(key) or None))
    if "influencer_payout_type" in data:
        payout_kind = normalize_payout_kind(data.get("influencer_payout_type"))
        if payout_kind is not None and payout_kind not in PAYOUT_KINDS:
            raise ValidationError(f"influencer_payout_type must be one of: {', '.join(PAYOUT_KINDS)}")
        rec.influencer_payout_type = payout_kind
    if "influencer_payout_value" in data:
        rec.influencer_payout_value = optional_money(data.get("influencer_payout_value"))
    if "is_active" in data:
        rec.is_active = bool(data["is_active"])
    for key in ("valid_from", "valid_until"):
        if key in data:
            setattr(rec, key, _parse_dt(data.get(key)))
    for key in ("max_uses", "max_uses_per_customer"):
        if key in data:
            setattr(rec, key, _optional_int(data.get(key)))
    if "min_order_value" in data:
        rec.min_order_value = optional_money(data.get("min_order_value"))


@admin_api.get("/promo-codes")
@login_required
def promo_codes():
    admin_required()
    rows = PromoCodeRecord.query.order_by(PromoCodeRecord.created_at.desc()).all()
    return jsonify({"ok": True, "promo_codes": [p.to_dict() for p in rows]})


@admin_api.post("/promo-codes")
@login_required
def promo_code_new():
    admin_required()
    data = _payload()

    code = normalize_code(data.get("code"))
    if not code:
        return jsonify({"ok": False, "error": "Code is required."}), 400
    if data.get("discount_type") not in DISCOUNT_KINDS + ("fixed",):
        return jsonify({"ok": False, "error": "discount_type must be percentage or fixed_amount."}), 400
    if PromoCodeRecord.find(code):
        return jsonify({"ok": False, "error": "That code already exists."}), 400

    rec = PromoCodeRecord(code=code, current_uses=0)
    _apply_promo_fields(rec, data)
    db.session.add(rec)
    db.session.commit()
    return jsonify({"ok": True, "promo_code": rec.to_dict()}), 201


@admin_api.post("/promo-codes/<int:promo_id>")
@login_required
def promo_code_update(promo_id):
    admin_required()
    rec = db.get_or_404(PromoCodeRecord, promo_id)
    _apply_promo_fields(rec, _payload())
    db.session.commit()
    return jsonify({"ok": True, "promo_code": rec.to_dict()})


@admin_api.get("/promo-codes/<int:promo_id>/payouts")
@login_required
def promo_code_payouts(promo_id):
    """Influencer payout owed across all orders that used the code."""
    admin_required()
    rec = db.get_or_404(PromoCodeRecord, promo_id)
    usages = PromoCodeUsage.query.filter_by(promo_code_id=rec.id).all()
    total_payout = sum((to_money(u.influencer_payout) for u in usages), ZERO)
    total_discount = sum((to_money(u.discount_amount) for u in usages), ZERO)
    return jsonify({
        "ok": True,
        "code": rec.code,
        "influencer_name": rec.influencer_name,
        "uses": len(usages),
        "total_discount": float(total_discount),
        "total_payout": float(total_payout),
    })


# -------------------- Catalog pricing --------------------
@admin_api.post("/catalog")
@login_required
def catalog_import():
    """Create/replace a jewelry item with its settings and options (nested JSON)."""
    admin_required()
    data = _payload()
    try:
        JewelryItem.from_dict(data)  # validate shape before touching the DB
    except (KeyError, TypeError) as e:
        raise ValidationError(f"Malformed catalog item: missing {e}")
    rec = import_catalog_item(data)
    return jsonify({"ok": True, "jewelry_type": rec.jewelry_type}), 201


@admin_api.post("/pricing/<jewelry_type>")
@login_required
def pricing_item(jewelry_type):
    admin_required()
    rec = get_item_record(jewelry_type)
    data = _payload()

    if "base_price" in data:
        base = to_money(data["base_price"])
        if base < ZERO:
            raise ValidationError("base_price cannot be negative")
        rec.base_price = base
    for key in BASE_PRICE_FIELDS:
        if key in data:
            # null clears the variant
            setattr(rec, key, optional_money(data[key]))
    db.session.commit()

    item = rec.to_catalog_item()
    return jsonify({
        "ok": True,
        "jewelry_type": item.jewelry_type,
        "base_price": float(item.base_price),
        **{k: (None if getattr(item, k) is None else float(getattr(item, k))) for k in BASE_PRICE_FIELDS},
    })


@admin_api.post("/pricing/<jewelry_type>/options/<setting_key>/<option_key>")
@login_required
def pricing_option(jewelry_type, setting_key, option_key):
    admin_required()
    rec = get_option_record(jewelry_type, setting_key, option_key)
    data = _payload()

    if "price" in data:
        rec.price = to_money(data["price"])
    if "price_lab_grown" in data:
        rec.price_lab_grown = optional_money(data["price_lab_grown"])
    db.session.commit()

    opt = rec.to_catalog_option()
    return jsonify({
        "ok": True,
        "option": {
            "id": opt.id,
            "price": float(opt.price),
            "price_lab_grown": None if opt.price_lab_grown is None else float(opt.price_lab_grown),
        },
    })


# -------------------- Admin: User Management --------------------
@admin_api.get("/users")
@login_required
def users():
    admin_required()
    rows = User.query.order_by(User.role.desc(), User.username.asc()).all()
    return jsonify({"ok": True, "users": [{"id": u.id, "username": u.username, "role": u.role} for u in rows]})


@admin_api.post("/users")
@login_required
def user_new():
    admin_required()
    data = _payload()
    username = (data.get("username") or "").strip()
    password = (data.get("password") or "").strip()
    role = (data.get("role") or "staff").strip()

    if not username or not password:
        return jsonify({"ok": False, "error": "Username and password required."}), 400

    if role not in ["admin", "staff"]:
        role = "staff"

    if User.query.filter_by(username=username).first():
        return jsonify({"ok": False, "error": "That username already exists."}), 400

    u = User(username=username, role=role)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return jsonify({"ok": True, "id": u.id, "username": u.username, "role": u.role}), 201


@admin_api.post("/users/<int:user_id>/delete")
@login_required
def user_delete(user_id):
    admin_required()
    user = db.get_or_404(User, user_id)

    # Block deleting yourself (prevents locking yourself out)
    if user.id == current_user.id:
        return jsonify({"ok": False, "error": "You can't delete your own account while logged in."}), 400

    if user.role == "admin":
        admin_count = User.query.filter_by(role="admin").count()
        if admin_count <= 1:
            return jsonify({"ok": False, "error": "You can't delete the last admin account."}), 400

    db.session.delete(user)
    db.session.commit()
    return jsonify({"ok": True, "deleted": user.username})


# -------------------- One-time init --------------------
@admin_api.post("/init-db")
def init_db():
    db.create_all()

    # open only until the first admin exists
    if User.query.filter_by(role="admin").count():
        admin_required()

    # seed admin from env, if missing
    admin_user = current_app.config.get("ADMIN_USER") or os.getenv("ADMIN_USER", "admin")
    admin_pass = current_app.config.get("ADMIN_PASS") or os.getenv("ADMIN_PASS")

    existing = User.query.filter_by(username=admin_user).first()
    if not existing:
        if not admin_pass:
            return jsonify({"ok": False, "error": "Set ADMIN_PASS before seeding the admin user."}), 400
        u = User(username=admin_user, role="admin")
        u.set_password(admin_pass)
        db.session.add(u)
        db.session.commit()
        current_app.logger.info("Seeded admin user %s", admin_user)
        return jsonify({"ok": True, "message": f"DB initialized. Admin user created: {admin_user}"})

    return jsonify({"ok": True, "message": "DB initialized. Admin user already exists."})
