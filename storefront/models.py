from __future__ import annotations

# =========================================
# models.py
# Jove Storefront - SQLAlchemy models + catalog/order glue
# =========================================
# - Catalog tables feed catalog.JewelryItem (the pricing core never sees rows)
# - Promo codes + per-customer usage
# - Orders/order items are written only after orders.assemble_order()
# - Admin/staff users for the admin API (Flask-Login)
# =========================================

import json
from datetime import datetime

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

from .catalog import CustomizationOption, CustomizationSetting, JewelryItem
from .money import optional_money, to_money
from .promos import DiscountSpec, PromoCode, normalize_code

db = SQLAlchemy()

# ---- Order statuses ----
ORDER_STATUSES = [
    "pending",
    "confirmed",
    "preparing",
    "shipped",
    "delivered",
    "cancelled",
]

Money = db.Numeric(10, 2)


class CatalogNotFound(LookupError):
    pass


# -------------------- Users --------------------
class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="staff", nullable=False)  # "admin" or "staff"

    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    def is_admin(self) -> bool:
        return self.role == "admin"


# -------------------- Catalog --------------------
class JewelryItemRecord(db.Model):
    __tablename__ = "jewelry_items"

    id = db.Column(db.Integer, primary_key=True)
    jewelry_type = db.Column(db.String(20), unique=True, nullable=False)  # ring/necklace/...
    name = db.Column(db.String(120), nullable=False, default="")

    base_price = db.Column(Money, nullable=False, default=0)
    base_price_lab_grown = db.Column(Money, nullable=True)
    black_onyx_base_price = db.Column(Money, nullable=True)
    black_onyx_base_price_lab_grown = db.Column(Money, nullable=True)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    settings = db.relationship(
        "CustomizationSettingRecord",
        backref="jewelry_item",
        order_by="CustomizationSettingRecord.display_order",
        cascade="all, delete-orphan",
    )

    def to_catalog_item(self) -> JewelryItem:
        return JewelryItem(
            id=str(self.id),
            jewelry_type=self.jewelry_type,
            name=self.name or "",
            base_price=to_money(self.base_price),
            base_price_lab_grown=optional_money(self.base_price_lab_grown),
            black_onyx_base_price=optional_money(self.black_onyx_base_price),
            black_onyx_base_price_lab_grown=optional_money(self.black_onyx_base_price_lab_grown),
            settings=tuple(s.to_catalog_setting() for s in self.settings),
        )


class CustomizationSettingRecord(db.Model):
    __tablename__ = "customization_settings"

    id = db.Column(db.Integer, primary_key=True)
    jewelry_item_id = db.Column(db.Integer, db.ForeignKey("jewelry_items.id"), nullable=False, index=True)
    setting_key = db.Column(db.String(60), nullable=False)  # e.g. "metal", "first_stone"
    title = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(10), nullable=False, default="single")  # single / multiple
    required = db.Column(db.Boolean, nullable=False, default=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    options = db.relationship(
        "CustomizationOptionRecord",
        backref="setting",
        order_by="CustomizationOptionRecord.display_order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (db.UniqueConstraint("jewelry_item_id", "setting_key"),)

    def to_catalog_setting(self) -> CustomizationSetting:
        return CustomizationSetting(
            id=self.setting_key,
            title=self.title,
            type=self.type,
            required=bool(self.required),
            options=tuple(o.to_catalog_option() for o in self.options),
        )


class CustomizationOptionRecord(db.Model):
    __tablename__ = "customization_options"

    id = db.Column(db.Integer, primary_key=True)
    setting_id = db.Column(db.Integer, db.ForeignKey("customization_settings.id"), nullable=False, index=True)
    option_key = db.Column(db.String(60), nullable=False)  # e.g. "yellow_gold"
    name = db.Column(db.String(120), nullable=False)
    price = db.Column(Money, nullable=False, default=0)
    price_lab_grown = db.Column(Money, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (db.UniqueConstraint("setting_id", "option_key"),)

    def to_catalog_option(self) -> CustomizationOption:
        return CustomizationOption(
            id=self.option_key,
            name=self.name,
            price=to_money(self.price),
            price_lab_grown=optional_money(self.price_lab_grown),
        )


def get_item_record(jewelry_type: str) -> JewelryItemRecord:
    rec = JewelryItemRecord.query.filter_by(jewelry_type=jewelry_type).first()
    if rec is None:
        raise CatalogNotFound(f"No catalog entry for {jewelry_type!r}")
    return rec


def load_catalog_item(jewelry_type: str) -> JewelryItem:
    return get_item_record(jewelry_type).to_catalog_item()


def get_option_record(jewelry_type: str, setting_key: str, option_key: str) -> CustomizationOptionRecord:
    rec = (
        CustomizationOptionRecord.query.join(CustomizationSettingRecord)
        .join(JewelryItemRecord)
        .filter(
            JewelryItemRecord.jewelry_type == jewelry_type,
            CustomizationSettingRecord.setting_key == setting_key,
            CustomizationOptionRecord.option_key == option_key,
        )
        .first()
    )
    if rec is None:
        raise CatalogNotFound(f"No option {setting_key}/{option_key} for {jewelry_type!r}")
    return rec


def import_catalog_item(data: dict) -> JewelryItemRecord:
    """Create (or replace) a catalog item from the nested dict shape used by JewelryItem.from_dict."""
    existing = JewelryItemRecord.query.filter_by(jewelry_type=data["jewelry_type"]).first()
    if existing is not None:
        db.session.delete(existing)
        db.session.flush()

    rec = JewelryItemRecord(
        jewelry_type=data["jewelry_type"],
        name=data.get("name") or "",
        base_price=to_money(data["base_price"]),
        base_price_lab_grown=optional_money(data.get("base_price_lab_grown")),
        black_onyx_base_price=optional_money(data.get("black_onyx_base_price")),
        black_onyx_base_price_lab_grown=optional_money(data.get("black_onyx_base_price_lab_grown")),
    )
    for s_idx, s in enumerate(data.get("settings") or []):
        setting = CustomizationSettingRecord(
            setting_key=s["id"],
            title=s.get("title") or s["id"],
            type=s.get("type") or "single",
            required=bool(s.get("required", False)),
            display_order=s_idx,
        )
        for o_idx, o in enumerate(s.get("options") or []):
            setting.options.append(CustomizationOptionRecord(
                option_key=o["id"],
                name=o.get("name") or o["id"],
                price=to_money(o.get("price")),
                price_lab_grown=optional_money(o.get("price_lab_grown")),
                display_order=o_idx,
            ))
        rec.settings.append(setting)

    db.session.add(rec)
    db.session.commit()
    return rec


# -------------------- Promo codes --------------------
class PromoCodeRecord(db.Model):
    __tablename__ = "promo_codes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True, nullable=False, index=True)
    description = db.Column(db.String(240), nullable=True)

    discount_type = db.Column(db.String(20), nullable=False)  # percentage / fixed_amount
    discount_value = db.Column(Money, nullable=False)
    influencer_name = db.Column(db.String(120), nullable=True)
    influencer_payout_type = db.Column(db.String(30), nullable=True)  # percentage_of_sale / fixed / none
    influencer_payout_value = db.Column(Money, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    valid_from = db.Column(db.DateTime, nullable=True)
    valid_until = db.Column(db.DateTime, nullable=True)
    max_uses = db.Column(db.Integer, nullable=True)
    current_uses = db.Column(db.Integer, nullable=False, default=0)
    max_uses_per_customer = db.Column(db.Integer, nullable=True)
    min_order_value = db.Column(Money, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @classmethod
    def find(cls, code: str):
        return cls.query.filter_by(code=normalize_code(code)).first()

    def discount_spec(self) -> DiscountSpec:
        return DiscountSpec.create(
            self.discount_type,
            self.discount_value,
            payout_kind=self.influencer_payout_type,
            payout_value=self.influencer_payout_value,
        )

    def to_promo(self) -> PromoCode:
        return PromoCode(
            code=self.code,
            discount=self.discount_spec(),
            description=self.description or "",
            is_active=bool(self.is_active),
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            max_uses=self.max_uses,
            current_uses=self.current_uses or 0,
            max_uses_per_customer=self.max_uses_per_customer,
            min_order_value=optional_money(self.min_order_value),
        )

    def customer_uses(self, email: str) -> int:
        if not email:
            return 0
        return PromoCodeUsage.query.filter_by(promo_code_id=self.id, customer_email=email.strip().lower()).count()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": float(self.discount_value),
            "influencer_name": self.influencer_name,
            "influencer_payout_type": self.influencer_payout_type,
            "influencer_payout_value": None if self.influencer_payout_value is None else float(self.influencer_payout_value),
            "is_active": bool(self.is_active),
            "valid_from": self.valid_from.isoformat() if self.valid_from else None,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
            "max_uses_per_customer": self.max_uses_per_customer,
            "min_order_value": None if self.min_order_value is None else float(self.min_order_value),
        }


class PromoCodeUsage(db.Model):
    __tablename__ = "promo_code_usage"

    id = db.Column(db.Integer, primary_key=True)
    promo_code_id = db.Column(db.Integer, db.ForeignKey("promo_codes.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    customer_email = db.Column(db.String(160), nullable=False, index=True)
    discount_amount = db.Column(Money, nullable=False, default=0)
    influencer_payout = db.Column(Money, nullable=False, default=0)
    used_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


# -------------------- Orders --------------------
class OrderRecord(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False, index=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_email = db.Column(db.String(160), nullable=False)
    customer_phone = db.Column(db.String(40), nullable=True)
    delivery_address = db.Column(db.String(240), nullable=True)
    delivery_city = db.Column(db.String(120), nullable=True)
    delivery_postal_code = db.Column(db.String(20), nullable=True)
    delivery_notes = db.Column(db.Text, nullable=True)

    market = db.Column(db.String(10), nullable=False, default="lb")
    payment_method = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=ORDER_STATUSES[0])
    source = db.Column(db.String(20), nullable=False, default="website")  # website / manual

    subtotal = db.Column(Money, nullable=False)
    delivery_fee = db.Column(Money, nullable=False, default=0)
    discount_type = db.Column(db.String(20), nullable=True)
    discount_value = db.Column(Money, nullable=True)
    discount_amount = db.Column(Money, nullable=False, default=0)
    discount_code = db.Column(db.String(40), nullable=True)
    influencer_payout = db.Column(Money, nullable=False, default=0)
    total = db.Column(Money, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship("OrderItemRecord", backref="order", cascade="all, delete-orphan")

    def to_dict(self, with_items: bool = True) -> dict:
        out = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "delivery_city": self.delivery_city,
            "delivery_postal_code": self.delivery_postal_code,
            "delivery_notes": self.delivery_notes,
            "market": self.market,
            "payment_method": self.payment_method,
            "status": self.status,
            "source": self.source,
            "subtotal": float(self.subtotal),
            "delivery_fee": float(self.delivery_fee),
            "discount_type": self.discount_type,
            "discount_value": None if self.discount_value is None else float(self.discount_value),
            "discount_amount": float(self.discount_amount),
            "discount_code": self.discount_code,
            "total": float(self.total),
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_items:
            out["order_items"] = [i.to_dict() for i in self.items]
        return out


class OrderItemRecord(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    jewelry_type = db.Column(db.String(20), nullable=False)
    product_name = db.Column(db.String(120), nullable=True)
    customization_json = db.Column(db.Text, nullable=False, default="{}")
    customization_summary = db.Column(db.Text, nullable=True)
    base_price = db.Column(Money, nullable=False)
    total_price = db.Column(Money, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    subtotal = db.Column(Money, nullable=False)

    def to_dict(self) -> dict:
        return {
            "jewelry_type": self.jewelry_type,
            "product_name": self.product_name,
            "customization_data": json.loads(self.customization_json or "{}"),
            "customization_summary": self.customization_summary,
            "base_price": float(self.base_price),
            "total_price": float(self.total_price),
            "quantity": self.quantity,
            "subtotal": float(self.subtotal),
        }


class OrderLog(db.Model):
    __tablename__ = "order_logs"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    actor_username = db.Column(db.String(80), nullable=True)  # who did it
    action = db.Column(db.String(40), nullable=False)         # created / status_change / email
    details = db.Column(db.Text, nullable=True)

    order = db.relationship("OrderRecord", backref=db.backref("logs", lazy=True, order_by="desc(OrderLog.timestamp)"))


def save_order(order, order_number: str, customer: dict, market: str, payment_method: str,
               source: str = "website", promo: PromoCodeRecord | None = None,
               actor: str | None = None) -> OrderRecord:
    """Persist an assembled orders.Order (plus promo usage + a log entry) in one commit."""
    rec = OrderRecord(
        order_number=order_number,
        customer_name=customer["customer_name"],
        customer_email=customer["customer_email"],
        customer_phone=customer.get("customer_phone"),
        delivery_address=customer.get("delivery_address"),
        delivery_city=customer.get("delivery_city"),
        delivery_postal_code=customer.get("delivery_postal_code"),
        delivery_notes=customer.get("delivery_notes"),
        market=market,
        payment_method=payment_method,
        status=ORDER_STATUSES[0],
        source=source,
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        discount_type=order.discount.kind if order.discount else None,
        discount_value=order.discount.value if order.discount else None,
        discount_amount=order.discount_amount,
        discount_code=order.discount_code,
        influencer_payout=order.influencer_payout,
        total=order.total,
        notes=customer.get("notes"),
    )
    for li in order.line_items:
        rec.items.append(OrderItemRecord(
            jewelry_type=li.jewelry_type,
            product_name=li.product_name or None,
            customization_json=json.dumps(dict(li.customization)),
            customization_summary=li.customization_summary or None,
            base_price=li.base_price,
            total_price=li.total_price,
            quantity=li.quantity,
            subtotal=li.subtotal,
        ))

    db.session.add(rec)
    db.session.flush()  # need rec.id for usage/log rows

    if promo is not None:
        promo.current_uses = (promo.current_uses or 0) + 1
        db.session.add(PromoCodeUsage(
            promo_code_id=promo.id,
            order_id=rec.id,
            customer_email=rec.customer_email.strip().lower(),
            discount_amount=order.discount_amount,
            influencer_payout=order.influencer_payout,
        ))

    db.session.add(OrderLog(
        order_id=rec.id,
        actor_username=actor or source,
        action="created",
        details=f"Created order {order_number} ({source})",
    ))
    db.session.commit()
    return rec
