from storefront.models import OrderRecord, PromoCodeRecord, User, db

SELECTION = {"metal": "yellow_gold", "stone": ["emerald", "sapphire"]}

CUSTOMER = {
    "customer_name": "Nour Khalil",
    "customer_email": "nour@example.com",
    "delivery_address": "Hamra St",
    "delivery_city": "Beirut",
}


def test_admin_routes_require_login(client):
    assert client.get("/admin/orders").status_code == 401
    assert client.post("/admin/login", json={"username": "admin", "password": "wrong"}).status_code == 401


def test_staff_cannot_manage_promos_or_prices(staff_client):
    assert staff_client.get("/admin/orders").status_code == 200
    assert staff_client.get("/admin/promo-codes").status_code == 403
    assert staff_client.post("/admin/pricing/ring", json={"base_price": 1}).status_code == 403


def test_manual_order_mixes_catalog_and_custom_items(app, admin_client):
    resp = admin_client.post("/admin/orders/manual", json={
        **CUSTOMER,
        "items": [
            {"jewelry_type": "ring", "customizations": SELECTION},
            {"jewelry_type": "necklace", "product_name": "Bespoke pendant", "total_price": 310, "quantity": 2},
        ],
        "discount_type": "percentage",
        "discount_value": 10,
        "discount_code": "vip",
    })
    assert resp.status_code == 201
    order = resp.json["order"]
    # 690 + 620 = 1310; 10% = 131; default manual delivery fee 50
    assert order["subtotal"] == 1310.0
    assert order["discount_amount"] == 131.0
    assert order["delivery_fee"] == 50.0
    assert order["total"] == 1229.0
    assert order["source"] == "manual"
    assert order["discount_code"] == "VIP"
    assert order["order_items"][1]["customization_summary"] == "Custom item"


def test_manual_order_discount_never_makes_total_negative(admin_client):
    resp = admin_client.post("/admin/orders/manual", json={
        **CUSTOMER,
        "items": [{"jewelry_type": "ring", "total_price": 100}],
        "delivery_fee": 10,
        "discount_type": "fixed_amount",
        "discount_value": 200,
    })
    assert resp.json["order"]["discount_amount"] == 100.0
    assert resp.json["order"]["total"] == 10.0


def test_manual_order_rejects_negative_delivery_fee(admin_client):
    resp = admin_client.post("/admin/orders/manual", json={
        **CUSTOMER,
        "items": [{"jewelry_type": "ring", "total_price": 100}],
        "delivery_fee": -150,
    })
    assert resp.status_code == 422


def test_order_status_change_is_logged(app, admin_client):
    order_id = admin_client.post("/admin/orders/manual", json={
        **CUSTOMER, "items": [{"jewelry_type": "ring", "customizations": SELECTION}],
    }).json["order"]["id"]

    resp = admin_client.post(f"/admin/orders/{order_id}/status", json={"status": "confirmed"})
    assert resp.json["status"] == "confirmed"
    assert admin_client.post(f"/admin/orders/{order_id}/status", json={"status": "lost"}).status_code == 400

    detail = admin_client.get(f"/admin/orders/{order_id}").json["order"]
    assert detail["logs"][0]["action"] == "status_change"
    assert detail["logs"][0]["actor"] == "admin"

    active = admin_client.get("/admin/orders?active=1").json["orders"]
    assert [o["id"] for o in active] == [order_id]
    admin_client.post(f"/admin/orders/{order_id}/status", json={"status": "delivered"})
    assert admin_client.get("/admin/orders?active=1").json["orders"] == []


def test_resend_email(admin_client, sent_emails):
    order_id = admin_client.post("/admin/orders/manual", json={
        **CUSTOMER, "items": [{"jewelry_type": "ring", "total_price": 100}],
    }).json["order"]["id"]

    resp = admin_client.post(f"/admin/orders/{order_id}/resend-email")
    assert resp.status_code == 200
    assert sent_emails[-1]["order"]["order_number"]


def test_promo_code_crud_and_payouts(app, admin_client, client):
    resp = admin_client.post("/admin/promo-codes", json={
        "code": " maya15 ",
        "discount_type": "fixed",
        "discount_value": 15,
        "influencer_name": "Maya",
        "influencer_payout_type": "fixed",
        "influencer_payout_value": 25,
        "valid_until": "2099-01-01T00:00:00",
    })
    assert resp.status_code == 201
    promo = resp.json["promo_code"]
    assert promo["code"] == "MAYA15"
    assert promo["discount_type"] == "fixed_amount"

    assert admin_client.post("/admin/promo-codes", json={"code": "MAYA15", "discount_type": "percentage"}).status_code == 400
    assert admin_client.post("/admin/promo-codes", json={"code": "X", "discount_type": "bogo"}).status_code == 400

    client.post("/api/cart", json={"jewelry_type": "ring", "customizations": SELECTION})
    client.post("/api/checkout", json={**CUSTOMER, "payment_method": "stripe", "promo_code": "MAYA15"})

    payouts = admin_client.get(f"/admin/promo-codes/{promo['id']}/payouts").json
    assert payouts["uses"] == 1
    assert payouts["total_discount"] == 15.0
    assert payouts["total_payout"] == 25.0

    resp = admin_client.post(f"/admin/promo-codes/{promo['id']}", json={"is_active": False})
    assert resp.json["promo_code"]["is_active"] is False
    with app.app_context():
        assert PromoCodeRecord.find("maya15").is_active is False


def test_promo_code_rejects_unknown_payout_type(admin_client):
    resp = admin_client.post("/admin/promo-codes", json={
        "code": "TIERED",
        "discount_type": "percentage",
        "discount_value": 10,
        "influencer_payout_type": "tiered",
    })
    assert resp.status_code == 400

    resp = admin_client.post("/admin/promo-codes", json={
        "code": "CASEY",
        "discount_type": "percentage",
        "discount_value": 10,
        "influencer_payout_type": "Percentage_of_Sale",
        "influencer_payout_value": 5,
    })
    assert resp.status_code == 201
    assert resp.json["promo_code"]["influencer_payout_type"] == "percentage_of_sale"


def test_pricing_updates_feed_price_quotes(admin_client, client):
    resp = admin_client.post("/admin/pricing/ring", json={"base_price": 520, "base_price_lab_grown": None})
    assert resp.json["base_price"] == 520.0
    assert resp.json["base_price_lab_grown"] is None

    resp = admin_client.post("/admin/pricing/ring/options/stone/sapphire", json={"price_lab_grown": 55})
    assert resp.json["option"] == {"id": "sapphire", "price": 60.0, "price_lab_grown": 55.0}

    quote = client.post("/api/price", json={
        "jewelry_type": "ring",
        "customizations": dict(SELECTION, diamondType="lab_grown"),
    }).json
    # 520 base (lab variant cleared) + 50 + 70 + 55
    assert quote["total"] == 695.0

    assert admin_client.post("/admin/pricing/ring/options/stone/opal", json={"price": 1}).status_code == 404


def test_catalog_import(admin_client, client):
    resp = admin_client.post("/admin/catalog", json={
        "jewelry_type": "earring",
        "name": "Drop Earrings",
        "base_price": 300,
        "settings": [{
            "id": "metal", "title": "Metal", "type": "single", "required": True,
            "options": [{"id": "silver", "name": "Silver", "price": 0}],
        }],
    })
    assert resp.status_code == 201
    quote = client.post("/api/price", json={"jewelry_type": "earring", "customizations": {"metal": "silver"}})
    assert quote.json["total"] == 300.0

    assert admin_client.post("/admin/catalog", json={"name": "no type"}).status_code == 400


def test_user_management(app, admin_client):
    resp = admin_client.post("/admin/users", json={"username": "lina", "password": "pw", "role": "owner"})
    assert resp.status_code == 201
    assert resp.json["role"] == "staff"
    assert admin_client.post("/admin/users", json={"username": "lina", "password": "pw"}).status_code == 400

    with app.app_context():
        admin_id = User.query.filter_by(username="admin").one().id
    assert admin_client.post(f"/admin/users/{admin_id}/delete").status_code == 400
    assert admin_client.post(f"/admin/users/{resp.json['id']}/delete").json["deleted"] == "lina"


def test_init_db_requires_admin_once_an_admin_exists(app, client, staff_client, admin_client):
    app.config["ADMIN_USER"] = "owner"
    app.config["ADMIN_PASS"] = "pw"
    assert client.post("/admin/init-db").status_code == 401
    assert staff_client.post("/admin/init-db").status_code == 403

    assert "created" in admin_client.post("/admin/init-db").json["message"]
    assert "already exists" in admin_client.post("/admin/init-db").json["message"]
    with app.app_context():
        assert db.session.query(User).filter_by(username="owner").one().is_admin()
        assert OrderRecord.query.count() == 0


def test_init_db_bootstraps_first_admin_without_login(app, client, monkeypatch):
    monkeypatch.delenv("ADMIN_PASS", raising=False)
    with app.app_context():
        User.query.delete()
        db.session.commit()

    app.config["ADMIN_USER"] = "owner"
    app.config["ADMIN_PASS"] = None
    resp = client.post("/admin/init-db")
    assert resp.status_code == 400
    assert "ADMIN_PASS" in resp.json["error"]

    app.config["ADMIN_PASS"] = "pw"
    assert "created" in client.post("/admin/init-db").json["message"]
    with app.app_context():
        assert User.query.filter_by(username="owner").one().check_password("pw")
