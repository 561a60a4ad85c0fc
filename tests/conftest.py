import copy

import pytest

from storefront.app import create_app
from storefront.catalog import JewelryItem
from storefront.models import User, db, import_catalog_item

RING = {
    "jewelry_type": "ring",
    "name": "Signature Ring",
    "base_price": 500,
    "base_price_lab_grown": 450,
    "black_onyx_base_price": 400,
    "black_onyx_base_price_lab_grown": 380,
    "settings": [
        {
            "id": "metal",
            "title": "Metal",
            "type": "single",
            "required": True,
            "options": [
                {"id": "yellow_gold", "name": "Yellow Gold", "price": 50},
                {"id": "white_gold", "name": "White Gold", "price": 60, "price_lab_grown": 0},
            ],
        },
        {
            "id": "first_stone",
            "title": "First Stone",
            "type": "single",
            "required": False,
            "options": [
                {"id": "diamond", "name": "Diamond", "price": 120, "price_lab_grown": 40},
                {"id": "black_onyx", "name": "Black Onyx", "price": 0},
            ],
        },
        {
            "id": "stone",
            "title": "Stone",
            "type": "multiple",
            "required": False,
            "options": [
                {"id": "emerald", "name": "Emerald", "price": 80, "price_lab_grown": 70},
                {"id": "sapphire", "name": "Sapphire", "price": 60},
                {"id": "ruby", "name": "Ruby", "price": 75.5},
            ],
        },
    ],
}


@pytest.fixture
def ring_data():
    return copy.deepcopy(RING)


@pytest.fixture
def ring(ring_data):
    return JewelryItem.from_dict(ring_data)


@pytest.fixture
def app(ring_data):
    app = create_app({
        "TESTING": True,
        "DATABASE_URL": "sqlite://",
        "SECRET_KEY": "test-secret",
        "DEFAULT_MARKET": "lb",
        "DELIVERY_FEE": "0",
        "MANUAL_ORDER_DELIVERY_FEE": "50",
        "CURRENCY_RATES": None,
    })
    with app.app_context():
        import_catalog_item(ring_data)
        admin = User(username="admin", role="admin")
        admin.set_password("secret")
        staff = User(username="staff", role="staff")
        staff.set_password("secret")
        db.session.add_all([admin, staff])
        db.session.commit()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(order, pdf_bytes, rates=None):
        sent.append({"order": order, "pdf": pdf_bytes})
        return True

    monkeypatch.setattr("storefront.shop_api.send_order_emails", fake_send)
    return sent


@pytest.fixture
def client(app, sent_emails):
    return app.test_client()


def _login(app, username):
    c = app.test_client()
    resp = c.post("/admin/login", json={"username": username, "password": "secret"})
    assert resp.status_code == 200
    return c


@pytest.fixture
def admin_client(app, sent_emails):
    return _login(app, "admin")


@pytest.fixture
def staff_client(app, sent_emails):
    return _login(app, "staff")
