import pytest

from storefront import email_utils
from storefront.pdf_utils import build_invoice_pdf_bytes

ORDER = {
    "order_number": "20260214-120000-abc123",
    "customer_name": "Lea Haddad",
    "customer_email": "lea@example.com",
    "market": "au",
    "payment_method": "stripe",
    "subtotal": 690.0,
    "delivery_fee": 0,
    "discount_amount": 69.0,
    "discount_code": "LOVE10",
    "total": 621.0,
    "order_items": [{
        "jewelry_type": "ring",
        "product_name": "Signature Ring",
        "customization_summary": "Metal: Yellow Gold; Stone: Emerald, Sapphire",
        "total_price": 690.0,
        "quantity": 1,
        "subtotal": 690.0,
    }],
}


class FakeSMTP:
    sent = []

    def __init__(self, host, port):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture
def smtp(app, monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(email_utils.smtplib, "SMTP", FakeSMTP)
    app.config.update(SMTP_HOST="smtp.test", FROM_EMAIL="orders@test", INTERNAL_NOTIFY_EMAIL="atelier@test")
    return FakeSMTP


def test_sends_internal_and_customer_email(app, smtp):
    with app.app_context():
        email_utils.send_order_emails(ORDER, build_invoice_pdf_bytes(ORDER))

    internal, customer = smtp.sent
    assert internal["To"] == "atelier@test"
    assert customer["To"] == "lea@example.com"
    assert "20260214-120000-abc123" in customer["Subject"]

    body = customer.get_body(preferencelist=("plain",)).get_content()
    assert "Signature Ring x1" in body
    assert "Discount LOVE10: -$69.00 (approx. A$106.95 AUD)" in body
    assert "Delivery: Free" in body
    attachment = next(customer.iter_attachments())
    assert attachment.get_filename() == "invoice_20260214-120000-abc123.pdf"


def test_missing_smtp_host_raises(app):
    app.config["SMTP_HOST"] = ""
    with app.app_context():
        with pytest.raises(RuntimeError):
            email_utils.send_order_emails(ORDER, b"%PDF")
