import pytest
from bson import ObjectId

from eastlink.core.config import settings
from eastlink.utils import email


@pytest.fixture
def order():
    return {
        "_id": ObjectId(),
        "order_number": "EL123456789",
        "final_amount": 1250.4,
        "payment_method": "cash_on_delivery",
        "delivery_address": {"street": "Jugol Road 4", "city": "Harar"},
        "items": [{"product": {"name": "Harar Coffee"}, "quantity": 2, "price": 600}],
    }


def test_format_currency():
    assert email.format_currency(1250.4) == "ETB 1,250"
    assert email.format_currency(None) == "ETB 0"


def test_order_confirmation(order):
    rendered = email.render("order_confirmation", order)
    assert rendered["subject"] == "Order Confirmation - EL123456789"
    assert "Harar Coffee - Qty: 2" in rendered["html"]
    assert "Cash on Delivery" in rendered["html"]


def test_dispatched_update_names_agent(order):
    rendered = email.render("order_status_update", {
        "order": order, "status": "dispatched", "agent": {"first_name": "Yonas", "last_name": "T", "phone": "0911"},
    })
    assert "DISPATCHED" in rendered["html"]
    assert "Yonas T" in rendered["html"]


def test_unknown_template():
    with pytest.raises(ValueError):
        email.render("nope", {})


def test_send_without_smtp_reports_failure(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", "")
    result = email.send_email("a@example.com", "welcome", {"name": "Abebe"})
    assert result["success"] is False
    assert "SMTP" in result["error"]


def test_send_uses_smtp(monkeypatch):
    sent = []

    class FakeSMTP:
        def __init__(self, host, port):
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            pass

        def login(self, user, password):
            pass

        def sendmail(self, sender, to, message):
            sent.append((sender, to, message))

    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.test")
    monkeypatch.setattr(email.smtplib, "SMTP", FakeSMTP)
    result = email.send_email("a@example.com", "welcome", {"name": "Abebe"})
    assert result["success"] is True
    assert sent[0][1] == "a@example.com"
    assert "Welcome to EastLink Market" in sent[0][2]
