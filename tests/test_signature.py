from decimal import Decimal

import pytest

from services.order_service.models import OrderStatus
from services.payment_service.exceptions import MalformedNotification, MalformedReference
from services.payment_service.gateway import build_order_reference, parse_order_reference
from services.payment_service.schemas import MidtransNotification
from services.payment_service.service import map_transaction_status, normalize_amount
from services.payment_service.signature import expected_signature, verify_signature

SERVER_KEY = "SB-Mid-server-abc"


def _notification(**overrides) -> MidtransNotification:
    fields = {
        "order_id": "order-12-1700000000000",
        "status_code": "200",
        "gross_amount": "5000000.00",
        "transaction_id": "txn-1",
        "transaction_status": "settlement",
    }
    fields.update(overrides)
    fields.setdefault(
        "signature_key",
        expected_signature(fields["order_id"], fields["status_code"], fields["gross_amount"], SERVER_KEY),
    )
    return MidtransNotification(**fields)


def test_expected_signature_is_sha512_hex():
    sig = expected_signature("order-1-1", "200", "10000.00", SERVER_KEY)
    assert len(sig) == 128
    assert sig == sig.lower()
    assert sig != expected_signature("order-1-1", "200", "10000.00", "other-key")


def test_valid_signature_is_accepted():
    assert verify_signature(_notification(), SERVER_KEY) is True


def test_signature_accepts_uppercase_hex():
    notification = _notification()
    notification.signature_key = notification.signature_key.upper()
    assert verify_signature(notification, SERVER_KEY) is True


@pytest.mark.parametrize(
    "field, value",
    [("order_id", "order-13-1700000000000"), ("status_code", "201"), ("gross_amount", "1.00")],
)
def test_tampered_signed_field_is_rejected(field, value):
    notification = _notification()
    setattr(notification, field, value)
    assert verify_signature(notification, SERVER_KEY) is False


def test_wrong_server_key_is_rejected():
    assert verify_signature(_notification(), "someone-elses-key") is False


@pytest.mark.parametrize("bad", ["", "not-hex", "abcd", "0" * 127])
def test_malformed_signature_is_rejected(bad):
    assert verify_signature(_notification(signature_key=bad), SERVER_KEY) is False


@pytest.mark.parametrize(
    "transaction_status, fraud_status, expected",
    [
        ("capture", "accept", OrderStatus.PAID),
        ("capture", "challenge", OrderStatus.PROCESSING),
        ("capture", None, None),
        ("settlement", None, OrderStatus.PAID),
        ("cancel", None, OrderStatus.CANCELED),
        ("deny", None, OrderStatus.CANCELED),
        ("expire", None, OrderStatus.CANCELED),
        ("failure", None, OrderStatus.CANCELED),
        ("pending", None, None),
        ("refund", None, None),
    ],
)
def test_map_transaction_status(transaction_status, fraud_status, expected):
    assert map_transaction_status(transaction_status, fraud_status) == expected


def test_normalize_amount_ignores_scale():
    assert normalize_amount("6000000") == normalize_amount("6000000.00")
    assert normalize_amount(Decimal("10.5")) == Decimal("10.50")


def test_normalize_amount_rejects_garbage():
    with pytest.raises(MalformedNotification):
        normalize_amount("six million")


def test_order_reference_round_trip():
    reference = build_order_reference(42)
    assert reference.startswith("order-42-")
    assert parse_order_reference(reference) == 42


@pytest.mark.parametrize("reference", ["", "order-abc-123", "order-12", "invoice-12-123", "order-12-123-extra"])
def test_parse_order_reference_rejects_malformed(reference):
    with pytest.raises(MalformedReference):
        parse_order_reference(reference)
