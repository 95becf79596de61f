import hashlib
import secrets

from .schemas import MidtransNotification


def expected_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """hex(sha512(order_id + status_code + gross_amount + server_key)), the gateway's webhook signature."""
    payload = f"{order_id}{status_code}{gross_amount}{server_key}".encode()
    return hashlib.sha512(payload).hexdigest()


def verify_signature(notification: MidtransNotification, server_key: str) -> bool:
    """Constant-time check of the notification's signature_key. Malformed hex counts as a mismatch."""
    expected = bytes.fromhex(
        expected_signature(
            notification.order_id,
            notification.status_code,
            notification.gross_amount,
            server_key,
        )
    )
    try:
        provided = bytes.fromhex(notification.signature_key)
    except ValueError:
        return False

    if len(provided) != len(expected):
        return False
    return secrets.compare_digest(expected, provided)
