"""
Payment errors. Signature, mismatch and amount failures are security events:
callers log them loudly and never retry. Gateway failures are transient; the
gateway redelivers webhooks and clients may retry session creation.
"""
from shared.errors import AppError


class InvalidSignature(AppError):
    code = "invalid_signature"
    message = "Invalid signature"


class NotificationMismatch(AppError):
    code = "notification_mismatch"
    message = "Notification does not match the gateway transaction"


class MalformedReference(AppError):
    code = "malformed_reference"
    message = "Invalid order ID in notification"


class MalformedNotification(AppError):
    code = "malformed_notification"
    message = "Notification payload could not be interpreted"


class AmountMismatch(AppError):
    code = "amount_mismatch"
    message = "Payment verification failed: Amount Mismatch"


class GatewayError(AppError):
    status_code = 502
    code = "gateway_error"
    message = "Payment gateway request failed"


class GatewayTimeout(GatewayError):
    status_code = 503
    code = "gateway_timeout"
    message = "Payment gateway did not answer in time"
