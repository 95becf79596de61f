from typing import Optional

from pydantic import BaseModel

class MidtransNotification(BaseModel):
    """Webhook body as posted by the gateway. Only the signed fields are trusted, and only after verification."""
    order_id: str
    status_code: str
    gross_amount: str
    signature_key: str
    transaction_id: str
    transaction_status: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_time: Optional[str] = None
    status_message: Optional[str] = None
    merchant_id: Optional[str] = None
    currency: Optional[str] = None

    class Config:
        extra = "allow"

class TransactionStatus(BaseModel):
    """The gateway's own answer to a status query; the only input used for state transitions."""
    order_id: str
    transaction_status: str
    gross_amount: str
    status_code: Optional[str] = None
    transaction_id: Optional[str] = None
    fraud_status: Optional[str] = None
    payment_type: Optional[str] = None

    class Config:
        extra = "ignore"

class PaymentSession(BaseModel):
    token: str
    redirect_url: str

class NotificationResult(BaseModel):
    status: str
    message: Optional[str] = None
