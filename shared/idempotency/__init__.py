from .route import (
    IDEMPOTENCY_HEADER,
    REPLAY_HEADER,
    IdempotencyKeyMisuse,
    IdempotencyKeyReused,
    IdempotentRoute,
    InvalidIdempotencyKey,
)
from .repository import IdempotencyRepository
from .models import IdempotencyRecord
