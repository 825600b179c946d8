from app.models.artist import Artist
from app.models.track import Track
from app.models.royalty_line_item import RoyaltyLineItem
from app.models.payment_request import (
    PaymentRequest,
    PaymentRequestStatus,
    Invoice,
    OPEN_STATUSES,
    COMMITTED_STATUSES,
)

__all__ = [
    # Catalog models
    "Artist",
    "Track",
    # Royalty models
    "RoyaltyLineItem",
    # Payment models
    "PaymentRequest",
    "PaymentRequestStatus",
    "Invoice",
    "OPEN_STATUSES",
    "COMMITTED_STATUSES",
]
