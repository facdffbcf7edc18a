# artledger/events/__init__.py
"""
Event log for the art ledger.

Downstream indexers rebuild their view by replaying the log.

Event types:
- GalleryCreated, AssetCreated, AssetSold, RoyaltyPaid,
  PriceUpdated, ReviewAdded, FeeUpdated
"""

from .event import (
    ASSET_CREATED,
    ASSET_SOLD,
    EVENT_TYPES,
    FEE_UPDATED,
    GALLERY_CREATED,
    PRICE_UPDATED,
    REVIEW_ADDED,
    ROYALTY_PAID,
    Event,
    EventLog,
    load_events,
)
from .signatures import EventSigner, generate_private_key_pem, verify_event, verify_log

__all__ = [
    "Event",
    "EventLog",
    "load_events",
    "EventSigner",
    "generate_private_key_pem",
    "verify_event",
    "verify_log",
    "EVENT_TYPES",
    "GALLERY_CREATED",
    "ASSET_CREATED",
    "ASSET_SOLD",
    "ROYALTY_PAID",
    "PRICE_UPDATED",
    "REVIEW_ADDED",
    "FEE_UPDATED",
]
