# artledger - Registry and transaction engine for curated digital-art listings
#
# Tracks ownership of unique assets, groups them into galleries, executes
# purchases that atomically move ownership and split payment between a
# creator royalty, a platform fee and the seller, and aggregates ratings.
#
# Core concepts:
# - Gallery: A curator-owned, append-only collection of asset ids
# - Asset: A listing with owner, price, sale state and royalty terms
# - Review: One rating (1-5) per reviewer per asset
# - Event: Append-only record of every committed state transition
# - TransactionEngine: Single-writer entry point for every operation

from .errors import (
    RegistryError,
    InvalidArgument,
    NotFound,
    AlreadyExists,
    Unauthorized,
    NotForSale,
    InsufficientPayment,
    AlreadyRated,
    TransferFailed,
)
from .gallery import Gallery, GalleryDirectory
from .registry import Asset, AssetRegistry, IdSequence
from .reviews import Review, ReviewLedger
from .fees import FeeSchedule, PaymentSplit, split_payment
from .payments import PaymentSubstrate, BalanceLedger
from .events import Event, EventLog, EventSigner, verify_event, verify_log
from .replay import RegistryState, replay
from .config import RegistryConfig
from .engine import TransactionEngine, PurchaseReceipt

__all__ = [
    # Errors
    "RegistryError",
    "InvalidArgument",
    "NotFound",
    "AlreadyExists",
    "Unauthorized",
    "NotForSale",
    "InsufficientPayment",
    "AlreadyRated",
    "TransferFailed",
    # Stores
    "Gallery",
    "GalleryDirectory",
    "Asset",
    "AssetRegistry",
    "IdSequence",
    "Review",
    "ReviewLedger",
    "FeeSchedule",
    "PaymentSplit",
    "split_payment",
    # Payments
    "PaymentSubstrate",
    "BalanceLedger",
    # Events
    "Event",
    "EventLog",
    "EventSigner",
    "verify_event",
    "verify_log",
    "RegistryState",
    "replay",
    # Engine
    "RegistryConfig",
    "TransactionEngine",
    "PurchaseReceipt",
]

__version__ = "0.1.0"
