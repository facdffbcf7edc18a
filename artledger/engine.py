# artledger/engine.py
"""
Transaction engine.

Every public operation enters here. The engine:
1. Takes the single-writer lock
2. Snapshots the stores and the event log position
3. Validates preconditions and mutates the stores
4. Appends events
5. For purchases, pays out last (royalty, platform fee, seller)
6. Commits, or restores the snapshot if anything failed

Queries do not take the writer lock; they read copies of the last
committed state.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .config import RegistryConfig
from .errors import (
    InsufficientPayment,
    InvalidArgument,
    NotForSale,
    RegistryError,
    TransferFailed,
    Unauthorized,
)
from .events import (
    ASSET_CREATED,
    ASSET_SOLD,
    FEE_UPDATED,
    GALLERY_CREATED,
    PRICE_UPDATED,
    REVIEW_ADDED,
    ROYALTY_PAID,
    Event,
    EventLog,
    EventSigner,
)
from .fees import DEFAULT_FEE_RATE, PaymentSplit
from .gallery import Gallery
from .payments import PaymentSubstrate
from .registry import Asset
from .replay import RegistryState, apply_event
from .reviews import Review

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseReceipt:
    """Outcome of a committed purchase."""
    asset_id: int
    seller: str
    buyer: str
    creator: str
    split: PaymentSplit

    @property
    def primary_sale(self) -> bool:
        return self.seller == self.creator

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "asset_id": self.asset_id,
            "seller": self.seller,
            "buyer": self.buyer,
            "creator": self.creator,
        }
        data.update(self.split.to_dict())
        return data


class TransactionEngine:
    """
    Coordinates galleries, assets, reviews and fees.

    Usage:
        engine = TransactionEngine("admin", BalanceLedger())
        engine.create_gallery("g1", "Main", "", caller="curator")
        asset_id = engine.create_asset("Dawn", "ipfs://Qm", 10**18, "g1", 10, caller="alice")
        receipt = engine.purchase(asset_id, 10**18, caller="bob")
    """

    def __init__(
        self,
        administrator: str,
        payments: PaymentSubstrate,
        fee_rate: int = DEFAULT_FEE_RATE,
        event_log: Optional[EventLog] = None,
        state: Optional[RegistryState] = None,
    ):
        self.payments = payments
        self.state = state or RegistryState.empty(administrator, fee_rate)
        self.event_log = event_log if event_log is not None else EventLog()
        self._lock = threading.RLock()
        self._depth = 0
        self._writer: Optional[int] = None
        # Payouts delivered inside the open transaction, oldest first
        self._sent: List[Tuple[str, int]] = []
        # Last committed state, replaced wholesale on every commit
        self._view = self.state.copy()

    @classmethod
    def from_config(cls, config: RegistryConfig, payments: PaymentSubstrate) -> "TransactionEngine":
        """
        Open an engine from configuration.

        When a state_dir is configured, the persisted event log is
        loaded and replayed to rebuild the stores.
        """
        signer = EventSigner.from_file(config.signing_key) if config.signing_key else None
        event_log = EventLog(config.state_dir, signer=signer)
        state = RegistryState.empty(config.administrator, config.platform_fee_rate)
        for event in event_log.list():
            apply_event(state, event)
        if len(event_log):
            logger.info(f"Rebuilt registry from {len(event_log)} events")
        return cls(
            administrator=config.administrator,
            payments=payments,
            event_log=event_log,
            state=state,
        )

    # -- transaction plumbing -------------------------------------------

    @contextmanager
    def _transaction(self, operation: str):
        """
        Run a block as one all-or-nothing transaction.

        Reentrant calls on the writer thread run as nested savepoints:
        a failing nested call is undone on its own, and everything is
        committed together when the outermost call completes. Rolling
        back a level also reverses every payout delivered inside it,
        including payouts of nested purchases.
        """
        with self._lock:
            saved = self.state.snapshot()
            log_length = len(self.event_log)
            sent_length = len(self._sent)
            outermost = self._depth == 0
            self._depth += 1
            self._writer = threading.get_ident()
            try:
                yield
            except RegistryError as e:
                self._rollback(saved, log_length, sent_length)
                logger.warning(f"{operation} rolled back: {e.kind}: {e.reason}")
                raise
            except Exception:
                self._rollback(saved, log_length, sent_length)
                logger.exception(f"{operation} rolled back")
                raise
            else:
                if outermost:
                    self._sent.clear()
                    self.event_log.commit()
                    self._view = self.state.copy()
            finally:
                self._depth -= 1
                if outermost:
                    self._writer = None

    def _rollback(self, saved: Dict[str, Any], log_length: int, sent_length: int) -> None:
        self._reverse(self._sent[sent_length:])
        del self._sent[sent_length:]
        self.state.restore(saved)
        self.event_log.truncate(log_length)

    def _reader(self) -> RegistryState:
        """
        State that queries read from.

        The writer thread sees its own in-flight changes; every other
        thread sees the last committed view.
        """
        if self._writer == threading.get_ident():
            return self.state
        return self._view

    def _emit(self, event_type: str, caller: str, payload: Dict[str, Any]) -> Event:
        return self.event_log.append(event_type, caller, payload)

    # -- galleries ------------------------------------------------------

    def create_gallery(self, key: str, name: str, description: str, caller: str) -> Gallery:
        """Create a gallery curated by the caller."""
        with self._transaction("create_gallery"):
            gallery = self.state.galleries.create(key, name, description, caller)
            self._emit(GALLERY_CREATED, caller, {
                "gallery_key": gallery.key,
                "name": gallery.name,
                "description": gallery.description,
                "curator": gallery.curator,
                "created_at": gallery.created_at,
            })
            return gallery

    def get_artworks(self, key: str) -> List[int]:
        return self._reader().galleries.artworks(key)

    def get_gallery(self, key: str) -> Gallery:
        return self._reader().galleries.get(key)

    def get_user_galleries(self, identity: str) -> List[str]:
        return self._reader().galleries.by_curator(identity)

    # -- assets ---------------------------------------------------------

    def create_asset(
        self,
        title: str,
        content_ref: str,
        price: int,
        gallery_key: str,
        royalty_pct: int,
        caller: str,
    ) -> int:
        """
        List a new asset, owned by the caller, in an existing gallery.

        Returns:
            The new asset id
        """
        with self._transaction("create_asset"):
            if not title:
                raise InvalidArgument("Title cannot be empty")
            # Resolve the gallery before the registry allocates an id.
            self.state.galleries.get(gallery_key)
            asset = self.state.registry.create(
                title, content_ref, price, gallery_key, royalty_pct, caller,
            )
            self.state.galleries.add_artwork(gallery_key, asset.asset_id)
            self._emit(ASSET_CREATED, caller, {
                "asset_id": asset.asset_id,
                "title": asset.title,
                "creator": asset.creator,
                "price": asset.price,
                "content_ref": asset.content_ref,
                "gallery_key": asset.gallery_key,
                "royalty_pct": asset.royalty_pct,
                "created_at": asset.created_at,
            })
            return asset.asset_id

    def update_price(self, asset_id: int, new_price: int, caller: str) -> None:
        """Reprice and relist an asset. Only the current owner may do this."""
        with self._transaction("update_price"):
            asset = self.state.registry.require(asset_id)
            if caller != asset.owner:
                raise Unauthorized("Only the owner can update the price")
            self.state.registry.set_price(asset_id, new_price)
            self._emit(PRICE_UPDATED, caller, {
                "asset_id": asset_id,
                "price": new_price,
            })

    def get_asset(self, asset_id: int) -> Asset:
        return self._reader().registry.get(asset_id)

    def get_by_owner(self, identity: str) -> List[int]:
        return self._reader().registry.by_owner(identity)

    def get_by_gallery(self, gallery_key: str) -> List[int]:
        return self._reader().registry.by_gallery(gallery_key)

    def owner_of(self, asset_id: int) -> str:
        return self._reader().registry.owner_of(asset_id)

    def content_ref(self, asset_id: int) -> str:
        return self._reader().registry.content_ref(asset_id)

    # -- purchase -------------------------------------------------------

    def purchase(self, asset_id: int, payment: int, caller: str) -> PurchaseReceipt:
        """
        Buy an asset.

        Ownership moves and the AssetSold event is recorded before any
        money leaves the engine. Payouts then go out in order: royalty to
        the creator, platform fee to the administrator, remainder to the
        seller. If any payout is rejected or the substrate raises, every
        payout delivered so far is reversed, nested purchases made from a
        payout callback included, and the whole purchase is rolled back.

        Raises:
            NotFound, NotForSale, InsufficientPayment, InvalidArgument,
            TransferFailed
        """
        with self._transaction("purchase"):
            asset = self.state.registry.require(asset_id)
            if not asset.for_sale:
                raise NotForSale(f"Artwork {asset_id} is not for sale")
            if isinstance(payment, bool) or not isinstance(payment, int):
                raise InvalidArgument("Payment must be an integer amount")
            if payment < asset.price:
                raise InsufficientPayment("Insufficient payment")

            seller = asset.owner
            creator = asset.creator
            split = self.state.fees.split(
                payment, asset.royalty_pct, primary=(seller == creator),
            )
            if split.seller_proceeds < 0:
                raise InvalidArgument("Royalty and platform fee exceed the payment")

            self.state.registry.transfer(asset_id, caller)
            self._emit(ASSET_SOLD, caller, {
                "asset_id": asset_id,
                "seller": seller,
                "buyer": caller,
                "payment": payment,
            })
            if split.royalty > 0:
                self._emit(ROYALTY_PAID, caller, {
                    "asset_id": asset_id,
                    "creator": creator,
                    "amount": split.royalty,
                })

            # No state mutation past this point.
            self._pay_out([
                (creator, split.royalty),
                (self.state.fees.administrator, split.platform_fee),
                (seller, split.seller_proceeds),
            ])

        logger.info(
            f"Asset #{asset_id} sold {seller} -> {caller} for {payment} "
            f"(royalty {split.royalty}, fee {split.platform_fee})"
        )
        return PurchaseReceipt(
            asset_id=asset_id,
            seller=seller,
            buyer=caller,
            creator=creator,
            split=split,
        )

    def _pay_out(self, transfers: List[Tuple[str, int]]) -> None:
        """Send each non-zero transfer, journaling the delivered ones."""
        for to_identity, amount in transfers:
            if amount <= 0:
                continue
            try:
                delivered = self.payments.transfer(to_identity, amount)
            except Exception as e:
                raise TransferFailed(f"Transfer of {amount} to {to_identity} failed: {e}") from e
            if not delivered:
                raise TransferFailed(f"Transfer of {amount} to {to_identity} failed")
            self._sent.append((to_identity, amount))
            logger.debug(f"Paid {amount} to {to_identity}")

    def _reverse(self, sent: List[Tuple[str, int]]) -> None:
        for to_identity, amount in reversed(sent):
            self.payments.reverse(to_identity, amount)

    # -- reviews --------------------------------------------------------

    def add_review(self, asset_id: int, comment: str, rating: int, caller: str) -> Review:
        """Rate an asset. Each caller may rate a given asset once."""
        with self._transaction("add_review"):
            self.state.registry.require(asset_id)
            review = self.state.reviews.add(asset_id, caller, comment, rating)
            self.state.registry.record_rating(asset_id, rating)
            self._emit(REVIEW_ADDED, caller, {
                "asset_id": asset_id,
                "reviewer": caller,
                "comment": review.comment,
                "rating": rating,
                "timestamp": review.timestamp,
            })
            return review

    def get_reviews(self, asset_id: int) -> List[Review]:
        state = self._reader()
        state.registry.require(asset_id)
        return state.reviews.reviews(asset_id)

    # -- fees -----------------------------------------------------------

    @property
    def administrator(self) -> str:
        return self._reader().fees.administrator

    @property
    def platform_fee_rate(self) -> int:
        return self._reader().fees.rate

    def update_fee(self, new_rate: int, caller: str) -> None:
        """Change the platform fee rate (administrator only, max 100)."""
        with self._transaction("update_fee"):
            self.state.fees.update(new_rate, caller)
            self._emit(FEE_UPDATED, caller, {"rate": new_rate})

    # -- event feed -----------------------------------------------------

    @property
    def events(self) -> List[Event]:
        """Committed events, oldest first."""
        return self.event_log.list()
