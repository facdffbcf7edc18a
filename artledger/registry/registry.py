# artledger/registry/registry.py
"""
Asset registry.

The registry owns every Asset record and the two reverse indexes:
- assets by owner (a provenance history: ids are appended on each
  acquisition and never removed when an asset is sold)
- assets by gallery
"""

import copy
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..errors import InvalidArgument, NotFound

logger = logging.getLogger(__name__)

MAX_ROYALTY_PCT = 100


def _require_amount(value, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{what} must be an integer amount")
    if value <= 0:
        raise InvalidArgument(f"{what} must be greater than 0")
    return value


@dataclass
class Asset:
    """
    A registered art listing.

    Attributes:
        asset_id: Sequential id, never reused
        title: Non-empty title
        creator: Identity that created the asset (immutable)
        owner: Current owner identity
        price: Asking price in the smallest currency unit
        for_sale: Whether the asset can currently be purchased
        content_ref: Opaque reference to the hosted media/metadata
        gallery_key: Gallery the asset was listed in (immutable)
        royalty_pct: Creator royalty on secondary sales, 0-100
        created_at: Timestamp of creation
        rating_count: Number of ratings received
        rating_sum: Sum of all ratings received
    """
    asset_id: int
    title: str
    creator: str
    owner: str
    price: int
    for_sale: bool
    content_ref: str
    gallery_key: str
    royalty_pct: int
    created_at: float = field(default_factory=time.time)
    rating_count: int = 0
    rating_sum: int = 0

    @property
    def average_rating(self) -> int:
        """Truncated integer average, 0 when unrated."""
        if self.rating_count == 0:
            return 0
        return self.rating_sum // self.rating_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "title": self.title,
            "creator": self.creator,
            "owner": self.owner,
            "price": self.price,
            "for_sale": self.for_sale,
            "content_ref": self.content_ref,
            "gallery_key": self.gallery_key,
            "royalty_pct": self.royalty_pct,
            "created_at": self.created_at,
            "rating_count": self.rating_count,
            "rating_sum": self.rating_sum,
            "average_rating": self.average_rating,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            asset_id=data["asset_id"],
            title=data["title"],
            creator=data["creator"],
            owner=data.get("owner", data["creator"]),
            price=data["price"],
            for_sale=data.get("for_sale", True),
            content_ref=data.get("content_ref", ""),
            gallery_key=data["gallery_key"],
            royalty_pct=data.get("royalty_pct", 0),
            created_at=data.get("created_at", time.time()),
            rating_count=data.get("rating_count", 0),
            rating_sum=data.get("rating_sum", 0),
        )


class IdSequence:
    """
    Monotonic asset id counter.

    Ids start at 1. The counter only moves forward, so an id handed out
    once is never handed out again.
    """

    def __init__(self, start: int = 0):
        self._current = start

    @property
    def current(self) -> int:
        """The last id issued (0 if none)."""
        return self._current

    def next(self) -> int:
        self._current += 1
        return self._current

    def advance_to(self, value: int) -> None:
        """Move the counter forward to at least ``value``."""
        if value > self._current:
            self._current = value


class AssetRegistry:
    """
    Canonical store of assets and their ownership indexes.

    Reads return copies of the stored records.
    """

    def __init__(self, sequence: Optional[IdSequence] = None):
        self.sequence = sequence or IdSequence()
        self._assets: Dict[int, Asset] = {}
        self._by_owner: Dict[str, List[int]] = {}
        self._by_gallery: Dict[str, List[int]] = {}

    def create(
        self,
        title: str,
        content_ref: str,
        price: int,
        gallery_key: str,
        royalty_pct: int,
        creator: str,
        created_at: Optional[float] = None,
        asset_id: Optional[int] = None,
    ) -> Asset:
        """
        Register a new asset owned by its creator and listed for sale.

        The gallery key is not resolved here; callers check it against
        the gallery directory first.

        Args:
            title: Non-empty title
            content_ref: Opaque content reference (not validated)
            price: Positive price
            gallery_key: Gallery to list the asset in
            royalty_pct: Royalty percentage, 0-100
            creator: Creating identity
            created_at: Creation timestamp (defaults to now)
            asset_id: Explicit id, used when replaying a log

        Returns:
            Copy of the created Asset
        """
        if not title:
            raise InvalidArgument("Title cannot be empty")
        _require_amount(price, "Price")
        if isinstance(royalty_pct, bool) or not isinstance(royalty_pct, int):
            raise InvalidArgument("Royalty percentage must be an integer")
        if not 0 <= royalty_pct <= MAX_ROYALTY_PCT:
            raise InvalidArgument("Royalty percentage must be between 0 and 100")

        if asset_id is None:
            asset_id = self.sequence.next()
        else:
            if asset_id in self._assets or asset_id <= self.sequence.current:
                raise InvalidArgument(f"Asset id {asset_id} already issued")
            self.sequence.advance_to(asset_id)

        asset = Asset(
            asset_id=asset_id,
            title=title,
            creator=creator,
            owner=creator,
            price=price,
            for_sale=True,
            content_ref=content_ref or "",
            gallery_key=gallery_key,
            royalty_pct=royalty_pct,
        )
        if created_at is not None:
            asset.created_at = created_at

        self._assets[asset_id] = asset
        self._by_owner.setdefault(creator, []).append(asset_id)
        self._by_gallery.setdefault(gallery_key, []).append(asset_id)
        logger.debug(f"Asset created: #{asset_id} {title!r} by {creator}")
        return replace(asset)

    def require(self, asset_id: int) -> Asset:
        """Return the live record (not a copy)."""
        asset = self._assets.get(asset_id)
        if asset is None:
            raise NotFound(f"Asset not found: {asset_id}")
        return asset

    def get(self, asset_id: int) -> Asset:
        return replace(self.require(asset_id))

    def owner_of(self, asset_id: int) -> str:
        return self.require(asset_id).owner

    def content_ref(self, asset_id: int) -> str:
        return self.require(asset_id).content_ref

    def by_owner(self, identity: str) -> List[int]:
        """Every asset id the identity has ever held, in acquisition order."""
        return list(self._by_owner.get(identity, []))

    def by_gallery(self, gallery_key: str) -> List[int]:
        return list(self._by_gallery.get(gallery_key, []))

    def set_price(self, asset_id: int, price: int) -> None:
        """Set a new price and relist the asset."""
        asset = self.require(asset_id)
        _require_amount(price, "Price")
        asset.price = price
        asset.for_sale = True

    def transfer(self, asset_id: int, new_owner: str) -> str:
        """
        Move ownership and delist the asset.

        The previous owner keeps the id in their index.

        Returns:
            The previous owner
        """
        asset = self.require(asset_id)
        previous = asset.owner
        asset.owner = new_owner
        asset.for_sale = False
        self._by_owner.setdefault(new_owner, []).append(asset_id)
        logger.debug(f"Asset #{asset_id} transferred {previous} -> {new_owner}")
        return previous

    def record_rating(self, asset_id: int, rating: int) -> None:
        asset = self.require(asset_id)
        asset.rating_count += 1
        asset.rating_sum += rating

    def list(self) -> List[Asset]:
        return [replace(a) for a in self._assets.values()]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "assets": copy.deepcopy(self._assets),
            "by_owner": copy.deepcopy(self._by_owner),
            "by_gallery": copy.deepcopy(self._by_gallery),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        # The id sequence is never rolled back.
        self._assets = state["assets"]
        self._by_owner = state["by_owner"]
        self._by_gallery = state["by_gallery"]

    def __contains__(self, asset_id: int) -> bool:
        return asset_id in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self):
        return iter(self.list())
