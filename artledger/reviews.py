# artledger/reviews.py
"""
Review ledger.

Each asset has an append-only sequence of reviews. A side index of
(asset id, reviewer) pairs enforces one rating per reviewer per asset.
Reviews are never edited or deleted.
"""

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .errors import AlreadyRated, InvalidArgument

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class Review:
    """A single rating with an optional comment."""
    reviewer: str
    comment: str
    rating: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reviewer": self.reviewer,
            "comment": self.comment,
            "rating": self.rating,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Review":
        return cls(
            reviewer=data["reviewer"],
            comment=data.get("comment", ""),
            rating=data["rating"],
            timestamp=data.get("timestamp", time.time()),
        )


class ReviewLedger:
    """Append-only per-asset reviews with the already-rated side index."""

    def __init__(self):
        self._reviews: Dict[int, List[Review]] = {}
        self._rated: Set[Tuple[int, str]] = set()

    def add(
        self,
        asset_id: int,
        reviewer: str,
        comment: str,
        rating: int,
        timestamp: Optional[float] = None,
    ) -> Review:
        """
        Append a review.

        Asset existence is checked by the caller.

        Raises:
            InvalidArgument: rating outside 1..5
            AlreadyRated: reviewer already rated this asset
        """
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidArgument("Rating must be an integer")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise InvalidArgument("Rating must be between 1 and 5")
        if (asset_id, reviewer) in self._rated:
            raise AlreadyRated("User has already rated this artwork")

        review = Review(
            reviewer=reviewer,
            comment=comment or "",
            rating=rating,
            timestamp=timestamp if timestamp is not None else time.time(),
        )
        self._reviews.setdefault(asset_id, []).append(review)
        self._rated.add((asset_id, reviewer))
        logger.debug(f"Review added to #{asset_id} by {reviewer}: {rating}")
        return review

    def has_rated(self, asset_id: int, reviewer: str) -> bool:
        return (asset_id, reviewer) in self._rated

    def reviews(self, asset_id: int) -> List[Review]:
        return list(self._reviews.get(asset_id, []))

    def snapshot(self) -> Dict[str, Any]:
        # Review is frozen, so copying the containers is enough.
        return {
            "reviews": {k: list(v) for k, v in self._reviews.items()},
            "rated": set(self._rated),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._reviews = state["reviews"]
        self._rated = state["rated"]

    def __len__(self) -> int:
        return sum(len(v) for v in self._reviews.values())
