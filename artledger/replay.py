# artledger/replay.py
"""
Rebuild registry state from an event log.

Replay applies each event through the same store mutators the
transaction engine uses, so a replayed state answers every query the
same way the live engine did.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from .errors import InvalidArgument
from .events import (
    ASSET_CREATED,
    ASSET_SOLD,
    FEE_UPDATED,
    GALLERY_CREATED,
    PRICE_UPDATED,
    REVIEW_ADDED,
    ROYALTY_PAID,
    Event,
)
from .fees import DEFAULT_FEE_RATE, FeeSchedule
from .gallery import GalleryDirectory
from .registry import AssetRegistry
from .reviews import ReviewLedger

logger = logging.getLogger(__name__)


@dataclass
class RegistryState:
    """The three stores plus the fee schedule."""
    fees: FeeSchedule
    galleries: GalleryDirectory = field(default_factory=GalleryDirectory)
    registry: AssetRegistry = field(default_factory=AssetRegistry)
    reviews: ReviewLedger = field(default_factory=ReviewLedger)

    @classmethod
    def empty(cls, administrator: str, fee_rate: int = DEFAULT_FEE_RATE) -> "RegistryState":
        return cls(fees=FeeSchedule(administrator, fee_rate))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "fees": self.fees.snapshot(),
            "galleries": self.galleries.snapshot(),
            "registry": self.registry.snapshot(),
            "reviews": self.reviews.snapshot(),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self.fees.restore(state["fees"])
        self.galleries.restore(state["galleries"])
        self.registry.restore(state["registry"])
        self.reviews.restore(state["reviews"])

    def copy(self) -> "RegistryState":
        """Independent deep copy, used as a read-only view."""
        clone = RegistryState.empty(self.fees.administrator, self.fees.rate)
        clone.restore(self.snapshot())
        clone.registry.sequence.advance_to(self.registry.sequence.current)
        return clone


def apply_event(state: RegistryState, event: Event) -> None:
    """Apply one event to ``state``."""
    p = event.payload

    if event.event_type == GALLERY_CREATED:
        state.galleries.create(
            key=p["gallery_key"],
            name=p["name"],
            description=p.get("description", ""),
            curator=p["curator"],
            created_at=p.get("created_at"),
        )

    elif event.event_type == ASSET_CREATED:
        state.registry.create(
            title=p["title"],
            content_ref=p.get("content_ref", ""),
            price=p["price"],
            gallery_key=p["gallery_key"],
            royalty_pct=p["royalty_pct"],
            creator=p["creator"],
            created_at=p.get("created_at"),
            asset_id=p["asset_id"],
        )
        state.galleries.add_artwork(p["gallery_key"], p["asset_id"])

    elif event.event_type == PRICE_UPDATED:
        state.registry.set_price(p["asset_id"], p["price"])

    elif event.event_type == ASSET_SOLD:
        state.registry.transfer(p["asset_id"], p["buyer"])

    elif event.event_type == ROYALTY_PAID:
        pass  # payout record only

    elif event.event_type == REVIEW_ADDED:
        state.reviews.add(
            p["asset_id"],
            p["reviewer"],
            p.get("comment", ""),
            p["rating"],
            timestamp=p.get("timestamp"),
        )
        state.registry.record_rating(p["asset_id"], p["rating"])

    elif event.event_type == FEE_UPDATED:
        state.fees.update(p["rate"], state.fees.administrator)

    else:
        raise InvalidArgument(f"Unknown event type: {event.event_type}")


def replay(
    events: Iterable[Event],
    administrator: str,
    fee_rate: int = DEFAULT_FEE_RATE,
) -> RegistryState:
    """
    Build a fresh RegistryState from a sequence of events.

    Args:
        events: Events in log order
        administrator: Registry administrator identity
        fee_rate: Fee rate in force before the first FeeUpdated event

    Returns:
        The reconstructed state
    """
    state = RegistryState.empty(administrator, fee_rate)
    count = 0
    for event in events:
        apply_event(state, event)
        count += 1
    logger.debug(f"Replayed {count} events")
    return state
