# artledger/events/event.py
"""
Registry events.

Every committed state transition is recorded as an Event. The log is
append-only and replaying it from the start rebuilds the full registry
state (see artledger.replay).
"""

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .signatures import EventSigner

logger = logging.getLogger(__name__)

GALLERY_CREATED = "GalleryCreated"
ASSET_CREATED = "AssetCreated"
ASSET_SOLD = "AssetSold"
ROYALTY_PAID = "RoyaltyPaid"
PRICE_UPDATED = "PriceUpdated"
REVIEW_ADDED = "ReviewAdded"
FEE_UPDATED = "FeeUpdated"

EVENT_TYPES = (
    GALLERY_CREATED,
    ASSET_CREATED,
    ASSET_SOLD,
    ROYALTY_PAID,
    PRICE_UPDATED,
    REVIEW_ADDED,
    FEE_UPDATED,
)


def _generate_id() -> str:
    return str(uuid.uuid4())


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class Event:
    """
    A recorded state transition.

    Attributes:
        event_id: Unique identifier
        sequence: Position in the log, starting at 1
        event_type: One of EVENT_TYPES
        actor_id: Identity of the caller that caused the event
        payload: Key fields of the operation
        published: ISO timestamp
        signature: Operator signature (added when the log has a signer)
    """
    event_id: str
    sequence: int
    event_type: str
    actor_id: str
    payload: Dict[str, Any]
    published: str = field(default_factory=_now_iso)
    signature: Optional[Dict[str, Any]] = None

    def signable(self) -> Dict[str, Any]:
        """Everything covered by the signature."""
        return {
            "event_id": self.event_id,
            "sequence": self.sequence,
            "event_type": self.event_type,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "published": self.published,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.signable()
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        return cls(
            event_id=data["event_id"],
            sequence=data["sequence"],
            event_type=data["event_type"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            published=data.get("published", ""),
            signature=data.get("signature"),
        )


class EventLog:
    """
    Append-only event log.

    Entries appended during a transaction stay pending until commit();
    truncate() may only drop pending entries. With a store_dir, committed
    entries are persisted to events.json.
    """

    def __init__(self, store_dir: Path | str = None, signer: "EventSigner" = None):
        self.store_dir = Path(store_dir) if store_dir else None
        self.signer = signer
        self._events: List[Event] = []
        self._committed = 0
        # Committed entries not yet written to disk
        self._dirty = False
        if self.store_dir:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            self._load()

    def _log_path(self) -> Path:
        return self.store_dir / "events.json"

    def _load(self):
        """Load committed events from disk."""
        log_path = self._log_path()
        if log_path.exists():
            with open(log_path) as f:
                data = json.load(f)
            self._events = [Event.from_dict(e) for e in data.get("events", [])]
            self._committed = len(self._events)
            logger.debug(f"Loaded {self._committed} events from {log_path}")

    def _save(self):
        data = {
            "version": "1.0",
            "events": [e.to_dict() for e in self._events[:self._committed]],
        }
        if self.signer:
            data["public_key"] = self.signer.public_key_pem.decode("utf-8")
        log_path = self._log_path()
        tmp_path = log_path.with_name(log_path.name + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, log_path)

    def append(self, event_type: str, actor_id: str, payload: Dict[str, Any]) -> Event:
        """Append a pending event and return it."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        event = Event(
            event_id=_generate_id(),
            sequence=len(self._events) + 1,
            event_type=event_type,
            actor_id=actor_id,
            payload=payload,
        )
        if self.signer:
            self.signer.sign(event)
        self._events.append(event)
        return event

    def commit(self) -> None:
        """
        Mark every pending event as committed and persist.

        The file is replaced atomically. A failed write is logged and the
        log stays dirty, so the next commit writes it again.
        """
        if self._committed == len(self._events) and not self._dirty:
            return
        self._committed = len(self._events)
        if not self.store_dir:
            return
        try:
            self._save()
        except OSError:
            self._dirty = True
            logger.exception(f"Failed to write {self._log_path()}, retrying on next commit")
        else:
            self._dirty = False

    @property
    def dirty(self) -> bool:
        """True when committed events have not reached disk yet."""
        return self._dirty

    def truncate(self, length: int) -> None:
        """Drop pending events beyond ``length``."""
        if length < self._committed:
            raise ValueError("Cannot truncate committed events")
        del self._events[length:]

    @property
    def pending(self) -> int:
        return len(self._events) - self._committed

    def list(self) -> List[Event]:
        """Committed events, oldest first."""
        return list(self._events[:self._committed])

    def since(self, sequence: int) -> List[Event]:
        """Committed events with a sequence number greater than ``sequence``."""
        return self._events[max(sequence, 0):self._committed]

    def find_by_type(self, event_type: str) -> List[Event]:
        return [e for e in self.list() if e.event_type == event_type]

    def find_by_asset(self, asset_id: int) -> List[Event]:
        return [e for e in self.list() if e.payload.get("asset_id") == asset_id]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(self.list())


def load_events(path: Path | str) -> List[Event]:
    """Read events from an events.json file."""
    with open(path) as f:
        data = json.load(f)
    return [Event.from_dict(e) for e in data.get("events", [])]
