# artledger/gallery.py
"""
Gallery directory.

A gallery is a named, curator-owned collection of asset ids. Keys are
chosen by the caller and are unique for the life of the registry:
there is no close or delete, and membership only ever grows.
"""

import copy
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .errors import AlreadyExists, InvalidArgument, NotFound

logger = logging.getLogger(__name__)


@dataclass
class Gallery:
    """
    A curated collection of assets.

    Attributes:
        key: Caller-chosen unique key
        name: Display name
        description: Free-text description
        curator: Identity that created the gallery (immutable)
        is_active: Galleries are never deactivated
        artwork_ids: Member asset ids in insertion order
        created_at: Timestamp of creation
    """
    key: str
    name: str
    description: str
    curator: str
    is_active: bool = True
    artwork_ids: List[int] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "curator": self.curator,
            "is_active": self.is_active,
            "artwork_ids": list(self.artwork_ids),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Gallery":
        return cls(
            key=data["key"],
            name=data["name"],
            description=data.get("description", ""),
            curator=data["curator"],
            is_active=data.get("is_active", True),
            artwork_ids=list(data.get("artwork_ids", [])),
            created_at=data.get("created_at", time.time()),
        )


class GalleryDirectory:
    """
    Owner of all Gallery records and the per-curator gallery index.

    Returned galleries are copies; mutation goes through the directory.
    """

    def __init__(self):
        self._galleries: Dict[str, Gallery] = {}
        self._by_curator: Dict[str, List[str]] = {}

    def create(
        self,
        key: str,
        name: str,
        description: str,
        curator: str,
        created_at: Optional[float] = None,
    ) -> Gallery:
        """
        Create a gallery.

        Raises:
            InvalidArgument: key or name is empty
            AlreadyExists: key has been used before
        """
        if not key:
            raise InvalidArgument("Gallery key cannot be empty")
        if not name:
            raise InvalidArgument("Gallery name cannot be empty")
        if key in self._galleries:
            raise AlreadyExists(f"Gallery ID already exists: {key}")

        gallery = Gallery(
            key=key,
            name=name,
            description=description or "",
            curator=curator,
        )
        if created_at is not None:
            gallery.created_at = created_at

        self._galleries[key] = gallery
        self._by_curator.setdefault(curator, []).append(key)
        logger.debug(f"Gallery created: {key} (curator {curator})")
        return replace(gallery, artwork_ids=list(gallery.artwork_ids))

    def _require(self, key: str) -> Gallery:
        gallery = self._galleries.get(key)
        if gallery is None or not gallery.is_active:
            raise NotFound(f"Gallery not found: {key}")
        return gallery

    def get(self, key: str) -> Gallery:
        gallery = self._require(key)
        return replace(gallery, artwork_ids=list(gallery.artwork_ids))

    def is_active(self, key: str) -> bool:
        gallery = self._galleries.get(key)
        return gallery is not None and gallery.is_active

    def artworks(self, key: str) -> List[int]:
        """Member asset ids in insertion order."""
        return list(self._require(key).artwork_ids)

    def add_artwork(self, key: str, asset_id: int) -> None:
        self._require(key).artwork_ids.append(asset_id)

    def by_curator(self, curator: str) -> List[str]:
        """Keys of the galleries a curator created, oldest first."""
        return list(self._by_curator.get(curator, []))

    def list(self) -> List[Gallery]:
        return [self.get(key) for key in self._galleries]

    def snapshot(self) -> Dict[str, Any]:
        return {
            "galleries": copy.deepcopy(self._galleries),
            "by_curator": copy.deepcopy(self._by_curator),
        }

    def restore(self, state: Dict[str, Any]) -> None:
        self._galleries = state["galleries"]
        self._by_curator = state["by_curator"]

    def __contains__(self, key: str) -> bool:
        return key in self._galleries

    def __len__(self) -> int:
        return len(self._galleries)

    def __iter__(self):
        return iter(self.list())
