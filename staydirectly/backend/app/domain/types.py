# app/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ItemState(str, Enum):
    """
    Pending -> Fetched -> Mapped -> Created|Updated -> [ImagesPending -> ImagesStored|ImagesSkipped]
    Any stage may end in Failed without touching sibling items.
    """

    pending = "pending"
    fetched = "fetched"
    mapped = "mapped"
    created = "created"
    updated = "updated"
    images_pending = "images_pending"
    images_stored = "images_stored"
    images_skipped = "images_skipped"
    failed = "failed"


@dataclass
class ItemReport:
    listing_id: str | None
    state: ItemState = ItemState.pending
    history: list[ItemState] = field(default_factory=lambda: [ItemState.pending])
    property_id: int | None = None
    image_count: int = 0
    error: str | None = None

    def advance(self, state: ItemState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, err: Exception | str) -> None:
        self.error = err if isinstance(err, str) else f"{type(err).__name__}: {err}"
        self.advance(ItemState.failed)

    def snapshot(self) -> dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "state": self.state.value,
            "property_id": self.property_id,
            "image_count": self.image_count,
            "error": self.error,
        }
