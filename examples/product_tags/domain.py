"""Product tag events and their JSON payloads.

Events are appended to one stream per product (stream id = product id).
Payloads are JSON documents validated with Pydantic on both sides.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from esprojector.infra.eventsourcing import PendingEvent

TAG_ADDED = "product.tag_added"
TAG_REMOVED = "product.tag_removed"


class TagAdded(BaseModel):
    """A user tagged a product."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    tag: str
    user_id: str


class TagRemoved(BaseModel):
    """A user removed a tag from a product."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    tag: str
    user_id: str


def tag_added(
    product_id: str,
    tag: str,
    user_id: str,
    metadata: dict[str, str] | None = None,
) -> PendingEvent:
    """Build a ``product.tag_added`` event ready to append."""
    payload = TagAdded(product_id=product_id, tag=tag, user_id=user_id)
    return PendingEvent(
        type=TAG_ADDED,
        data=payload.model_dump_json().encode(),
        metadata=metadata or {},
    )


def tag_removed(
    product_id: str,
    tag: str,
    user_id: str,
    metadata: dict[str, str] | None = None,
) -> PendingEvent:
    """Build a ``product.tag_removed`` event ready to append."""
    payload = TagRemoved(product_id=product_id, tag=tag, user_id=user_id)
    return PendingEvent(
        type=TAG_REMOVED,
        data=payload.model_dump_json().encode(),
        metadata=metadata or {},
    )


# Seed history: (stream id, events) in append order.
SAMPLE_EVENTS: list[tuple[str, list[PendingEvent]]] = [
    (
        "product-123",
        [
            tag_added("product-123", "electronics", "user-1", {"source": "product-service"}),
            tag_added("product-123", "mobile", "user-1", {"source": "product-service"}),
        ],
    ),
    (
        "product-456",
        [
            tag_added("product-456", "books", "user-2", {"source": "product-service"}),
            tag_added("product-456", "fiction", "user-2", {"source": "product-service"}),
        ],
    ),
    (
        "product-123",
        [tag_removed("product-123", "mobile", "user-1", {"source": "product-service"})],
    ),
    (
        "product-789",
        [
            tag_added("product-789", "electronics", "user-3", {"source": "product-service"}),
            tag_added("product-789", "computers", "user-3", {"source": "product-service"}),
        ],
    ),
]
