"""Apply function for the product tags projection.

Each batch is projected and its ``next_cursor`` saved in a single
transaction, so a crash leaves either both or neither. Inserts ignore
existing rows and deletes of missing rows are no-ops, which makes
re-delivered batches harmless.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .domain import TAG_ADDED, TAG_REMOVED, TagAdded, TagRemoved

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session

    from esprojector.foundation.domain import Cursor, Envelope, RunContext

    from .repository import ProductTagsRepository

logger = logging.getLogger(__name__)


class ProductTagsProjection:
    """Projects product tag events into the product_tags table.

    Instances are callable with the worker's ``apply(ctx, batch, next_cursor)``
    signature.
    """

    def __init__(self, repository: ProductTagsRepository) -> None:
        self._repository = repository

    def __call__(self, ctx: RunContext, batch: Sequence[Envelope], next_cursor: Cursor) -> None:
        repository = self._repository
        with repository.session_factory() as session, session.begin():
            for envelope in batch:
                self._project(session, envelope)
            repository.save_cursor(session, next_cursor)
        logger.info("Projected %d event(s), checkpoint %r", len(batch), next_cursor)

    def _project(self, session: Session, envelope: Envelope) -> None:
        repository = self._repository
        if envelope.type == TAG_ADDED:
            added = TagAdded.model_validate_json(envelope.data)
            if repository.add_tag(session, added.product_id, added.tag, added.user_id):
                logger.debug("Added tag %r to product %s", added.tag, added.product_id)
        elif envelope.type == TAG_REMOVED:
            removed = TagRemoved.model_validate_json(envelope.data)
            if repository.remove_tag(session, removed.product_id, removed.tag):
                logger.debug("Removed tag %r from product %s", removed.tag, removed.product_id)
            else:
                logger.warning(
                    "No tag %r found for product %s to remove", removed.tag, removed.product_id
                )
        else:
            logger.info("Skipping unknown event type: %s", envelope.type)
