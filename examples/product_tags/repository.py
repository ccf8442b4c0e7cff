"""Repository for the product_tags read model and its checkpoint.

Write methods take an open ``Session`` so the projection can put tag
changes and the checkpoint in one transaction. Read methods open their own
session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    LargeBinary,
    MetaData,
    Table,
    Text,
    func,
    text,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

    from esprojector.foundation.domain import Cursor

logger = logging.getLogger(__name__)

metadata = MetaData()

product_tags = Table(
    "product_tags",
    metadata,
    Column("product_id", Text, primary_key=True),
    Column("tag", Text, primary_key=True),
    Column("added_by", Text, nullable=False),
    Column("added_at", DateTime, nullable=False, server_default=func.now()),
    Index("idx_product_tags_tag", "tag"),
)

projection_checkpoints = Table(
    "projection_checkpoints",
    metadata,
    Column("projection_name", Text, primary_key=True),
    Column("cursor_value", LargeBinary, nullable=False),
    Column("updated_at", DateTime, nullable=False, server_default=func.now()),
)


class ProductTagsRepository:
    """Reads and writes the product_tags projection tables.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
        projection_name: Checkpoint row key.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        projection_name: str = "product_tags",
    ) -> None:
        self._session_factory = session_factory
        self._projection_name = projection_name

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory

    def create_tables(self) -> None:
        """Create projection tables if missing (use migrations in production)."""
        with self._session_factory() as session:
            metadata.create_all(session.connection(), checkfirst=True)
            session.commit()

    # -- Write methods (inside the projection transaction) --

    def add_tag(self, session: Session, product_id: str, tag: str, user_id: str) -> bool:
        """Insert a tag; an existing (product_id, tag) row is left alone.

        Returns:
            ``True`` if a row was inserted.
        """
        result = session.execute(
            text("""
                INSERT INTO product_tags (product_id, tag, added_by, added_at)
                VALUES (:product_id, :tag, :user_id, CURRENT_TIMESTAMP)
                ON CONFLICT (product_id, tag) DO NOTHING
            """),
            {"product_id": product_id, "tag": tag, "user_id": user_id},
        )
        return bool(result.rowcount)

    def remove_tag(self, session: Session, product_id: str, tag: str) -> bool:
        """Delete a tag.

        Returns:
            ``True`` if a row was deleted.
        """
        result = session.execute(
            text("DELETE FROM product_tags WHERE product_id = :product_id AND tag = :tag"),
            {"product_id": product_id, "tag": tag},
        )
        return bool(result.rowcount)

    def save_cursor(self, session: Session, cursor: Cursor) -> None:
        """UPSERT the checkpoint row."""
        session.execute(
            text("""
                INSERT INTO projection_checkpoints (projection_name, cursor_value, updated_at)
                VALUES (:name, :cursor, CURRENT_TIMESTAMP)
                ON CONFLICT (projection_name) DO UPDATE SET
                    cursor_value = EXCLUDED.cursor_value,
                    updated_at = CURRENT_TIMESTAMP
            """),
            {"name": self._projection_name, "cursor": bytes(cursor)},
        )

    # -- Read methods --

    def load_cursor(self) -> Cursor:
        """Return the saved checkpoint, or ``b""`` when there is none."""
        with self._session_factory() as session:
            value = session.execute(
                text("SELECT cursor_value FROM projection_checkpoints WHERE projection_name = :name"),
                {"name": self._projection_name},
            ).scalar_one_or_none()
        if value is None:
            logger.info("No checkpoint found for %s, starting from beginning", self._projection_name)
            return b""
        return bytes(value)

    def tags_for(self, product_id: str) -> list[str]:
        """Tags currently on ``product_id``, sorted."""
        with self._session_factory() as session:
            rows = session.execute(
                text("SELECT tag FROM product_tags WHERE product_id = :product_id ORDER BY tag"),
                {"product_id": product_id},
            ).fetchall()
        return [row.tag for row in rows]

    def products_with_tag(self, tag: str) -> list[str]:
        """Products currently carrying ``tag``, sorted."""
        with self._session_factory() as session:
            rows = session.execute(
                text("SELECT product_id FROM product_tags WHERE tag = :tag ORDER BY product_id"),
                {"tag": tag},
            ).fetchall()
        return [row.product_id for row in rows]

    def truncate(self) -> None:
        """Clear the read model and checkpoint for a rebuild."""
        with self._session_factory() as session:
            session.execute(text("DELETE FROM product_tags"))
            session.execute(
                text("DELETE FROM projection_checkpoints WHERE projection_name = :name"),
                {"name": self._projection_name},
            )
            session.commit()
