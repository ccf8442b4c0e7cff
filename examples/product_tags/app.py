"""Product tags projector and producer wiring.

Usage::

    from examples.product_tags.app import ExampleSettings, run_projector, seed_events

    settings = ExampleSettings(eventstore_url="sqlite:///events.db",
                               projection_url="sqlite:///projections.db")
    seed_events(settings)
    run_projector(settings)

``run_projector`` resumes from the saved checkpoint, so running it again
after new events are appended projects only the new ones.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from esprojector.foundation.domain import DeadlineExceededError, RunContext
from esprojector.infra.eventsourcing import (
    ProjectionWorker,
    ProjectorSettings,
    SqlEventSource,
    SqlEventStore,
)
from esprojector.infra.observability import configure_logging, get_logger, structlog_sink

from .domain import SAMPLE_EVENTS, TAG_ADDED, TAG_REMOVED
from .projection import ProductTagsProjection
from .repository import ProductTagsRepository

if TYPE_CHECKING:
    from esprojector.foundation.domain import LogSink

logger = logging.getLogger(__name__)


class ExampleSettings(BaseSettings):
    """Connection settings for the product tags example.

    Environment Variables:
        EVENTSTORE_URL: SQLAlchemy URL of the event store database
        PROJECTION_URL: SQLAlchemy URL of the projection database
        PROJECTOR_TIMEOUT: Seconds to run before stopping (0 = until cancelled)
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    eventstore_url: str = Field(default="sqlite:///eventstore.db", alias="EVENTSTORE_URL")
    projection_url: str = Field(default="sqlite:///projections.db", alias="PROJECTION_URL")
    timeout: float = Field(default=0.0, ge=0.0, alias="PROJECTOR_TIMEOUT")


def seed_events(settings: ExampleSettings | None = None) -> int:
    """Create the events table and append the sample history.

    Returns:
        Number of events appended.
    """
    if settings is None:
        settings = ExampleSettings()
    engine = create_engine(settings.eventstore_url)
    try:
        store = SqlEventStore(sessionmaker(engine))
        store.create_table()
        appended = 0
        for stream_id, events in SAMPLE_EVENTS:
            appended += len(store.append(stream_id, events))
    finally:
        engine.dispose()
    logger.info("Seeded %d sample events", appended)
    return appended


def build_worker(
    source: SqlEventSource,
    repository: ProductTagsRepository,
    projector_settings: ProjectorSettings | None = None,
    log_sink: LogSink | None = None,
) -> ProjectionWorker:
    """Wire a worker that resumes from the repository's checkpoint."""
    start = repository.load_cursor()
    logger.info("Starting projection from cursor %r", start)
    return ProjectionWorker.from_settings(
        source,
        ProductTagsProjection(repository),
        projector_settings,
        start=start,
        log_sink=log_sink,
    )


def run_projector(
    settings: ExampleSettings | None = None,
    projector_settings: ProjectorSettings | None = None,
    ctx: RunContext | None = None,
) -> int:
    """Run the product tags projector until it stops.

    Stopping on the configured timeout is a normal exit.

    Returns:
        Batches processed (0 when stopped by the timeout).
    """
    if settings is None:
        settings = ExampleSettings()
    if ctx is None:
        ctx = (
            RunContext.with_timeout(settings.timeout)
            if settings.timeout > 0
            else RunContext.background()
        )

    eventstore_engine = create_engine(settings.eventstore_url)
    projection_engine = create_engine(settings.projection_url)
    try:
        source = SqlEventSource(
            sessionmaker(eventstore_engine),
            event_types=(TAG_ADDED, TAG_REMOVED),
        )
        repository = ProductTagsRepository(sessionmaker(projection_engine))
        repository.create_tables()

        worker = build_worker(source, repository, projector_settings, structlog_sink())
        processed = worker.run(ctx)
    except DeadlineExceededError:
        logger.info("Projector stopped after %ss timeout", settings.timeout)
        return 0
    finally:
        eventstore_engine.dispose()
        projection_engine.dispose()
    logger.info("Projection completed, %d batch(es) processed", processed)
    return processed


def main() -> None:
    configure_logging()
    log = get_logger(__name__)
    settings = ExampleSettings()
    log.info("product_tags_projector_starting", timeout=settings.timeout)
    run_projector(settings)


if __name__ == "__main__":
    main()
