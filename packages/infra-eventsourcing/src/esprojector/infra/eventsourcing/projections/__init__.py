"""Projection workers that drive read models from an event source.

Provides the polling ``ProjectionWorker`` and the ``WorkerHandle`` returned
when a worker runs on a background thread.
"""

from esprojector.infra.eventsourcing.projections.worker import ProjectionWorker, WorkerHandle

__all__ = ["ProjectionWorker", "WorkerHandle"]
