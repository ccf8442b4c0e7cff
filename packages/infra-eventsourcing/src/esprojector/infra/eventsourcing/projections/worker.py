"""Polling projection worker: fetch, apply, commit, advance.

``ProjectionWorker`` drives a cursor forward through an event source and
hands every non-empty batch to caller-supplied apply logic. The apply
function owns the read model *and* the checkpoint; the worker only keeps
its own in-memory cursor for the duration of one ``run()``.

Loop, repeated until termination::

    ctx done?            -> raise ctx.err()
    max_batches reached? -> return
    fetch(cursor)        -> empty: wait idle_sleep (or ctx), loop
    apply(batch, next)
    commit(next)
    cursor = next

Nothing is retried. Any exception from fetch, apply or commit ends the run
and is re-raised unchanged; the caller decides whether to restart,
normally from the checkpoint its apply function persisted. Delivery is
at-least-once: a batch applied but not committed (or not checkpointed) is
delivered again on the next run, so apply must be idempotent.

Example::

    from esprojector.foundation.domain import RunContext
    from esprojector.infra.eventsourcing import InMemoryEventSource, ProjectionWorker

    def apply(ctx, batch, next_cursor):
        with db.transaction():
            project(batch)
            save_checkpoint(next_cursor)

    worker = ProjectionWorker(source=InMemoryEventSource(), apply=apply, start=load_checkpoint())
    with RunContext.background() as ctx:
        handle = worker.run_in_thread(ctx)
        ...
        handle.stop()

See Also:
    - :mod:`esprojector.foundation.domain.ports` -- ``EventSourcePort``, ``ApplyFunc``
    - :mod:`esprojector.infra.eventsourcing.settings` -- ``ProjectorSettings``
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from esprojector.foundation.domain import (
    BEGINNING,
    ContextError,
    RunContext,
    WorkerConfigurationError,
)
from esprojector.infra.eventsourcing.settings import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_IDLE_SLEEP,
    ProjectorSettings,
)

if TYPE_CHECKING:
    from esprojector.foundation.domain import ApplyFunc, Cursor, EventSourcePort, LogSink

logger = logging.getLogger(__name__)


class ProjectionWorker:
    """Runs the fetch/apply/commit loop over one event source.

    Configuration is fixed at construction; a worker may be run any number
    of times, and each ``run()`` starts again from ``start``. Concurrent runs
    of one worker, or several workers over one source, are not coordinated.

    Attributes:
        _source: Event source to fetch from and commit to.
        _apply: Caller projection + checkpoint function.
        _start: Initial cursor, used verbatim.
        _batch_size: Configured batch size (non-positive means default).
        _idle_sleep: Configured idle sleep in seconds (non-positive means default).
        _max_batches: Non-empty batches per run before stopping (0 = unlimited).
        _log_sink: Optional diagnostic sink ``sink(msg, **kv)``.
    """

    def __init__(
        self,
        source: EventSourcePort | None,
        apply: ApplyFunc | None,
        *,
        start: Cursor = BEGINNING,
        batch_size: int = DEFAULT_BATCH_SIZE,
        idle_sleep: float = DEFAULT_IDLE_SLEEP,
        max_batches: int = 0,
        log_sink: LogSink | None = None,
    ) -> None:
        """Initialise the worker.

        Args:
            source: Event source. Required by ``run()``.
            apply: ``apply(ctx, batch, next_cursor)``. Required by ``run()``.
            start: Cursor to start from, typically loaded from the caller's
                checkpoint store. ``b""`` means the beginning of the stream.
            batch_size: Max envelopes per fetch; values <= 0 mean 512.
            idle_sleep: Seconds to wait after an empty fetch; values <= 0
                mean 0.2.
            max_batches: Stop with success after this many non-empty batches;
                values <= 0 mean unlimited.
            log_sink: Optional non-blocking diagnostic sink.
        """
        self._source = source
        self._apply = apply
        self._start = start
        self._batch_size = batch_size
        self._idle_sleep = idle_sleep
        self._max_batches = max_batches
        self._log_sink = log_sink

    @classmethod
    def from_settings(
        cls,
        source: EventSourcePort | None,
        apply: ApplyFunc | None,
        settings: ProjectorSettings | None = None,
        *,
        start: Cursor = BEGINNING,
        log_sink: LogSink | None = None,
    ) -> ProjectionWorker:
        """Build a worker from ``ProjectorSettings``.

        Args:
            source: Event source.
            apply: Caller projection function.
            settings: Worker settings. If ``None``, loaded from
                ``PROJECTOR_*`` environment variables.
            start: Initial cursor.
            log_sink: Optional diagnostic sink.
        """
        if settings is None:
            settings = ProjectorSettings()
        return cls(
            source,
            apply,
            start=start,
            batch_size=settings.batch_size,
            idle_sleep=settings.idle_sleep,
            max_batches=settings.max_batches,
            log_sink=log_sink,
        )

    @property
    def start(self) -> Cursor:
        return self._start

    @property
    def batch_size(self) -> int:
        """Effective batch size passed to ``fetch``."""
        return self._batch_size if self._batch_size > 0 else DEFAULT_BATCH_SIZE

    @property
    def idle_sleep(self) -> float:
        """Effective idle wait in seconds."""
        return self._idle_sleep if self._idle_sleep > 0 else DEFAULT_IDLE_SLEEP

    @property
    def max_batches(self) -> int:
        """Batch cap per run; 0 when unlimited."""
        return max(self._max_batches, 0)

    def run(self, ctx: RunContext) -> int:
        """Pull, apply and commit batches until stopped.

        Args:
            ctx: Run context. Cancel it (or let its deadline pass) to stop
                the worker at the next loop boundary or idle wait.

        Returns:
            Number of batches processed. Only returned when ``max_batches``
            is reached.

        Raises:
            WorkerConfigurationError: If ``source`` or ``apply`` is missing.
            CancelledError: If ``ctx`` was cancelled.
            DeadlineExceededError: If ``ctx`` passed its deadline.
            Exception: Whatever ``fetch``, ``apply`` or ``commit`` raised,
                re-raised unchanged.
        """
        source = self._source
        apply = self._apply
        if source is None:
            raise WorkerConfigurationError("source", "an event source is required")
        if apply is None:
            raise WorkerConfigurationError("apply", "an apply function is required")

        batch_size = self.batch_size
        idle_sleep = self.idle_sleep
        max_batches = self.max_batches

        cursor = self._start
        batch_count = 0

        self._log(
            "runner starting",
            batch_size=batch_size,
            idle_sleep=idle_sleep,
            max_batches=max_batches,
        )

        while True:
            err = ctx.err()
            if err is not None:
                self._log("runner stopped due to context cancellation", error=err)
                raise err

            if max_batches > 0 and batch_count >= max_batches:
                self._log(
                    "runner stopped after reaching max_batches",
                    max_batches=max_batches,
                    processed=batch_count,
                )
                return batch_count

            try:
                batch, next_cursor = source.fetch(ctx, cursor, batch_size)
            except Exception as exc:
                self._log("fetch error", error=exc)
                raise

            if not batch:
                self._log("no events fetched, sleeping", idle_sleep=idle_sleep)
                if ctx.wait(idle_sleep):
                    self._log("runner stopped due to context cancellation during idle sleep")
                    raise _context_error(ctx)
                continue

            self._log("fetched batch", event_count=len(batch))

            try:
                apply(ctx, batch, next_cursor)
            except Exception as exc:
                self._log("apply error", error=exc, event_count=len(batch))
                raise

            self._log("applied batch successfully", event_count=len(batch))

            try:
                source.commit(ctx, next_cursor)
            except Exception as exc:
                self._log("commit error", error=exc)
                raise

            cursor = next_cursor
            batch_count += 1

            self._log("batch processed", batch_count=batch_count, cursor_advanced=True)

    def run_in_thread(
        self,
        ctx: RunContext | None = None,
        *,
        name: str = "projection-worker",
    ) -> WorkerHandle:
        """Start ``run()`` on a daemon thread.

        The thread runs under a child of ``ctx`` (or a fresh background
        context), so ``WorkerHandle.stop()`` never cancels the caller's
        context.

        Args:
            ctx: Optional parent context.
            name: Thread name.

        Returns:
            Handle to stop, join and collect the outcome of the run.
        """
        run_ctx = ctx.child() if ctx is not None else RunContext.background()
        handle = WorkerHandle(self, run_ctx, name)
        handle._thread.start()
        logger.info("Projection worker thread %r started", name)
        return handle

    def _log(self, msg: str, **kv: Any) -> None:
        sink = self._log_sink
        if sink is None:
            return
        try:
            sink(msg, **kv)
        except Exception:
            logger.exception("Projection worker log sink failed for %r", msg)


class WorkerHandle:
    """Handle on a worker running in a background thread.

    Attributes:
        _ctx: Context the background run observes.
        _thread: The worker thread.
        _result: Batch count once the run returned normally.
        _error: Exception the run ended with, if any.
    """

    def __init__(self, worker: ProjectionWorker, ctx: RunContext, name: str) -> None:
        self._worker = worker
        self._ctx = ctx
        self._result = 0
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._target, name=name, daemon=True)

    def _target(self) -> None:
        try:
            self._result = self._worker.run(self._ctx)
        except ContextError as exc:
            self._error = exc
            logger.info("Projection worker stopped: %s", exc)
        except Exception as exc:
            self._error = exc
            logger.exception("Projection worker failed")

    @property
    def context(self) -> RunContext:
        return self._ctx

    @property
    def is_running(self) -> bool:
        """``True`` while the worker thread is alive."""
        return self._thread.is_alive()

    def stop(self, timeout: float | None = None) -> bool:
        """Cancel the run and wait for the thread to finish.

        Args:
            timeout: Max seconds to wait for the thread.

        Returns:
            ``True`` if the thread finished within ``timeout``.
        """
        self._ctx.cancel()
        finished = self.join(timeout)
        if not finished:
            logger.warning(
                "Projection worker thread %r did not stop within %ss",
                self._thread.name,
                timeout,
            )
        return finished

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread; return ``True`` if it has finished."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def result(self, timeout: float | None = None) -> int:
        """Wait for the run and return its batch count.

        Raises:
            TimeoutError: If the run is still going after ``timeout``.
            Exception: The exception the run ended with, unchanged.
        """
        if not self.join(timeout):
            msg = f"Projection worker thread {self._thread.name!r} still running"
            raise TimeoutError(msg)
        if self._error is not None:
            raise self._error
        return self._result


def _context_error(ctx: RunContext) -> ContextError:
    err = ctx.err()
    if err is None:
        msg = "context reported done without an error"
        raise RuntimeError(msg)
    return err
