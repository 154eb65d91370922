"""
Bulk orchestration.

Splits a list of work items into batches and runs an async processor over
them with bounded concurrency, progress reporting and per-item error
collection.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sportsfetch.batch.progress import BatchJob, BulkProgress
from sportsfetch.errors import BatchItemError, OperationCancelledError, ValidationError
from sportsfetch.telemetry.logger import get_logger, log_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Iterator, Sequence

    from sportsfetch.cancel import CancelReason, CancelToken
    from sportsfetch.telemetry.metrics import MetricsCollector

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

MAX_RECOMMENDED_CONCURRENCY = 20


class BatchDistribution(str, Enum):
    """What the concurrency limit applies to."""

    ITEMS = "items"
    BATCHES = "batches"


@dataclass
class BulkOptions:
    """Options for a bulk run.

    Attributes:
        batch_size: Items per batch
        max_concurrency: Concurrent items (ITEMS) or batches (BATCHES)
        continue_on_error: Collect failures instead of aborting
        distribution: Concurrency mode
        progress_interval: Minimum seconds between per-item progress events
    """

    batch_size: int = 10
    max_concurrency: int = 5
    continue_on_error: bool = True
    distribution: BatchDistribution = BatchDistribution.ITEMS
    progress_interval: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.distribution, str):
            self.distribution = BatchDistribution(self.distribution.lower())

    def validate(self) -> None:
        """Validate options.

        Raises:
            ValidationError: If a size or limit is not positive
        """
        if self.batch_size <= 0:
            raise ValidationError(
                "batch_size must be greater than 0",
                field="batch_size",
                actual=self.batch_size,
            )
        if self.max_concurrency <= 0:
            raise ValidationError(
                "max_concurrency must be greater than 0",
                field="max_concurrency",
                actual=self.max_concurrency,
            )
        if self.progress_interval < 0:
            raise ValidationError(
                "progress_interval must not be negative",
                field="progress_interval",
                actual=self.progress_interval,
            )
        if self.max_concurrency > MAX_RECOMMENDED_CONCURRENCY:
            logger.warning(
                "High bulk concurrency may trip upstream rate limits",
                max_concurrency=self.max_concurrency,
                recommended=MAX_RECOMMENDED_CONCURRENCY,
            )

    def with_overrides(self, **overrides: Any) -> BulkOptions:
        """Copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def iter_batches(items: Sequence[T], batch_size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``batch_size``; the last may be short."""
    if batch_size <= 0:
        raise ValueError("batch_size must be greater than 0")
    for start in range(0, len(items), batch_size):
        yield list(items[start : start + batch_size])


@dataclass
class BatchResult(Generic[R]):
    """Result of a bulk run.

    Attributes:
        results: Successful results in completion order
        errors: One BatchItemError per failed item
        batch_sizes: Size of each batch the input was split into
        progress: Final progress snapshot
        total_time: Wall-clock seconds
    """

    results: list[R] = field(default_factory=list)
    errors: list[BatchItemError] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)
    progress: BulkProgress | None = None
    total_time: float = 0.0

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def failure_count(self) -> int:
        return len(self.errors)

    @property
    def all_succeeded(self) -> bool:
        return not self.errors


class _Run(Generic[T, R]):
    """State shared by the tasks of one process_in_batches call."""

    def __init__(
        self,
        processor: Callable[[T], Awaitable[R]],
        options: BulkOptions,
        job: BatchJob,
        result: BatchResult[R],
        on_progress: Callable[[BulkProgress], None] | None,
        cancel_token: CancelToken | None,
    ) -> None:
        self.processor = processor
        self.options = options
        self.job = job
        self.result = result
        self.on_progress = on_progress
        self.cancel_token = cancel_token
        self.semaphore = asyncio.Semaphore(options.max_concurrency)
        self.tasks: set[asyncio.Task[None]] = set()
        self.failure: BaseException | None = None
        self._last_emit = 0.0

    @property
    def aborted(self) -> bool:
        return self.failure is not None

    def abort(self, error: BaseException) -> None:
        """Record the first abort cause and cancel every other task."""
        if self.failure is None:
            self.failure = error
        current = asyncio.current_task()
        for task in self.tasks:
            if task is not current and not task.done():
                task.cancel()

    def on_token_cancelled(self, reason: CancelReason) -> None:
        self.abort(OperationCancelledError(reason=reason.value))

    def spawn(self, coro: Awaitable[None]) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def emit(self, force: bool = False) -> None:
        if self.on_progress is None:
            return
        now = time.monotonic()
        if not force and now - self._last_emit < self.options.progress_interval:
            return
        self._last_emit = now
        try:
            self.on_progress(self.job.snapshot())
        except Exception:
            logger.exception(
                "Progress callback failed", operation_id=self.job.operation_id
            )

    async def run_item(self, index: int, item: T) -> None:
        if self.aborted:
            return
        try:
            value = await self.processor(item)
        except OperationCancelledError as exc:
            if self.cancel_token is not None and self.cancel_token.is_cancelled:
                raise
            self._record_failure(index, item, exc)
        except Exception as exc:
            self._record_failure(index, item, exc)
        else:
            self.result.results.append(value)
            self.job.record_success(item)
            self.emit()

    async def run_item_bounded(self, index: int, item: T) -> None:
        async with self.semaphore:
            await self.run_item(index, item)

    async def run_batch(self, batch: list[tuple[int, T]]) -> None:
        async with self.semaphore:
            for index, item in batch:
                if self.aborted:
                    return
                await self.run_item(index, item)
        if not self.aborted:
            self.emit(force=True)

    def _record_failure(self, index: int, item: T, exc: BaseException) -> None:
        message = f"Failed to process item {item!r}: {exc}"
        self.job.record_failure(item, message)
        self.result.errors.append(
            BatchItemError(message, index=index, item=item, cause=exc)
        )
        logger.warning(
            "Bulk item failed",
            operation_id=self.job.operation_id,
            index=index,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        self.emit()
        if not self.options.continue_on_error:
            self.abort(exc)


class BulkOrchestrator:
    """Runs an async processor over many items in batches.

    Example:
        >>> orchestrator = BulkOrchestrator(BulkOptions(batch_size=10))
        >>> result = await orchestrator.process_in_batches(game_ids, fetch_box_score)
        >>> print(result.success_count, result.batch_sizes)
    """

    def __init__(
        self,
        options: BulkOptions | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._options = options or BulkOptions()
        self._options.validate()
        self._metrics = metrics

    @property
    def options(self) -> BulkOptions:
        return self._options

    async def process_in_batches(
        self,
        items: Iterable[T],
        processor: Callable[[T], Awaitable[R]],
        *,
        batch_size: int | None = None,
        max_concurrency: int | None = None,
        continue_on_error: bool | None = None,
        distribution: BatchDistribution | str | None = None,
        on_progress: Callable[[BulkProgress], None] | None = None,
        cancel_token: CancelToken | None = None,
        operation_type: str = "bulk",
    ) -> BatchResult[R]:
        """Process ``items`` with ``processor``.

        Args:
            items: Work items
            processor: Async callable applied to each item
            batch_size: Override for options.batch_size
            max_concurrency: Override for options.max_concurrency
            continue_on_error: Override for options.continue_on_error
            distribution: Override for options.distribution
            on_progress: Called with a BulkProgress after each item, after
                each batch and once more when the run completes
            cancel_token: Token that aborts outstanding work
            operation_type: Label used in progress, logs and metrics

        Returns:
            BatchResult with results, errors and the final progress

        Raises:
            ValidationError: If the effective options are invalid
            OperationCancelledError: If the token is cancelled
            Exception: The first item error when continue_on_error is False
        """
        options = self._options.with_overrides(
            batch_size=batch_size,
            max_concurrency=max_concurrency,
            continue_on_error=continue_on_error,
            distribution=distribution,
        )
        options.validate()

        indexed = list(enumerate(items))
        batches = list(iter_batches(indexed, options.batch_size))
        job = BatchJob(total_items=len(indexed), operation_type=operation_type)
        result: BatchResult[R] = BatchResult(batch_sizes=[len(b) for b in batches])
        run = _Run(processor, options, job, result, on_progress, cancel_token)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
            cancel_token.on_cancel(run.on_token_cancelled)

        with log_context(operation_id=job.operation_id):
            logger.info(
                "Bulk operation started",
                operation_type=operation_type,
                total_items=job.total_items,
                batches=len(batches),
                distribution=options.distribution.value,
            )
            try:
                if options.distribution == BatchDistribution.BATCHES:
                    await self._run_batches_concurrently(run, batches)
                else:
                    await self._run_items_concurrently(run, batches)
            finally:
                if cancel_token is not None:
                    cancel_token.remove_callback(run.on_token_cancelled)
                result.total_time = job.elapsed
                if self._metrics is not None:
                    self._metrics.record_bulk_operation(
                        operation_type,
                        items_processed=job.completed_items + job.failed_items,
                        duration=result.total_time,
                        error_count=job.failed_items,
                    )

            if run.failure is not None:
                logger.warning(
                    "Bulk operation aborted",
                    operation_type=operation_type,
                    completed_items=job.completed_items,
                    failed_items=job.failed_items,
                    error_type=type(run.failure).__name__,
                )
                raise run.failure

            job.complete()
            result.progress = job.snapshot()
            run.emit(force=True)
            logger.info(
                "Bulk operation completed",
                operation_type=operation_type,
                completed_items=job.completed_items,
                failed_items=job.failed_items,
                total_time=round(result.total_time, 3),
            )
        return result

    async def _run_items_concurrently(
        self, run: _Run[T, R], batches: list[list[tuple[int, T]]]
    ) -> None:
        for batch in batches:
            if run.aborted:
                return
            tasks = [run.spawn(run.run_item_bounded(i, item)) for i, item in batch]
            await asyncio.gather(*tasks, return_exceptions=True)
            if not run.aborted:
                run.emit(force=True)

    async def _run_batches_concurrently(
        self, run: _Run[T, R], batches: list[list[tuple[int, T]]]
    ) -> None:
        tasks = [run.spawn(run.run_batch(batch)) for batch in batches]
        await asyncio.gather(*tasks, return_exceptions=True)
