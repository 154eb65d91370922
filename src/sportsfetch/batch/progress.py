"""
Progress tracking for bulk operations.

BatchJob is the mutable aggregate a bulk run updates as items finish;
BulkProgress is the frozen snapshot handed to progress callbacks.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any


def estimate_time_remaining(total: int, completed: int, elapsed: float) -> float:
    """Estimate seconds left from the average time per completed item.

    Returns 0 when nothing has completed yet or everything has.
    """
    if completed <= 0 or total <= completed:
        return 0.0
    return (elapsed / completed) * (total - completed)


@dataclass(frozen=True)
class BulkProgress:
    """Snapshot of a bulk run.

    Attributes:
        operation_id: Identifier of the run
        operation_type: Caller-supplied label
        total_items: Items submitted
        completed_items: Items that succeeded
        failed_items: Items that failed
        error_messages: Failure messages in the order they occurred
        is_completed: True on the final event
        current_item: Most recently finished item
        elapsed: Seconds since the run started
        estimated_time_remaining: Seconds, see estimate_time_remaining()
    """

    operation_id: str
    operation_type: str
    total_items: int
    completed_items: int
    failed_items: int
    error_messages: tuple[str, ...]
    is_completed: bool
    current_item: Any = None
    elapsed: float = 0.0
    estimated_time_remaining: float = 0.0

    @property
    def processed_items(self) -> int:
        return self.completed_items + self.failed_items

    @property
    def percentage_complete(self) -> float:
        if self.total_items == 0:
            return 100.0 if self.is_completed else 0.0
        return self.processed_items / self.total_items * 100

    @property
    def items_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.processed_items / self.elapsed

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "operation_type": self.operation_type,
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "failed_items": self.failed_items,
            "error_messages": list(self.error_messages),
            "is_completed": self.is_completed,
            "percentage_complete": self.percentage_complete,
            "elapsed": self.elapsed,
            "estimated_time_remaining": self.estimated_time_remaining,
        }


@dataclass
class BatchJob:
    """Mutable aggregate for one bulk run."""

    total_items: int
    operation_type: str = "bulk"
    operation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    completed_items: int = 0
    failed_items: int = 0
    error_messages: list[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)
    current_item: Any = None
    is_completed: bool = False

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def record_success(self, item: Any) -> None:
        self.completed_items += 1
        self.current_item = item

    def record_failure(self, item: Any, message: str) -> None:
        self.failed_items += 1
        self.current_item = item
        self.error_messages.append(message)

    def complete(self) -> None:
        self.is_completed = True

    def snapshot(self) -> BulkProgress:
        elapsed = self.elapsed
        return BulkProgress(
            operation_id=self.operation_id,
            operation_type=self.operation_type,
            total_items=self.total_items,
            completed_items=self.completed_items,
            failed_items=self.failed_items,
            error_messages=tuple(self.error_messages),
            is_completed=self.is_completed,
            current_item=self.current_item,
            elapsed=elapsed,
            estimated_time_remaining=estimate_time_remaining(
                self.total_items, self.completed_items, elapsed
            ),
        )
