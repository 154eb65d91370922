"""
Bulk processing module.

Provides batched, concurrency-bounded execution with progress reporting.
"""

from sportsfetch.batch.orchestrator import (
    BatchDistribution,
    BatchResult,
    BulkOptions,
    BulkOrchestrator,
    iter_batches,
)
from sportsfetch.batch.progress import BatchJob, BulkProgress, estimate_time_remaining

__all__ = [
    "BatchDistribution",
    "BatchJob",
    "BatchResult",
    "BulkOptions",
    "BulkOrchestrator",
    "BulkProgress",
    "estimate_time_remaining",
    "iter_batches",
]
