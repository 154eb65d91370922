"""
Types layer - shared data structures for the fetch pipeline.

- FetchRequest and FetchCategory describe one logical fetch
- FetchResponse is the raw transport result
- Success / Failure form the OperationOutcome tagged result
"""

from sportsfetch.types.outcome import Failure, OperationOutcome, Success
from sportsfetch.types.request import (
    FetchCategory,
    FetchRequest,
    FetchResponse,
    category_name,
)

__all__ = [
    "Failure",
    "FetchCategory",
    "FetchRequest",
    "FetchResponse",
    "OperationOutcome",
    "Success",
    "category_name",
]
