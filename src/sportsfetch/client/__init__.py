"""
Client layer - the entry point for fetching sports data.
"""

from sportsfetch.client.builder import SportsDataClientBuilder
from sportsfetch.client.core import SportsDataClient

__all__ = [
    "SportsDataClient",
    "SportsDataClientBuilder",
]
