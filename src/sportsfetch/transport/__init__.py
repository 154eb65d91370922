"""
Transport layer for upstream HTTP calls.
"""

from sportsfetch.transport.http import FetchTransport, HttpTransport, default_user_agent

__all__ = [
    "FetchTransport",
    "HttpTransport",
    "default_user_agent",
]
