"""
SharpLog HTTP API and its client.
"""

from .app import create_app
from .client import APIClient
from .rate_limit import SlidingWindowRateLimiter

__all__ = ["create_app", "APIClient", "SlidingWindowRateLimiter"]
