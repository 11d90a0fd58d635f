"""
Shared utilities package for the messenger backend.

Code used by more than one service package: retry helpers, database
access and logging setup.
"""

from .utils.retry import CircuitBreaker, with_retry

__all__ = ["CircuitBreaker", "with_retry"]
