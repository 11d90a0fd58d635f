"""
Shared utilities module containing common functionality for the services.
"""

from .retry import CircuitBreaker, with_retry

__all__ = ["CircuitBreaker", "with_retry"]
