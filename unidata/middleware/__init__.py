"""
Middlewares for unidata.

The pipeline itself (Middleware, MiddlewareManager, MiddlewareChain) plus
the stock middlewares: hooks, logging, auth, cache and retry.
"""

from .auth import Allow, AuthMiddleware
from .base import CallNext, FunctionMiddleware, Middleware, MiddlewareChain, MiddlewareManager, middleware
from .cache import CacheMiddleware, cache_key
from .hooks import HookBuilder, HookContext, HookManager, HookMiddleware
from .logging import LoggingMiddleware
from .retry import (
    NO_RETRY,
    BackoffStrategy,
    ConstantBackoff,
    ExponentialBackoff,
    NoBackoff,
    RetryMiddleware,
    RetryPolicy,
)

__all__ = [
    "NO_RETRY",
    "Allow",
    "AuthMiddleware",
    "BackoffStrategy",
    "CacheMiddleware",
    "CallNext",
    "ConstantBackoff",
    "ExponentialBackoff",
    "FunctionMiddleware",
    "HookBuilder",
    "HookContext",
    "HookManager",
    "HookMiddleware",
    "LoggingMiddleware",
    "Middleware",
    "MiddlewareChain",
    "MiddlewareManager",
    "NoBackoff",
    "RetryMiddleware",
    "RetryPolicy",
    "cache_key",
    "middleware",
]
