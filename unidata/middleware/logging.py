"""
Operation logging middleware.

Logs the start, completion (with duration) and failure of every operation.
Failures are logged and re-raised unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from .base import CallNext, Middleware

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)


class LoggingMiddleware(Middleware):
    """
    Log every operation passing through the chain.

    Args:
        log: Logger to write to (defaults to this module's logger)
        level: Level for start/completion messages
        log_args: Include operation args in the start message
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        level: int = logging.INFO,
        log_args: bool = False,
    ):
        self.log = log or logger
        self.level = level
        self.log_args = log_args

    @property
    def name(self) -> str:
        return "LoggingMiddleware"

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        tag = f"[{ctx.entity}.{ctx.operation_name}]"
        start = time.perf_counter()

        if self.log_args:
            self.log.log(self.level, f"{tag} Starting operation (source={ctx.source}) args={ctx.args}")
        else:
            self.log.log(self.level, f"{tag} Starting operation (source={ctx.source})")

        try:
            result = await call_next()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self.log.warning(f"{tag} Operation failed after {duration_ms:.1f}ms: {type(e).__name__}: {e}")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        self.log.log(self.level, f"{tag} Operation completed in {duration_ms:.1f}ms")
        return result
