"""
Tests for the middleware pipeline and the logging middleware.
"""

import logging

import pytest

from unidata import build_router
from unidata.context import Operation, OperationContext
from unidata.errors import ConfigurationError, InternalError
from unidata.middleware import (
    FunctionMiddleware,
    LoggingMiddleware,
    Middleware,
    MiddlewareChain,
    MiddlewareManager,
    middleware,
)


def make_ctx(**kwargs):
    defaults = {"entity": "user", "operation": Operation.FIND_MANY, "source": "memory"}
    return OperationContext(**{**defaults, **kwargs})


def tracing(name, trace):
    @middleware(name=name)
    async def layer(ctx, call_next):
        trace.append(f"{name} enter")
        result = await call_next()
        trace.append(f"{name} exit")
        return result

    return layer


class TestMiddlewareChain:
    """Tests for onion ordering and control flow."""

    @pytest.mark.asyncio
    async def test_onion_order(self):
        trace = []

        async def core(ctx):
            trace.append("core")
            return "result"

        chain = MiddlewareChain([tracing("A", trace), tracing("B", trace), tracing("C", trace)])
        result = await chain.execute(make_ctx(), core)

        assert result == "result"
        assert trace == ["A enter", "B enter", "C enter", "core", "C exit", "B exit", "A exit"]

    @pytest.mark.asyncio
    async def test_empty_chain_runs_core(self):
        ctx = make_ctx()

        async def core(ctx):
            return [1, 2]

        assert await MiddlewareChain().execute(ctx, core) == [1, 2]
        assert ctx.result == [1, 2]

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        called = []

        @middleware(name="ShortCircuit")
        async def short(ctx, call_next):
            return "cached"

        async def core(ctx):
            called.append(True)
            return "fresh"

        assert await MiddlewareChain([short]).execute(make_ctx(), core) == "cached"
        assert called == []

    @pytest.mark.asyncio
    async def test_transform_result_and_args(self):
        @middleware(name="Limit")
        async def limit(ctx, call_next):
            ctx.args["limit"] = 1
            result = await call_next()
            return [item * 10 for item in result]

        async def core(ctx):
            return list(range(ctx.args["limit"] + 1))

        ctx = make_ctx()
        assert await MiddlewareChain([limit]).execute(ctx, core) == [0, 10]
        assert ctx.result == [0, 10]

    @pytest.mark.asyncio
    async def test_error_conversion(self):
        @middleware(name="Convert")
        async def convert(ctx, call_next):
            try:
                return await call_next()
            except KeyError as e:
                raise InternalError(f"lookup failed: {e}") from e

        async def core(ctx):
            raise KeyError("id")

        with pytest.raises(InternalError, match="lookup failed"):
            await MiddlewareChain([convert]).execute(make_ctx(), core)

    @pytest.mark.asyncio
    async def test_errors_propagate_unchanged(self):
        trace = []

        async def core(ctx):
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await MiddlewareChain([tracing("A", trace)]).execute(make_ctx(), core)
        assert trace == ["A enter"]


class TestMiddlewareManager:
    """Tests for MiddlewareManager registration and exclusion."""

    def test_use_wraps_functions(self):
        async def timing(ctx, call_next):
            return await call_next()

        manager = MiddlewareManager()
        manager.use(timing)

        assert manager.names() == ["timing"]
        assert isinstance(manager.get("timing"), FunctionMiddleware)
        assert "timing" in manager

    def test_duplicate_name_rejected(self):
        manager = MiddlewareManager([LoggingMiddleware()])
        with pytest.raises(ValueError, match="already registered"):
            manager.use(LoggingMiddleware())

    def test_remove_and_clear(self):
        manager = MiddlewareManager([LoggingMiddleware()])
        assert manager.remove("LoggingMiddleware") is True
        assert manager.remove("LoggingMiddleware") is False
        manager.use(LoggingMiddleware())
        manager.clear()
        assert len(manager) == 0

    def test_chain_cache(self):
        trace = []
        manager = MiddlewareManager([tracing("A", trace), tracing("B", trace)])

        chain = manager.chain_for(["B"])
        assert chain.names == ["A"]
        assert manager.chain_for(["B"]) is chain

        manager.use(tracing("C", trace))
        rebuilt = manager.chain_for(["B"])
        assert rebuilt is not chain
        assert rebuilt.names == ["A", "C"]

    @pytest.mark.asyncio
    async def test_exclusion_through_router(self, blog_plugin):
        trace = []
        router = build_router(
            plugins=[blog_plugin],
            middlewares=[tracing("A", trace), tracing("B", trace)],
            entity_configs={
                "user": {"default_source": "memory", "exclude": ["A"]},
                "post": {"default_source": "memory"},
            },
        )

        await router.find_many("user")
        assert trace == ["B enter", "B exit"]

        trace.clear()
        await router.find_many("post")
        assert trace == ["A enter", "B enter", "B exit", "A exit"]

    def test_validate_requirements(self):
        manager = MiddlewareManager()
        manager.use(FunctionMiddleware(lambda ctx, nxt: nxt(), name="Audit", required_entities=["AuditLog"]))

        manager.validate_requirements(["user", "auditlog"])
        with pytest.raises(ConfigurationError, match="Audit requires"):
            manager.validate_requirements(["user"])

    def test_subclass_requires_name_and_handle(self):
        class Incomplete(Middleware):
            pass

        with pytest.raises(TypeError):
            Incomplete()


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    @pytest.mark.asyncio
    async def test_logs_start_and_completion(self, caplog):
        async def core(ctx):
            return []

        with caplog.at_level(logging.INFO, logger="unidata.middleware.logging"):
            await MiddlewareChain([LoggingMiddleware()]).execute(make_ctx(), core)

        messages = [r.getMessage() for r in caplog.records]
        assert any("[user.findMany] Starting operation" in m for m in messages)
        assert any("[user.findMany] Operation completed" in m for m in messages)

    @pytest.mark.asyncio
    async def test_logs_args_when_enabled(self, caplog):
        async def core(ctx):
            return []

        with caplog.at_level(logging.INFO, logger="unidata.middleware.logging"):
            ctx = make_ctx(args={"where": {"id": "1"}})
            await MiddlewareChain([LoggingMiddleware(log_args=True)]).execute(ctx, core)

        assert any("'id': '1'" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_logs_and_reraises_failures(self, caplog):
        async def core(ctx):
            raise InternalError("db down")

        with caplog.at_level(logging.INFO, logger="unidata.middleware.logging"):
            with pytest.raises(InternalError):
                await MiddlewareChain([LoggingMiddleware()]).execute(make_ctx(), core)

        failures = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(failures) == 1
        assert "Operation failed" in failures[0].getMessage()
