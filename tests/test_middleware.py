"""
Unit tests for middleware — RequestIDMiddleware and RequestTimingMiddleware.

Uses httpx.AsyncClient against a lightweight FastAPI test app so both
classes run through their full dispatch cycle.
"""

import uuid

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from unitvest.core.logging import request_id_ctx
from unitvest.middleware import REQUEST_ID_HEADER, RequestIDMiddleware, RequestTimingMiddleware


def _make_test_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RequestTimingMiddleware)

    @app.get("/echo")
    async def echo(request: Request):
        return {"state": request.state.request_id, "context": request_id_ctx.get()}

    return app


@pytest.fixture()
def client():
    return AsyncClient(transport=ASGITransport(app=_make_test_app()), base_url="http://test")


class TestRequestIDMiddleware:
    @pytest.mark.asyncio
    async def test_generates_uuid_when_absent(self, client):
        async with client:
            resp = await client.get("/echo")

        request_id = resp.headers[REQUEST_ID_HEADER]
        uuid.UUID(request_id)
        assert resp.json() == {"state": request_id, "context": request_id}

    @pytest.mark.asyncio
    async def test_honours_upstream_id(self, client):
        async with client:
            resp = await client.get("/echo", headers={REQUEST_ID_HEADER: "sweep-trace-42"})

        assert resp.headers[REQUEST_ID_HEADER] == "sweep-trace-42"
        assert resp.json()["context"] == "sweep-trace-42"

    @pytest.mark.asyncio
    async def test_context_is_cleared_after_request(self, client):
        async with client:
            await client.get("/echo")

        assert request_id_ctx.get() is None


class TestRequestTimingMiddleware:
    @pytest.mark.asyncio
    async def test_adds_process_time_header(self, client):
        async with client:
            resp = await client.get("/echo")

        value = resp.headers["X-Process-Time"]
        assert value.endswith("ms")
        assert float(value[:-2]) >= 0
