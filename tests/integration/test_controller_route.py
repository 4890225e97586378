"""Integration tests for controller_route with FastAPI and httpx."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel
from starlette.applications import Starlette
from starlette.routing import Mount

from fastapi_request_context import (
    Cookie,
    ContextDependencies,
    ContextUsageError,
    RequestContext,
    Result,
    controller_route,
)


class _Item(BaseModel):
    name: str
    qty: int


class ItemController:
    def show(self, ctx: RequestContext) -> Result:
        item_id = ctx.path_parameter_as_int("id")
        if item_id is None:
            return Result(status_code=400)
        verbose = ctx.query_parameter("verbose", "no")
        return Result.ok(f"item {item_id} verbose={verbose}", content_type="text/plain")

    async def create(self, ctx: RequestContext) -> Result:
        item = await ctx.parse_body(_Item)
        assert item is not None
        payload = json.dumps({"name": item.name, "qty": item.qty}).encode()
        return Result(status_code=201, body=payload).with_cookie(
            Cookie("last_item", item.name)
        )

    async def template(self, ctx: RequestContext) -> Result:
        ctx.writer().write(ctx.template_name(".html"))
        return Result()

    def stats(self, ctx: RequestContext) -> Result:
        return Result(body=b'{"count": 3}')

    def code(self, ctx: RequestContext) -> Result:
        return Result.ok(ctx.path_parameter("code"))

    def clear(self, ctx: RequestContext) -> Result:
        return Result.no_content()

    def broken(self, ctx: RequestContext) -> None:
        return None

    async def rename(self, ctx: RequestContext) -> Result:
        raw = await ctx.body()
        return Result.ok(
            f"{ctx.query_parameter('name')}|{ctx.query_parameter('source')}|{len(raw)}",
            content_type="text/plain",
        )


class DeferredController:
    def from_thread(self, ctx: RequestContext) -> None:
        ctx.handle_async()
        timer = threading.Timer(
            0.01, ctx.return_result_async, args=(Result(status_code=202, body=b"late"),)
        )
        timer.start()

    async def from_task(self, ctx: RequestContext) -> None:
        ctx.handle_async()

        async def _deliver() -> None:
            await asyncio.sleep(0.01)
            ctx.return_result_async(Result.ok("from task"))

        asyncio.get_running_loop().create_task(_deliver())

    def immediate(self, ctx: RequestContext) -> Result:
        ctx.return_result_async(Result.ok("async wins"))
        return Result.ok("direct value ignored")


class AccountController:
    def login(self, ctx: RequestContext) -> Result:
        ctx.session.put("user", ctx.query_parameter("user", "anonymous") or "")
        ctx.flash.success("Welcome")
        return Result.redirect("/account")

    def show(self, ctx: RequestContext) -> Result:
        user = ctx.session.get("user", "nobody")
        message = ctx.flash.get("success", "-")
        return Result.ok(f"{user}|{message}", content_type="text/plain")

    def logout(self, ctx: RequestContext) -> Result:
        ctx.session.clear()
        return Result.redirect("/account")


def _app(deps: ContextDependencies | None = None) -> FastAPI:
    return FastAPI(
        routes=[
            controller_route("/items/{id}", ItemController, "show", dependencies=deps),
            controller_route(
                "/items", ItemController, "create", methods=("POST",), dependencies=deps
            ),
            controller_route("/template", ItemController, "template", dependencies=deps),
            controller_route("/stats", ItemController, "stats", dependencies=deps),
            controller_route(
                "/code/{code: [0-9]{3}}", ItemController, "code", dependencies=deps
            ),
            controller_route("/clear", ItemController, "clear", dependencies=deps),
            controller_route("/broken", ItemController, "broken", dependencies=deps),
            controller_route(
                "/rename", ItemController, "rename", methods=("POST",), dependencies=deps
            ),
            controller_route(
                "/deferred/thread", DeferredController, "from_thread", dependencies=deps
            ),
            controller_route(
                "/deferred/task", DeferredController, "from_task", dependencies=deps
            ),
            controller_route(
                "/deferred/immediate", DeferredController, "immediate", dependencies=deps
            ),
            controller_route("/login", AccountController, "login", dependencies=deps),
            controller_route("/account", AccountController, "show", dependencies=deps),
            controller_route("/logout", AccountController, "logout", dependencies=deps),
        ]
    )


async def _request(
    app: Starlette,
    method: str = "GET",
    path: str = "/",
    **kwargs: Any,
) -> Any:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, path, **kwargs)


def _cookie_header(resp: Any) -> str:
    pairs = [value.split(";", 1)[0] for value in resp.headers.get_list("set-cookie")]
    return "; ".join(pairs)


class TestSynchronousControllers:
    async def test_path_and_query_parameters(self) -> None:
        resp = await _request(_app(), path="/items/5?verbose=yes")
        assert resp.status_code == 200
        assert resp.text == "item 5 verbose=yes"
        assert resp.headers["content-type"].startswith("text/plain")

    async def test_unparsable_path_parameter(self) -> None:
        resp = await _request(_app(), path="/items/abc")
        assert resp.status_code == 400

    async def test_json_body_and_cookie(self) -> None:
        resp = await _request(
            _app(), "POST", "/items", json={"name": "bolt", "qty": 4}
        )
        assert resp.status_code == 201
        assert resp.json() == {"name": "bolt", "qty": 4}
        assert resp.headers.get_list("set-cookie")[0].startswith("last_item=bolt")

    async def test_writer_output_and_template_name(self) -> None:
        resp = await _request(_app(), path="/template")
        assert resp.text == "views/ItemController/template.html"

    async def test_accept_negotiates_content_type(self) -> None:
        resp = await _request(
            _app(), path="/stats", headers={"Accept": "application/json"}
        )
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == {"count": 3}

    async def test_custom_regex_parameter(self) -> None:
        resp = await _request(_app(), path="/code/123")
        assert resp.status_code == 200
        assert resp.text == "123"

    async def test_custom_regex_mismatch_is_404(self) -> None:
        resp = await _request(_app(), path="/code/12")
        assert resp.status_code == 404

    async def test_no_content(self) -> None:
        resp = await _request(_app(), path="/clear")
        assert resp.status_code == 204
        assert resp.content == b""

    async def test_controller_without_result_is_usage_error(self) -> None:
        with pytest.raises(ContextUsageError):
            await _request(_app(), path="/broken")

    async def test_form_fields_are_parameters(self) -> None:
        resp = await _request(
            _app(), "POST", "/rename?source=query", data={"name": "ada", "source": "form"}
        )
        assert resp.status_code == 200
        assert resp.text == f"ada|query|{len('name=ada&source=form')}"


class TestMountedRoutes:
    async def test_route_under_mount(self) -> None:
        mounted = Mount("/api", routes=[controller_route("/items/{id}", ItemController, "show")])
        app = Starlette(routes=[mounted])
        resp = await _request(app, path="/api/items/5?verbose=yes")
        assert resp.status_code == 200
        assert resp.text == "item 5 verbose=yes"

    async def test_route_behind_root_path(self) -> None:
        transport = ASGITransport(app=_app(), root_path="/proxy")
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/proxy/items/7")
        assert resp.status_code == 200
        assert resp.text == "item 7 verbose=no"


class TestAsyncDispatch:
    async def test_result_delivered_from_thread(self) -> None:
        resp = await _request(_app(), path="/deferred/thread")
        assert resp.status_code == 202
        assert resp.text == "late"

    async def test_result_delivered_from_task(self) -> None:
        resp = await _request(_app(), path="/deferred/task")
        assert resp.status_code == 200
        assert resp.text == "from task"

    async def test_async_result_replaces_direct_return(self) -> None:
        resp = await _request(_app(), path="/deferred/immediate")
        assert resp.text == "async wins"


class TestSessionAndFlash:
    async def test_flash_and_session_round_trip(self) -> None:
        app = _app()
        login = await _request(app, path="/login?user=ada")
        assert login.status_code == 303
        assert login.headers["location"] == "/account"

        first = await _request(
            app, path="/account", headers={"Cookie": _cookie_header(login)}
        )
        assert first.text == "ada|Welcome"

        # flash is gone on the following request, session stays
        session_only = "; ".join(
            part
            for part in _cookie_header(login).split("; ")
            if part.startswith("APP_SESSION=")
        )
        second = await _request(app, path="/account", headers={"Cookie": session_only})
        assert second.text == "ada|-"

    async def test_logout_expires_session_cookie(self) -> None:
        app = _app()
        login = await _request(app, path="/login?user=ada")
        logout = await _request(
            app, path="/logout", headers={"Cookie": _cookie_header(login)}
        )
        cookies = logout.headers.get_list("set-cookie")
        session_cookie = next(c for c in cookies if c.startswith("APP_SESSION="))
        assert "Max-Age=0" in session_cookie

    async def test_custom_cookie_prefix(self) -> None:
        from fastapi_request_context import ContextConfig

        app = _app(ContextDependencies(config=ContextConfig(cookie_prefix="SHOP")))
        login = await _request(app, path="/login?user=ada")
        names = [c.split("=", 1)[0] for c in login.headers.get_list("set-cookie")]
        assert names == ["SHOP_FLASH", "SHOP_SESSION"]
