"""
Session and flash example.

Demonstrates:
- Storing the signed-in user in the session cookie
- Passing a one-shot flash message across a redirect
- Configuring cookie names and lifetimes with ContextConfig
"""

import logging

from fastapi import FastAPI

from fastapi_request_context import (
    ContextConfig,
    ContextDependencies,
    RequestContext,
    Result,
    controller_route,
)

logging.basicConfig(level=logging.DEBUG)

deps = ContextDependencies(
    config=ContextConfig(cookie_prefix="DEMO", session_expire_seconds=600)
)


class AccountController:
    def login(self, ctx: RequestContext) -> Result:
        ctx.session.put("user", ctx.query_parameter("user", "guest") or "guest")
        ctx.flash.success("Signed in")
        return Result.redirect("/account")

    def show(self, ctx: RequestContext) -> Result:
        user = ctx.session.get("user")
        if user is None:
            return Result.redirect("/login")
        notice = ctx.flash.get("success", "")
        return Result.ok(f"hello {user} {notice}".strip(), content_type="text/plain")

    def logout(self, ctx: RequestContext) -> Result:
        ctx.session.clear()
        ctx.flash.success("Signed out")
        return Result.redirect("/account")


app = FastAPI(
    title="Session Example",
    routes=[
        controller_route("/login", AccountController, "login", dependencies=deps),
        controller_route("/account", AccountController, "show", dependencies=deps),
        controller_route("/logout", AccountController, "logout", dependencies=deps),
    ],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl -c jar -b jar -L http://localhost:8000/login?user=ada
