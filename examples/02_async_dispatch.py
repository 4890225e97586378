"""
Async dispatch example.

Demonstrates:
- Switching a request to async mode with handle_async()
- Delivering the result later from a worker thread
- Delivering the result from an asyncio task
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

from fastapi import FastAPI

from fastapi_request_context import RequestContext, Result, controller_route

executor = ThreadPoolExecutor(max_workers=4)


def _slow_report(ctx: RequestContext, name: str) -> None:
    # Runs on a worker thread; the request stays open until delivery
    ctx.return_result_async(Result.ok(f"report {name} ready", content_type="text/plain"))


class ReportController:
    def build(self, ctx: RequestContext) -> None:
        ctx.handle_async()
        executor.submit(_slow_report, ctx, ctx.query_parameter("name", "daily"))

    async def poll(self, ctx: RequestContext) -> None:
        ctx.handle_async()

        async def _later() -> None:
            await asyncio.sleep(0.5)
            ctx.return_result_async(Result.ok("poll finished", content_type="text/plain"))

        asyncio.get_running_loop().create_task(_later())


app = FastAPI(
    title="Async Dispatch Example",
    routes=[
        controller_route("/reports", ReportController, "build"),
        controller_route("/poll", ReportController, "poll"),
    ],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl http://localhost:8000/reports?name=weekly
    # curl http://localhost:8000/poll
