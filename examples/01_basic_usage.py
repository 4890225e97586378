"""
Basic usage example of fastapi-request-context.

Demonstrates:
- Registering controller methods as routes
- Reading path/query parameters through the context
- Parsing a JSON body into a pydantic model
- Deriving a template name from the controller
"""

from fastapi import FastAPI
from pydantic import BaseModel

from fastapi_request_context import RequestContext, Result, controller_route


class Note(BaseModel):
    title: str
    body: str = ""


class NoteController:
    def show(self, ctx: RequestContext) -> Result:
        note_id = ctx.path_parameter_as_int("id")
        if note_id is None:
            return Result(status_code=400)
        fmt = ctx.query_parameter("format", "short")
        return Result.ok(f"note {note_id} ({fmt})", content_type="text/plain")

    async def create(self, ctx: RequestContext) -> Result:
        note = await ctx.parse_body(Note)
        if note is None:
            return Result(status_code=415)
        return Result(status_code=201, body=note.model_dump_json().encode())

    def page(self, ctx: RequestContext) -> Result:
        # "views/NoteController/page.html" for a controller outside any package
        ctx.writer().write(f"would render {ctx.template_name('.html')}")
        return Result(content_type="text/plain")


app = FastAPI(
    title="Basic Context Example",
    routes=[
        controller_route("/notes/{id}", NoteController, "show"),
        controller_route("/notes", NoteController, "create", methods=("POST",)),
        controller_route("/page", NoteController, "page"),
    ],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

    # Test with:
    # curl http://localhost:8000/notes/1?format=long
    # curl -X POST -d '{"title": "hi"}' http://localhost:8000/notes
    # curl http://localhost:8000/page
