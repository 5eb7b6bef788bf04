"""Server-rendered pages."""

from perch import render_static, request_dependent


@request_dependent(fallback="Hello, visitor!")
def hello(context, params):
    agent = context.request.headers.get("user-agent", "visitor")
    return f"Hello, {agent}!"


entrypoint = {
    "/": render_static("Welcome to the realms example."),
    "/hello": hello,
}
