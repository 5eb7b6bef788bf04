"""Hello World — the simplest perch app.

Demonstrates a backend route map, path parameters, render presets,
raw responses, and a custom error handler.

Run:
    python app.py
"""

from pathlib import Path

from perch import App, AppConfig, Response, render_static


def greet(context, params):
    return f"Hello, {params['name']}!"


app = App(
    AppConfig(project_dir=Path(__file__).parent, template_dir=None),
    backend={
        "/": "Hello, World!",
        "/about": render_static("Served without any client code."),
        "/greet/{name}": greet,
        "/custom": Response("Created").with_status(201).with_header("X-Custom", "perch"),
    },
)


@app.error(404)
def not_found(request):
    return f"Nothing at {request.path}"


if __name__ == "__main__":
    app.run()
