"""Client-side routes."""

from perch import render_dynamic

entrypoint = render_dynamic({
    "/app/{page}": lambda context, params: f"Client page {params['page']}",
    "/app": "Client app",
})
