"""Realms — backend and frontend entrypoints discovered from directories.

``backend/entrypoint.py`` renders on the server. Routes it has no
content for are handed to ``frontend/entrypoint.py`` through a dynamic
page shell. Frontend code that imports ``backend/api.py`` receives a
generated stub instead of the module itself.

Run:
    python app.py
"""

from pathlib import Path

from perch import App, AppConfig

app = App(AppConfig(project_dir=Path(__file__).parent, template_dir=None, debug=True))


@app.context
def site(ctx):
    return {"title": "Perch realms"}


if __name__ == "__main__":
    app.run()
