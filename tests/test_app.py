"""Tests for perch.app — full request pipeline through the test client."""

import json
import logging
from http import HTTPStatus
from pathlib import Path

import pytest

from perch import App, AppConfig
from perch.errors import NotFound
from perch.http.response import Redirect
from perch.rendering import RenderMethod, render_backend, render_static, request_dependent
from perch.testing import TestClient


def make_app(config: AppConfig, backend=None, frontend=None) -> App:
    return App(config, backend=backend, frontend=frontend)


class TestPages:
    async def test_backend_page(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 200
        assert response.content_type.startswith("text/html")
        assert "home" in response.text
        assert 'data-perch-render="backend"' in response.text
        assert response.header("content-language") == "en"

    async def test_static_page_has_no_scripts(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/about": render_static("About us")})
        async with TestClient(app) as client:
            response = await client.get("/about")
        assert "About us" in response.text
        assert "<script" not in response.text

    async def test_text_is_escaped(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "<script>alert(1)</script>"})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in response.text
        assert "<script>alert(1)" not in response.text

    async def test_params_and_query(self, config: AppConfig) -> None:
        def user(context, params):
            return f"user {params['id']} tab {context.route.query_dict().get('tab')}"

        app = make_app(config, backend={"/users/{id:int}": user})
        async with TestClient(app) as client:
            response = await client.get("/users/7?tab=posts")
        assert "user 7 tab posts" in response.text

    async def test_encoded_segments(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/{name}": lambda ctx, params: params["name"]})
        async with TestClient(app) as client:
            response = await client.get("/hello%20world")
        assert "hello world" in response.text

    async def test_repeated_slashes_in_request_path(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/a/b": "nested", "/b": "wrong"})
        async with TestClient(app) as client:
            response = await client.get("//a//b/")
        assert response.status == 200
        assert "nested" in response.text

    async def test_no_content(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})
        async with TestClient(app) as client:
            response = await client.get("/missing")
        assert response.status == 404
        assert "<title>404 No content</title>" in response.text

    async def test_no_entrypoints(self, config: AppConfig) -> None:
        async with TestClient(make_app(config)) as client:
            response = await client.get("/")
        assert response.status == 404

    async def test_dynamic_shell_for_frontend_routes(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/api": "data"}, frontend={"/app": "client"})
        async with TestClient(app) as client:
            response = await client.get("/app")
        assert response.status == 200
        assert 'data-perch-render="dynamic"' in response.text
        assert "/@perch/frontend/entrypoint.js" in response.text

    async def test_server_only_backend_never_hands_off(self, config: AppConfig) -> None:
        app = make_app(config, backend=render_backend({"/": "home"}), frontend={"/app": "x"})
        assert not app.serves_frontend
        async with TestClient(app) as client:
            response = await client.get("/app")
        assert response.status == 404

    async def test_malformed_route(self, config: AppConfig) -> None:
        app = make_app(config, backend={"*": "anything"})
        async with TestClient(app) as client:
            response = await client.get("/bad%zz")
        assert response.status == 400
        assert "Malformed percent-encoding" in response.text

    async def test_unsupported_content(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": object()})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "Cannot render content of type object" in response.text


class TestLanguage:
    async def test_accept_language(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "hi"})
        async with TestClient(app) as client:
            response = await client.get("/", headers={"Accept-Language": "de-DE,de;q=0.9"})
        assert response.header("content-language") == "de-DE"
        assert '<html lang="de-DE">' in response.text

    async def test_cookie_wins(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "hi"})
        async with TestClient(app) as client:
            response = await client.get(
                "/", headers={"Accept-Language": "de", "Cookie": "perch-lang=fr"},
            )
        assert response.header("content-language") == "fr"

    async def test_language_reaches_generators(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": lambda ctx: f"lang={ctx.language}"})
        async with TestClient(app) as client:
            response = await client.get("/", headers={"Accept-Language": "nl"})
        assert "lang=nl" in response.text


class TestSpecialContent:
    async def test_redirect(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/old": Redirect("/new", status=301)})
        async with TestClient(app) as client:
            response = await client.get("/old")
        assert response.status == 301
        assert response.header("location") == "/new"

    async def test_bytes(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/blob": b"\x00\x01\x02"})
        async with TestClient(app) as client:
            response = await client.get("/blob")
        assert response.body == b"\x00\x01\x02"
        assert response.content_type == "application/octet-stream"

    async def test_file(self, config: AppConfig, tmp_path: Path) -> None:
        notes = tmp_path / "notes.txt"
        notes.write_text("plain notes")
        app = make_app(config, backend={"/notes": notes, "/gone": tmp_path / "gone.txt"})
        async with TestClient(app) as client:
            response = await client.get("/notes")
            missing = await client.get("/gone")
        assert response.body == b"plain notes"
        assert response.content_type.startswith("text/plain")
        assert missing.status == 404

    async def test_success_status(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": HTTPStatus.ACCEPTED})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 202
        assert "<h1>202 Accepted</h1>" in response.text

    async def test_error_status(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": HTTPStatus.FORBIDDEN})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 403
        assert "<title>403 Forbidden</title>" in response.text

    async def test_returned_exception(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": ValueError("shown to the user")})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "shown to the user" in response.text


class TestErrors:
    async def test_raised_http_error(self, config: AppConfig) -> None:
        def page():
            raise NotFound("No such article")

        app = make_app(config, backend={"/": page})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 404
        assert "No such article" in response.text

    async def test_generator_failure(self, config: AppConfig, caplog: pytest.LogCaptureFixture) -> None:
        def page():
            raise RuntimeError("database down")

        app = make_app(config, backend={"/": page})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "database down" in response.text
        assert any("500 GET /" in r.getMessage() for r in caplog.records)

    async def test_status_handler(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})

        @app.error(404)
        def not_found(request):
            return f"Nothing at {request.path}"

        async with TestClient(app) as client:
            response = await client.get("/nope")
        assert response.status == 404
        assert "Nothing at /nope" in response.text

    async def test_exception_handler(self, config: AppConfig) -> None:
        def page():
            raise KeyError("missing")

        app = make_app(config, backend={"/": page})

        @app.error(LookupError)
        async def lookup_failed(request, exc):
            return render_static(f"lookup failed: {type(exc).__name__}")

        async with TestClient(app) as client:
            response = await client.get("/")
        assert response.status == 500
        assert "lookup failed: KeyError" in response.text
        assert 'data-perch-render="static"' in response.text

    async def test_handler_status_kept(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})

        @app.error(404)
        def not_found():
            return Redirect("/")

        async with TestClient(app) as client:
            response = await client.get("/nope")
        assert response.status == 302

    async def test_failing_handler_falls_back(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})

        @app.error(404)
        def not_found():
            raise RuntimeError("handler broke")

        async with TestClient(app) as client:
            response = await client.get("/nope")
        assert response.status == 404
        assert "<title>404 No content</title>" in response.text


class TestContextProviders:
    async def test_shared_title(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})

        @app.context
        def site(ctx):
            return {"title": "My site"}

        async with TestClient(app) as client:
            response = await client.get("/")
        assert "<title>My site</title>" in response.text

    async def test_provider_sees_request(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": lambda ctx: ctx.private["agent"]})

        @app.context
        async def agent(ctx):
            ctx.private["agent"] = ctx.request.headers.get("user-agent", "?")

        async with TestClient(app) as client:
            response = await client.get("/", headers={"User-Agent": "perch-test"})
        assert "perch-test" in response.text


class TestLiveValues:
    async def test_observed_value_in_page(self, config: AppConfig) -> None:
        app = make_app(config)
        counter = app.live_value(5, id="counter")

        def page(ctx):
            ctx.observe(counter)
            return counter

        app.set_entrypoint("backend", {"/": page})
        async with TestClient(app) as client:
            response = await client.get("/")
        assert '<span data-perch-value="counter">5</span>' in response.text
        assert "observe=" in response.text
        assert "counter" in app.registry


class TestRealmFiles:
    async def test_import_map(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})
        app.import_map.set("backend/api.py", "/@perch/src/backend/api.py")
        async with TestClient(app) as client:
            response = await client.get("/@perch/importmap.json")
        assert response.content_type == "application/importmap+json"
        assert json.loads(response.text) == {
            "imports": {"backend/api.py": "/@perch/src/backend/api.py"},
        }

    async def test_generated_stub_served(self, config: AppConfig, project: Path) -> None:
        (project / "backend" / "api.py").write_text("def greet(name):\n    return name\n")
        app = make_app(config, backend={"/": "home"})
        sent: list[str] = []

        class Sender:
            def send(self, message: str) -> None:
                sent.append(message)

        app.broker.add_sender(Sender())
        async with TestClient(app) as client:
            web_path = await app.handle_import(
                "../backend/api.py", project / "frontend" / "app.py", ["greet"],
            )
            await app.generator.wait_idle()
            response = await client.get(web_path)

        assert web_path == "/@perch/src/backend/api.py"
        assert response.status == 200
        assert response.content_type.startswith("text/x-python")
        assert "greet = RemoteExport('backend/api.py', 'greet')" in response.text
        assert sent == ["RELOAD"]


class TestDiscovery:
    async def test_entrypoint_file(self, config: AppConfig, project: Path) -> None:
        (project / "backend" / "entrypoint.py").write_text('entrypoint = {"/": "from a file"}\n')
        app = make_app(config)
        async with TestClient(app) as client:
            response = await client.get("/")
        assert "from a file" in response.text

    async def test_markdown_frontend_file(self, config: AppConfig, project: Path) -> None:
        (project / "frontend" / "entrypoint.md").write_text("# Hello\n")
        app = make_app(config)
        resolved = await app.resolve("/", realm="frontend")
        assert resolved.has_content
        assert app.serves_frontend

    async def test_changed_entrypoint_reloads(self, config: AppConfig, project: Path) -> None:
        path = project / "backend" / "entrypoint.py"
        path.write_text('entrypoint = {"/": "first"}\n')
        app = make_app(config)
        async with TestClient(app) as client:
            assert "first" in (await client.get("/")).text
            path.write_text('entrypoint = {"/": "second version"}\n')
            await app.notify_source_changed(path)
            assert "second version" in (await client.get("/")).text

    async def test_broken_entrypoint_keeps_previous(
        self, config: AppConfig, project: Path, caplog: pytest.LogCaptureFixture,
    ) -> None:
        path = project / "backend" / "entrypoint.py"
        path.write_text('entrypoint = {"/": "working"}\n')
        app = make_app(config)
        sent: list[str] = []

        class Sender:
            def send(self, message: str) -> None:
                sent.append(message)

        app.broker.add_sender(Sender())
        async with TestClient(app) as client:
            path.write_text('entrypoint = {"/": "unterminated\n')
            with caplog.at_level(logging.ERROR, logger="perch.server"):
                await app.notify_source_changed(path)
            assert "working" in (await client.get("/")).text
        assert sent == ["RELOAD"]
        assert any("Cannot reload entrypoint" in r.getMessage() for r in caplog.records)


class TestPrerender:
    async def test_static_fallbacks(self, config: AppConfig) -> None:
        @request_dependent(fallback="Sign in to see your feed")
        def feed(context, params):
            return f"feed for {context.request.path}"

        app = make_app(config, backend={"/": render_static("home"), "/feed": feed})
        results = await app.prerender(["/", "/feed", "/missing"])
        app.close()

        assert results["/"].status == 200
        assert 'data-perch-render="static"' in results["/"].text
        assert "Sign in to see your feed" in results["/feed"].text
        assert results["/missing"].status == 404


class TestAppLifecycle:
    async def test_hooks(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})
        calls: list[str] = []

        @app.on_startup
        async def started():
            calls.append("startup")

        @app.on_shutdown
        def stopped():
            calls.append("shutdown")

        async with TestClient(app):
            assert calls == ["startup"]
        assert calls == ["startup", "shutdown"]

    async def test_frozen_after_start(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/": "home"})
        async with TestClient(app):
            with pytest.raises(RuntimeError, match="Cannot modify"):
                app.set_entrypoint("backend", {})

    def test_unknown_realm(self, config: AppConfig) -> None:
        with pytest.raises(ValueError, match="Unknown realm"):
            make_app(config).set_entrypoint("middle", {})

    async def test_resolve(self, config: AppConfig) -> None:
        app = make_app(config, backend={"/a": render_static("A")})
        resolved = await app.resolve("/a")
        assert resolved.content == "A"
        assert resolved.render_method is RenderMethod.STATIC
