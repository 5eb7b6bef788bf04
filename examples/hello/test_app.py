"""Tests for the hello example."""

from perch.testing import TestClient


class TestHelloApp:
    """Verify every route in the hello example works through the ASGI pipeline."""

    async def test_index(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/")
            assert response.status == 200
            assert "Hello, World!" in response.text
            assert 'data-perch-render="backend"' in response.text

    async def test_static_page(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/about")
            assert 'data-perch-render="static"' in response.text
            assert "<script" not in response.text

    async def test_greet_with_path_param(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/greet/alice")
            assert "Hello, alice!" in response.text

    async def test_custom_response_status_and_header(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/custom")
            assert response.status == 201
            assert response.text == "Created"
            assert ("x-custom", "perch") in response.headers

    async def test_custom_404(self, example_app) -> None:
        async with TestClient(example_app) as client:
            response = await client.get("/missing")
            assert response.status == 404
            assert "Nothing at /missing" in response.text
