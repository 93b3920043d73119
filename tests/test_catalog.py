"""Tests for model catalog retrieval."""

import httpx
import pytest

from app.formfill.services.ai import TransportError, fetch_models
from app.formfill.services.ai.catalog import parse_model_entry

BASE_URL = "https://openrouter.ai/api/v1"


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestParseModelEntry:
    """Tests for catalog entry parsing."""

    def test_full_entry(self):
        model = parse_model_entry(
            {
                "id": "anthropic/claude-3-sonnet",
                "name": "Anthropic: Claude 3 Sonnet",
                "context_length": 200000,
                "pricing": {"prompt": "0.000003", "completion": "0.000015"},
            }
        )
        assert model.id == "anthropic/claude-3-sonnet"
        assert model.name == "Anthropic: Claude 3 Sonnet"
        assert model.context_window == 200000
        assert model.pricing.prompt == "0.000003"

    def test_defaults(self):
        model = parse_model_entry({"id": "vendor/model"})
        assert model.name == "vendor/model"
        assert model.context_window == 8192
        assert model.pricing.prompt is None
        assert model.pricing.completion is None


class TestFetchModels:
    """Tests for the catalog request."""

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["title"] = request.headers.get("X-Title")
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "id": "anthropic/claude-3-sonnet",
                            "name": "Claude 3 Sonnet",
                            "context_length": 200000,
                            "pricing": {"prompt": "0.000003", "completion": "0.000015"},
                        },
                        {"id": "vendor/free", "pricing": {"prompt": "0", "completion": "0"}},
                        {"name": "entry without id"},
                    ]
                },
            )

        models = await fetch_models(
            BASE_URL,
            api_key="sk-test",
            headers={"X-Title": "Document Processing App"},
            transport=_transport(handler),
        )

        assert [m.id for m in models] == ["anthropic/claude-3-sonnet", "vendor/free"]
        assert seen["url"] == "https://openrouter.ai/api/v1/models"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["title"] == "Document Processing App"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": []})

        models = await fetch_models(BASE_URL + "/", transport=_transport(handler))

        assert models == []
        assert seen["auth"] is None

    @pytest.mark.asyncio
    async def test_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream down")

        with pytest.raises(TransportError) as exc_info:
            await fetch_models(BASE_URL, transport=_transport(handler))

        assert exc_info.value.status_code == 500
        assert "Failed to fetch models" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [b"not json", b'{"models": []}', b'{"data": "oops"}'],
    )
    async def test_malformed_body(self, body: bytes):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        with pytest.raises(TransportError, match="Malformed model catalog"):
            await fetch_models(BASE_URL, transport=_transport(handler))

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as exc_info:
            await fetch_models(BASE_URL, transport=_transport(handler))

        assert exc_info.value.status_code is None
