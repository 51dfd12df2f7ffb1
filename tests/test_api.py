"""API endpoint tests."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway import __version__
from tests.fakes import AZURE_CHAT_URL, ChunkStream, FakeUpstream, configured_provider_settings


TTS_BODY = {"text": "Hello there", "selectedLanguage": "Anglais"}


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_ok(self, client: TestClient) -> None:
        """Health endpoint returns ok status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__

    def test_health_lists_services(self, client: TestClient) -> None:
        """Every routed service is listed with its response mode."""
        data = client.get("/health").json()
        services = {service["id"]: service for service in data["services"]}
        assert services["openaiSimulateur"]["response_mode"] == "stream_text"
        assert services["openaiAnalyse"]["response_mode"] == "json"
        assert services["elevenlabs"]["response_mode"] == "binary_audio"
        assert all(service["configured"] for service in services.values())

    def test_health_reports_unconfigured_service(self, make_app) -> None:
        """Missing keys show up as configured=false, never as values."""
        app = make_app(configured_provider_settings(elevenlab_api_key=None))
        response = TestClient(app).get("/health")
        services = {service["id"]: service for service in response.json()["services"]}

        assert services["elevenlabs"]["configured"] is False
        assert services["openaiAnalyse"]["configured"] is True
        assert "azure-secret" not in response.text

    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_request_id_generated(self, client: TestClient) -> None:
        response = client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 32


class TestServiceRouting:
    """Tests for service resolution on POST /api/{service}."""

    @pytest.mark.parametrize("service", ["unknown", "openai", "ELEVENLABS"])
    def test_invalid_service(self, client: TestClient, upstream: FakeUpstream, service: str) -> None:
        """Unknown services are refused without calling any provider."""
        response = client.post(f"/api/{service}", json={"messages": []})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid service"}
        assert upstream.requests == []

    def test_invalid_service_with_garbage_body(self, client: TestClient, upstream: FakeUpstream) -> None:
        """Routing errors win over body errors."""
        response = client.post(
            "/api/nope", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid service"}
        assert upstream.requests == []

    def test_malformed_body_for_known_service(self, client: TestClient, upstream: FakeUpstream) -> None:
        response = client.post(
            "/api/openaiAnalyse", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert upstream.requests == []

    def test_get_not_allowed(self, client: TestClient) -> None:
        response = client.get("/api/openaiAnalyse")
        assert response.status_code == 405


class TestChatEndpoints:
    """Tests for the chat-completion services."""

    def test_stream_passthrough(self, client: TestClient, upstream: FakeUpstream) -> None:
        """The caller receives the upstream event stream unchanged."""
        chunks = [b"data: {\"n\":1}\n\n", b"data: {\"n\":2}\n\n", b"data: [DONE]\n\n"]
        upstream.respond_with(
            lambda request: httpx.Response(
                200, headers={"Content-Type": "text/event-stream"}, stream=ChunkStream(chunks)
            )
        )

        body = {"messages": [{"role": "user", "content": "Bonjour"}], "stream": True}
        response = client.post("/api/openaiSimulateur", json=body)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.content == b"".join(chunks)

        sent = upstream.requests[0]
        assert str(sent.url) == AZURE_CHAT_URL
        assert sent.headers["api-key"] == "azure-secret"
        assert json.loads(sent.content) == body

    def test_json_relay(self, client: TestClient, upstream: FakeUpstream) -> None:
        completion = {"choices": [{"message": {"role": "assistant", "content": "Note: 8/10"}}]}
        upstream.respond_with(lambda request: httpx.Response(200, json=completion))

        response = client.post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 200
        assert response.json() == completion

    def test_json_error_relayed_with_status(self, client: TestClient, upstream: FakeUpstream) -> None:
        error = {"error": {"code": "content_filter", "message": "Filtered"}}
        upstream.respond_with(lambda request: httpx.Response(400, json=error))

        response = client.post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 400
        assert response.json() == error

    def test_analyse_timeout(self, client: TestClient, upstream: FakeUpstream) -> None:
        def timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        upstream.respond_with(timeout)
        response = client.post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 504
        assert response.json() == {"error": "Timeout in the request to OpenAI Analyse"}

    def test_missing_chat_configuration(self, make_app, upstream: FakeUpstream) -> None:
        app = make_app(configured_provider_settings(azure_openai_deployment_simulateur=None))
        response = TestClient(app).post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 500
        assert response.json() == {"error": "OpenAI Analyse configuration missing"}
        assert upstream.requests == []

    def test_broken_endpoint_template(self, make_app, upstream: FakeUpstream) -> None:
        """Unexpected failures before the upstream call still answer in JSON."""
        app = make_app(
            configured_provider_settings(
                chat_provider="openai",
                openai_api_key_analyse="sk-ana",
                openai_base_url="https://proxy.test/{tenant}/v1",
            )
        )
        response = TestClient(app).post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 500
        assert response.json() == {"error": "API request error"}
        assert upstream.requests == []

    def test_secrets_never_in_error_body(self, client: TestClient, upstream: FakeUpstream) -> None:
        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        upstream.respond_with(refused)
        response = client.post("/api/openaiAnalyse", json={"messages": []})

        assert response.status_code == 500
        assert response.json() == {"error": "API request error"}
        assert "azure-secret" not in response.text


class TestTextToSpeechEndpoint:
    """Tests for the ElevenLabs service."""

    def test_audio_returned(self, client: TestClient, upstream: FakeUpstream) -> None:
        audio = b"ID3\x04\x00\x00" + bytes(range(256))
        upstream.respond_with(lambda request: httpx.Response(200, content=audio))

        response = client.post("/api/elevenlabs", json=TTS_BODY)

        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.content == audio

        sent = upstream.requests[0]
        assert sent.url.path == "/v1/text-to-speech/7tRwuZTD1EWi6nydVerp/stream"
        assert sent.headers["xi-api-key"] == "xi-secret"
        assert json.loads(sent.content)["text"] == "Hello there"

    def test_unsupported_language(self, client: TestClient, upstream: FakeUpstream) -> None:
        response = client.post("/api/elevenlabs", json={"text": "Hallo", "selectedLanguage": "allemand"})
        assert response.status_code == 400
        assert response.json() == {"error": "Not supported language"}
        assert upstream.requests == []

    def test_missing_api_key(self, make_app, upstream: FakeUpstream) -> None:
        app = make_app(configured_provider_settings(elevenlab_api_key=None))
        response = TestClient(app).post("/api/elevenlabs", json=TTS_BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "ElevenLabs API key missing"}
        assert upstream.requests == []

    def test_decodable_error(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.respond_with(lambda request: httpx.Response(422, content=b"voice not found"))

        response = client.post("/api/elevenlabs", json=TTS_BODY)

        assert response.status_code == 422
        assert response.json() == {"error": "voice not found"}

    def test_undecodable_error(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.respond_with(lambda request: httpx.Response(502, content=b"\xff\xfe"))

        response = client.post("/api/elevenlabs", json=TTS_BODY)

        assert response.status_code == 502
        assert response.json() == {"error": "Unknown error with ElevenLabs"}


class TestSpeechTokenEndpoint:
    """Tests for GET /get-azure-token."""

    def test_token_issued(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.respond_with(lambda request: httpx.Response(200, text="eyJhbGciOi.token"))

        response = client.get("/get-azure-token")

        assert response.status_code == 200
        assert response.json() == {"token": "eyJhbGciOi.token", "region": "westeurope"}
        assert response.headers["Cache-Control"] == "no-store, max-age=0"

        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "https://westeurope.api.cognitive.microsoft.com/sts/v1.0/issueToken"
        assert sent.headers["Ocp-Apim-Subscription-Key"] == "speech-secret"

    def test_missing_keys(self, make_app, upstream: FakeUpstream) -> None:
        app = make_app(configured_provider_settings(azure_region=None))
        response = TestClient(app).get("/get-azure-token")

        assert response.status_code == 500
        assert response.json() == {"error": "Azure keys missing in the backend"}
        assert upstream.requests == []

    def test_upstream_refusal(self, client: TestClient, upstream: FakeUpstream) -> None:
        upstream.respond_with(lambda request: httpx.Response(401, text="Access denied"))

        response = client.get("/get-azure-token")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate token"}
        assert "speech-secret" not in response.text


class TestConcurrentRequests:
    """Requests in flight at the same time do not affect each other."""

    @pytest.mark.asyncio
    async def test_stream_and_tts_interleaved(self, app, upstream: FakeUpstream) -> None:
        chunks = [b"data: a\n\n", b"data: b\n\n"]
        audio = b"\x00\x01binary-audio\xff"

        async def respond(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            if "text-to-speech" in request.url.path:
                return httpx.Response(200, content=audio)
            return httpx.Response(200, stream=ChunkStream(chunks))

        upstream.respond_with(respond)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://gateway") as client:
            stream_response, tts_response = await asyncio.gather(
                client.post("/api/openaiSimulateur", json={"messages": [], "stream": True}),
                client.post("/api/elevenlabs", json=TTS_BODY),
            )

        assert stream_response.status_code == 200
        assert stream_response.content == b"".join(chunks)
        assert tts_response.status_code == 200
        assert tts_response.content == audio
        assert len(upstream.requests) == 2
