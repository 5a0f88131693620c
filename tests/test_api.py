import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from consultologist.api.app import CLIENT_CLOSED_REQUEST, create_app, run_until_disconnect
from consultologist.core.config import PipelineConfiguration
from consultologist.core.enums import DeploymentEnvironment
from consultologist.core.exceptions import (
    ConfigurationError,
    GenerationTimeoutError,
    ProviderError,
)
from consultologist.pipeline import ConsultationPipeline


JSON_ACCEPT = {"Accept": "application/json"}


@pytest.fixture
def build_client(pipeline_context, stub_gateway_factory, backend_config):
    clients = []

    def _build(config=None, **gateway_kwargs):
        gateway = stub_gateway_factory(**gateway_kwargs)
        client = TestClient(create_app(pipeline_context, gateway, config or backend_config))
        client.__enter__()
        clients.append(client)
        return client, gateway

    yield _build

    for client in clients:
        client.__exit__(None, None, None)


def test_successful_request_returns_html(build_client, make_record):
    client, gateway = build_client(text=json.dumps(make_record()))

    response = client.post("/api/chat", json={"prompt": "58F, left IDC, pT2 N0 M0"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "pT2 N0 M0" in response.text
    assert len(response.headers["X-Request-ID"]) == 32
    assert len(gateway.calls) == 1


def test_empty_body(build_client):
    client, gateway = build_client(text="{}")

    response = client.post("/api/chat", content=b"")

    assert response.status_code == 400
    assert '<div class="error-message">' in response.text
    assert "Request body is empty" in response.text
    assert gateway.calls == []


def test_malformed_json_body(build_client):
    client, gateway = build_client(text="{}")

    response = client.post(
        "/api/chat", content=b'{"prompt": ', headers={"Content-Type": "application/json", **JSON_ACCEPT}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Request body contains malformed JSON"
    assert response.json()["code"] == "input"
    assert gateway.calls == []


def test_deeply_nested_body_is_an_input_error(build_client):
    client, gateway = build_client(text="{}")
    body = b'{"prompt": ' + b"[" * 100_000 + b"]" * 100_000 + b"}"

    response = client.post(
        "/api/chat", content=body, headers={"Content-Type": "application/json", **JSON_ACCEPT}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "input"
    assert gateway.calls == []


def test_refusal_text_is_a_decode_failure(build_client):
    client, _ = build_client(text="I cannot help with that.")

    response = client.post(
        "/api/chat", json={"prompt": "55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative"}, headers=JSON_ACCEPT
    )

    assert response.status_code == 502
    assert response.json()["code"] == "decode"
    assert response.json()["message"] == "Invalid JSON response from AI"


@pytest.mark.parametrize(
    "body",
    [{"prompt": ""}, {"prompt": "   "}, {}, {"prompt": None}, {"prompt": 42}, ["prompt"]],
)
def test_unusable_prompt_never_calls_the_gateway(build_client, body):
    client, gateway = build_client(text="{}")

    response = client.post("/api/chat", json=body, headers=JSON_ACCEPT)

    assert response.status_code == 400
    assert response.json()["message"] == "Please provide valid consultation details."
    assert gateway.calls == []


def test_schema_violation_payload(build_client, make_record):
    record = make_record()
    del record["front_matter"]["receptors"]
    client, _ = build_client(text=json.dumps(record))

    response = client.post("/api/chat", json={"prompt": "45F"}, headers=JSON_ACCEPT)

    assert response.status_code == 502
    payload = response.json()
    assert payload["code"] == "schema_violation"
    assert payload["category"] == "Invalid Consultation Structure"
    assert payload["message"] == (
        "AI response does not match expected format: front_matter.receptors: is required"
    )
    assert payload["details"]["violations"][0]["path"] == "front_matter.receptors"


def test_decode_failure_as_html_fragment(build_client):
    client, _ = build_client(text="Sure! Here is the note.")

    response = client.post("/api/chat", json={"prompt": "45F"})

    assert response.status_code == 502
    assert "Invalid JSON response from AI" in response.text
    assert "Sure! Here is the note." in response.text


def test_production_hides_details(build_client, backend_config):
    backend_config.environment = DeploymentEnvironment.PRODUCTION
    client, _ = build_client(config=backend_config, text="{not json")

    json_response = client.post("/api/chat", json={"prompt": "45F"}, headers=JSON_ACCEPT)
    html_response = client.post("/api/chat", json={"prompt": "45F"})

    assert json_response.status_code == 502
    assert "details" not in json_response.json()
    assert "{not json" not in html_response.text
    assert "<details>" not in html_response.text


@pytest.mark.parametrize(
    "error, status",
    [
        (GenerationTimeoutError("stub", 60.0), 504),
        (ProviderError("stub returned HTTP 429", provider="stub", provider_status=429), 502),
        (ConfigurationError("incomplete", missing_settings=["OPENAI_API_KEY"]), 500),
    ],
)
def test_generation_failures_map_to_status(build_client, error, status):
    client, _ = build_client(error=error)

    response = client.post("/api/chat", json={"prompt": "45F"}, headers=JSON_ACCEPT)

    assert response.status_code == status
    assert response.json()["code"] == error.kind.value


def test_health(build_client):
    client, _ = build_client(text="{}")

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "schema_version": "1.2.0",
        "provider": "stub",
        "model": "stub-deployment",
    }


def test_health_reports_missing_backend_settings(build_client):
    client, _ = build_client(config=PipelineConfiguration(), text="{}")
    assert client.get("/api/health").json()["status"] == "degraded"


def test_gateway_is_closed_on_shutdown(pipeline_context, stub_gateway_factory, backend_config):
    gateway = stub_gateway_factory(text="{}")
    with TestClient(create_app(pipeline_context, gateway, backend_config)):
        pass
    assert gateway.closed == 1


class _DisconnectingRequest:
    def __init__(self):
        self.polls = 0

    async def is_disconnected(self):
        self.polls += 1
        return self.polls >= 2


class _ConnectedRequest:
    async def is_disconnected(self):
        return False


@pytest.mark.asyncio
async def test_disconnect_abandons_the_pipeline(pipeline_context, stub_gateway_factory):
    gateway = stub_gateway_factory(text="{}", delay=10)
    pipeline = ConsultationPipeline(pipeline_context, gateway)

    outcome = await asyncio.wait_for(
        run_until_disconnect(pipeline, _DisconnectingRequest(), "45F", "rid", poll_seconds=0.01),
        timeout=2,
    )

    assert outcome is None
    assert len(gateway.calls) == 1
    assert CLIENT_CLOSED_REQUEST == 499


@pytest.mark.asyncio
async def test_connected_client_gets_the_outcome(pipeline_context, stub_gateway_factory, make_record):
    gateway = stub_gateway_factory(text=json.dumps(make_record()), delay=0.05)
    pipeline = ConsultationPipeline(pipeline_context, gateway)

    outcome = await run_until_disconnect(pipeline, _ConnectedRequest(), "45F", "rid", poll_seconds=0.01)

    assert outcome.succeeded
    assert outcome.request_id == "rid"
