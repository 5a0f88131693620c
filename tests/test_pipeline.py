import asyncio
import dataclasses
import json

import pytest

from consultologist.core.config import PipelineConfiguration
from consultologist.core.enums import ErrorKind, PipelineState
from consultologist.core.exceptions import (
    ConfigurationError,
    DecodeError,
    InputError,
    RenderError,
    SchemaViolationError,
    TransportError,
)
from consultologist.core.models import PipelineOutcome
from consultologist.pipeline import ConsultationPipeline, PipelineContext
from consultologist.rendering.template_renderer import load_template


DEEP_NESTING = 100_000


@pytest.mark.asyncio
async def test_well_formed_generation_is_rendered(pipeline_context, stub_gateway_factory, make_record):
    gateway = stub_gateway_factory(text=json.dumps(make_record()))
    pipeline = ConsultationPipeline(pipeline_context, gateway)

    outcome = await pipeline.run("55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative")

    assert outcome.state is PipelineState.RENDERED
    assert outcome.succeeded
    assert outcome.error is None
    assert "<strong>Age:</strong> 58" in outcome.html
    assert "pT2 N0 M0" in outcome.html
    assert len(gateway.calls) == 1
    assert gateway.calls[0].user == "55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative"
    assert pipeline.requests_rendered == 1


@pytest.mark.asyncio
async def test_malformed_generation_fails_decode(pipeline_context, stub_gateway_factory):
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text="{not json"))

    outcome = await pipeline.run("45F, right breast mass")

    assert outcome.state is PipelineState.DECODE_FAILED
    assert outcome.error_kind is ErrorKind.DECODE
    assert outcome.html is None
    assert outcome.error.raw_text == "{not json"


@pytest.mark.asyncio
async def test_refusal_text_fails_decode(pipeline_context, stub_gateway_factory):
    gateway = stub_gateway_factory(text="I cannot help with that.")
    pipeline = ConsultationPipeline(pipeline_context, gateway)

    outcome = await pipeline.run("55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative")

    assert outcome.state is PipelineState.DECODE_FAILED
    assert outcome.error_kind is ErrorKind.DECODE
    assert outcome.error.raw_text == "I cannot help with that."
    assert outcome.html is None
    assert len(gateway.calls) == 1


@pytest.mark.asyncio
async def test_deeply_nested_generation_fails_decode(pipeline_context, stub_gateway_factory):
    text = '{"front_matter": ' + "[" * DEEP_NESTING + "]" * DEEP_NESTING + "}"
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text=text))

    outcome = await pipeline.run("55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative")

    assert outcome.state is PipelineState.DECODE_FAILED
    assert outcome.error_kind is ErrorKind.DECODE
    assert outcome.error.reason == "nesting too deep"


@pytest.mark.asyncio
async def test_missing_receptors_fails_validation(pipeline_context, stub_gateway_factory, make_record):
    record = make_record()
    del record["front_matter"]["receptors"]
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text=json.dumps(record)))

    outcome = await pipeline.run("45F, right breast mass")

    assert outcome.state is PipelineState.VALIDATION_FAILED
    assert outcome.error_kind is ErrorKind.SCHEMA_VIOLATION
    assert outcome.error.summary == "front_matter.receptors: is required"
    assert outcome.html is None


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", ["", "   ", None, 17])
async def test_blank_prompt_never_reaches_the_gateway(pipeline_context, stub_gateway_factory, prompt):
    gateway = stub_gateway_factory(text="{}")
    pipeline = ConsultationPipeline(pipeline_context, gateway)

    outcome = await pipeline.run(prompt)

    assert outcome.state is PipelineState.INPUT_REJECTED
    assert outcome.error_kind is ErrorKind.INPUT
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_gateway_failure(pipeline_context, stub_gateway_factory):
    error = TransportError("Could not reach stub", provider="stub")
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(error=error))

    outcome = await pipeline.run("45F")

    assert outcome.state is PipelineState.GENERATION_FAILED
    assert outcome.error is error


@pytest.mark.asyncio
async def test_missing_configuration_is_a_generation_failure(pipeline_context, stub_gateway_factory):
    error = ConfigurationError("incomplete", missing_settings=["AZURE_OPENAI_ENDPOINT"])
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(error=error))

    outcome = await pipeline.run("45F")

    assert outcome.state is PipelineState.GENERATION_FAILED
    assert outcome.error_kind is ErrorKind.CONFIGURATION
    assert outcome.error.http_status == 500


@pytest.mark.asyncio
async def test_template_drift_fails_render(tmp_path, pipeline_context, stub_gateway_factory, make_record):
    path = tmp_path / "drifted.html.j2"
    path.write_text("{{ assessment.prognosis.five_year }}", encoding="utf-8")
    context = dataclasses.replace(pipeline_context, template=load_template(path))
    pipeline = ConsultationPipeline(context, stub_gateway_factory(text=json.dumps(make_record())))

    outcome = await pipeline.run("45F")

    assert outcome.state is PipelineState.RENDER_FAILED
    assert outcome.error_kind is ErrorKind.RENDER


@pytest.mark.asyncio
async def test_request_id_is_kept(pipeline_context, stub_gateway_factory, make_record):
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text=json.dumps(make_record())))

    given = await pipeline.run("45F", request_id="abc123")
    generated = await pipeline.run("45F")

    assert given.request_id == "abc123"
    assert len(generated.request_id) == 32


@pytest.mark.asyncio
async def test_cancellation_escapes_run(pipeline_context, stub_gateway_factory):
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text="{}", delay=10))

    task = asyncio.create_task(pipeline.run("45F"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_unexpected_gateway_exception_is_a_transport_failure(pipeline_context, stub_gateway_factory):
    error = RuntimeError("event loop is closed")
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(error=error))

    outcome = await pipeline.run("45F")

    assert outcome.state is PipelineState.GENERATION_FAILED
    assert isinstance(outcome.error, TransportError)
    assert outcome.error.original_error is error


def _raising(error):
    def _fail(*args, **kwargs):
        raise error

    return _fail


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stage, state, error_type",
    [
        ("compose", PipelineState.INPUT_REJECTED, InputError),
        ("decode", PipelineState.DECODE_FAILED, DecodeError),
        ("validate", PipelineState.VALIDATION_FAILED, SchemaViolationError),
        ("render", PipelineState.RENDER_FAILED, RenderError),
    ],
)
async def test_unexpected_stage_exception_becomes_a_failure_outcome(
    monkeypatch, pipeline_context, stub_gateway_factory, make_record, stage, state, error_type
):
    text = json.dumps(make_record())
    pipeline = ConsultationPipeline(pipeline_context, stub_gateway_factory(text=text))
    failure = _raising(RecursionError("maximum recursion depth exceeded"))
    if stage == "compose":
        monkeypatch.setattr(pipeline._prompt_builder, "build", failure)
    elif stage == "validate":
        monkeypatch.setattr(pipeline._gate, "admit", failure)
    else:
        monkeypatch.setattr(f"consultologist.pipeline.{stage}", failure)

    outcome = await pipeline.run("55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative")

    assert outcome.state is state
    assert isinstance(outcome.error, error_type)
    assert outcome.html is None
    if stage == "decode":
        assert outcome.error.raw_text == text


def test_context_loads_default_resources():
    context = PipelineContext.load(PipelineConfiguration())

    assert context.schema_document.version == "1.2.0"
    assert context.parameters.temperature == 0.7
    assert context.parameters.max_tokens == 4096


def test_outcome_invariants():
    with pytest.raises(ValueError):
        PipelineOutcome(state=PipelineState.RENDERED, request_id="r")
    with pytest.raises(ValueError):
        PipelineOutcome(state=PipelineState.COMPOSED, request_id="r", html="<p></p>")
    with pytest.raises(ValueError):
        PipelineOutcome(state=PipelineState.DECODE_FAILED, request_id="r", html="<p></p>")
