"""
HTTP Host - FastAPI Application

Exposes the consultation pipeline over HTTP.

Routes:
    POST /api/chat    → {"prompt": "..."} in, rendered HTML out
    GET  /api/health  → schema version and generation backend identity

Error Payloads:
    Failures answer with the classified error's HTTP status and either an
    HTML fragment (default) or JSON (Accept: application/json). Diagnostic
    details are included only outside production.

Pipeline Position:
    Client → [FastAPI host] → ConsultationPipeline
              ^^^^^^^^^^^^
              You are here
"""

import asyncio
import json
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError, field_validator

from consultologist import __version__
from consultologist.clients.factory import create_generation_client
from consultologist.clients.llm_client import GenerationGateway
from consultologist.core.config import PipelineConfiguration
from consultologist.core.exceptions import ConsultologistError, EmptyPromptError, InputError
from consultologist.core.models import PipelineOutcome
from consultologist.pipeline import ConsultationPipeline, PipelineContext
from consultologist.rendering.template_renderer import render_error_fragment


# Non-standard status used when the caller went away before the answer
CLIENT_CLOSED_REQUEST = 499

DISCONNECT_POLL_SECONDS = 0.25


# =============================================================================
# STAGE 1: REQUEST MODEL
# =============================================================================


class ConsultationRequest(BaseModel):
    """Inbound body of POST /api/chat."""

    model_config = ConfigDict(extra="ignore")

    prompt: StrictStr

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value


# =============================================================================
# STAGE 2: ERROR PAYLOADS
# =============================================================================


def wants_json(request: Request) -> bool:
    return "application/json" in request.headers.get("accept", "").lower()


def error_payload(error: ConsultologistError, include_details: bool) -> Dict[str, Any]:
    """Caller-facing fields for a classified failure."""
    payload: Dict[str, Any] = {
        "category": error.title,
        "code": error.kind.value,
        "message": error.message,
    }
    if include_details:
        payload["details"] = error.diagnostic_details()
    return payload


def error_response(
    error: ConsultologistError,
    request: Request,
    request_id: str,
    include_details: bool,
) -> Response:
    """JSON or HTML fragment carrying the error's status code."""
    payload = error_payload(error, include_details)
    headers = {"X-Request-ID": request_id}

    if wants_json(request):
        return JSONResponse(payload, status_code=error.http_status, headers=headers)

    details = None
    if include_details:
        details = json.dumps(payload["details"], indent=2, ensure_ascii=False)
    html = render_error_fragment(error.title, error.message, details)
    return HTMLResponse(html, status_code=error.http_status, headers=headers)


# =============================================================================
# STAGE 3: DISCONNECT GUARD
# =============================================================================


async def run_until_disconnect(
    pipeline: ConsultationPipeline,
    request: Any,
    prompt: str,
    request_id: str,
    poll_seconds: float = DISCONNECT_POLL_SECONDS,
) -> Optional[PipelineOutcome]:
    """
    Run the pipeline as a task, cancelling it if the client disconnects.

    Returns:
        The outcome, or None when the client went away first
    """
    task = asyncio.create_task(pipeline.run(prompt, request_id=request_id))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_seconds)
            if task in done:
                return task.result()

            if await request.is_disconnected():
                logger.warning("Client disconnected | Abandoning generation")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                return None
    finally:
        if not task.done():
            task.cancel()


# =============================================================================
# STAGE 4: APPLICATION FACTORY
# =============================================================================


def create_app(
    context: PipelineContext,
    gateway: GenerationGateway,
    config: Optional[PipelineConfiguration] = None,
) -> FastAPI:
    """
    Build the FastAPI application around one pipeline.

    Args:
        context: Shared startup resources
        gateway: Generation backend; closed on application shutdown
        config: Service configuration (environment, backend settings)

    Example:
        >>> app = create_app(PipelineContext.load(config), create_generation_client(config), config)
    """
    config = config or PipelineConfiguration()
    pipeline = ConsultationPipeline(context, gateway)
    include_details = not config.is_production

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Consultologist API starting | Environment: {config.environment.value} | "
            f"Provider: {gateway.provider_name}"
        )
        yield
        await gateway.aclose()
        logger.info("Consultologist API stopped")

    app = FastAPI(title="Consultologist", version=__version__, lifespan=lifespan)
    app.state.pipeline = pipeline

    @app.post("/api/chat")
    async def chat(request: Request) -> Response:
        request_id = uuid.uuid4().hex

        with logger.contextualize(request_id=request_id):
            # -----------------------------------------------------------------
            # 4.1 Parse and check the body before entering the pipeline
            # -----------------------------------------------------------------
            body = await request.body()
            if not body.strip():
                error = InputError("Request body is empty. Please provide consultation details.")
                return error_response(error, request, request_id, include_details)

            try:
                payload = json.loads(body)
            except (ValueError, RecursionError):
                error = InputError("Request body contains malformed JSON")
                return error_response(error, request, request_id, include_details)

            try:
                consultation = ConsultationRequest.model_validate(payload)
            except ValidationError:
                received = payload.get("prompt") if isinstance(payload, dict) else payload
                return error_response(
                    EmptyPromptError(received), request, request_id, include_details
                )

            # -----------------------------------------------------------------
            # 4.2 Run the pipeline, abandoning it if the caller leaves
            # -----------------------------------------------------------------
            outcome = await run_until_disconnect(
                pipeline, request, consultation.prompt, request_id
            )
            if outcome is None:
                return Response(
                    status_code=CLIENT_CLOSED_REQUEST, headers={"X-Request-ID": request_id}
                )

            if outcome.succeeded:
                return HTMLResponse(outcome.html, headers={"X-Request-ID": request_id})

            return error_response(outcome.error, request, request_id, include_details)

    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        missing = config.missing_backend_settings()
        return {
            "status": "degraded" if missing else "ok",
            "schema_version": context.schema_document.version,
            "provider": gateway.provider_name,
            "model": gateway.model_name,
        }

    return app


def create_app_from_config(config: PipelineConfiguration) -> FastAPI:
    """Load the context and client from config, then build the app."""
    return create_app(PipelineContext.load(config), create_generation_client(config), config)
