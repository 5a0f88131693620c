"""
Consultation Pipeline - Main Orchestrator

This is the PUBLIC API entry point for turning a free-text consultation
request into a rendered HTML consultation note. It coordinates all layers
(generation, clients, validation, rendering) for one request at a time.

Architecture Diagram:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       ConsultationPipeline                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   ┌─────────┐   ┌─────────┐   ┌─────────┐   ┌─────────┐   ┌──────┐  │
    │   │ Compose │ → │Generate │ → │ Decode  │ → │  Gate   │ → │Render│  │
    │   └─────────┘   └─────────┘   └─────────┘   └─────────┘   └──────┘  │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

State Machine:
    RECEIVED → COMPOSED → GENERATED → DECODED → VALIDATED → RENDERED
    Each stage has exactly one failure terminal; no state is re-entered and
    no stage is retried.

Usage:
    from consultologist import ConsultationPipeline, PipelineContext

    context = PipelineContext.load(config)
    pipeline = ConsultationPipeline(context, create_generation_client(config))
    outcome = await pipeline.run("62F, left breast IDC, pT2 N0 M0 ...")
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from consultologist.clients.factory import create_generation_client
from consultologist.clients.llm_client import GenerationGateway
from consultologist.core.config import PipelineConfiguration
from consultologist.core.constants import DOMAIN_PREAMBLE
from consultologist.core.enums import PipelineState
from consultologist.core.exceptions import (
    ConfigurationError,
    ConsultologistError,
    DecodeError,
    GenerationError,
    InputError,
    RenderError,
    SchemaViolationError,
    TransportError,
)
from consultologist.core.models import GenerationParameters, PipelineOutcome
from consultologist.generation.prompt_builder import PromptBuilder
from consultologist.generation.response_decoder import decode
from consultologist.rendering.template_renderer import ConsultTemplate, load_template, render
from consultologist.schema.registry import SchemaDocument, load_schema_document
from consultologist.schema.validator import CompiledValidator, compile_validator
from consultologist.validation.validation_gate import ValidationGate


# =============================================================================
# STAGE 1: PIPELINE CONTEXT
# =============================================================================


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable, process-wide resources shared by every request.

    Attributes:
        schema_document: Canonical schema (prompt contract and validator source)
        validator: Compiled validator under the configured policy
        template: Compiled presentation template
        parameters: Sampling parameters for every generation call
        domain_preamble: Domain framing placed before the schema contract
    """

    schema_document: SchemaDocument
    validator: CompiledValidator
    template: ConsultTemplate
    parameters: GenerationParameters
    domain_preamble: str = DOMAIN_PREAMBLE

    @classmethod
    def load(cls, config: PipelineConfiguration) -> "PipelineContext":
        """
        Build the context once at startup.

        STAGE 1: Load and check the schema document
        STAGE 2: Compile the validator under the additional fields policy
        STAGE 3: Load and compile the template

        Raises:
            SchemaLoadError: If the schema cannot be loaded (fatal)
            TemplateLoadError: If the template cannot be loaded (fatal)
        """
        schema_document = load_schema_document(config.schema_path)
        validator = compile_validator(schema_document, config.additional_fields_policy)
        template = load_template(config.template_path)

        logger.info(
            f"PipelineContext loaded | Schema: {schema_document.schema_id} "
            f"v{schema_document.version} | Policy: {config.additional_fields_policy.value}"
        )
        return cls(
            schema_document=schema_document,
            validator=validator,
            template=template,
            parameters=config.generation_parameters(),
        )


# =============================================================================
# STAGE 2: PIPELINE CLASS
# =============================================================================


class ConsultationPipeline:
    """
    Runs one consultation request through compose, generate, decode, gate
    and render.

    What it does:
        Converts every classified failure into a terminal PipelineOutcome so
        hosts never have to catch pipeline exceptions. Cancellation of the
        awaiting task is the only thing that escapes run().

    How it works:
        STAGE 2.1: Compose the prompt (InputError → INPUT_REJECTED)
        STAGE 2.2: Await the gateway (→ GENERATION_FAILED)
        STAGE 2.3: Decode the text (→ DECODE_FAILED)
        STAGE 2.4: Admit through the gate (→ VALIDATION_FAILED)
        STAGE 2.5: Render (→ RENDER_FAILED, logged as critical)

        An unclassified exception ends the request in the failure state of
        the stage that raised it.

    Example:
        >>> outcome = await pipeline.run("45F, right breast ILC ...")
        >>> outcome.state
        <PipelineState.RENDERED: 'rendered'>
    """

    def __init__(self, context: PipelineContext, gateway: GenerationGateway):
        """
        Args:
            context: Shared startup resources
            gateway: Generation backend (any GenerationGateway)
        """
        self._context = context
        self._gateway = gateway
        self._prompt_builder = PromptBuilder(context.schema_document, context.domain_preamble)
        self._gate = ValidationGate(context.validator)

        # Tracking state
        self._requests_handled = 0
        self._requests_rendered = 0

        logger.info(
            f"ConsultationPipeline initialized | Provider: {gateway.provider_name} | "
            f"Model: {gateway.model_name}"
        )

    # =========================================================================
    # STAGE 3: MAIN API
    # =========================================================================

    async def run(self, prompt: object, request_id: Optional[str] = None) -> PipelineOutcome:
        """
        Process one consultation request.

        Args:
            prompt: Caller's consultation text
            request_id: Identifier bound into log records (generated if absent)

        Returns:
            Terminal PipelineOutcome: html on RENDERED, error otherwise
        """
        request_id = request_id or uuid.uuid4().hex
        self._requests_handled += 1

        with logger.contextualize(request_id=request_id):
            logger.info("Consultation request received")

            # Terminal state for anything unclassified raised by the current stage
            stage = PipelineState.INPUT_REJECTED
            text: Optional[str] = None
            try:
                # -------------------------------------------------------------
                # 2.1 Compose
                # -------------------------------------------------------------
                try:
                    prompt_pair = self._prompt_builder.build(prompt)
                except InputError as e:
                    return self._fail(PipelineState.INPUT_REJECTED, e, request_id)

                # -------------------------------------------------------------
                # 2.2 Generate
                # -------------------------------------------------------------
                stage = PipelineState.GENERATION_FAILED
                try:
                    text = await self._gateway.generate(prompt_pair, self._context.parameters)
                except (GenerationError, ConfigurationError) as e:
                    return self._fail(PipelineState.GENERATION_FAILED, e, request_id)

                # -------------------------------------------------------------
                # 2.3 Decode
                # -------------------------------------------------------------
                stage = PipelineState.DECODE_FAILED
                try:
                    candidate = decode(text)
                except DecodeError as e:
                    return self._fail(PipelineState.DECODE_FAILED, e, request_id)

                # -------------------------------------------------------------
                # 2.4 Validate
                # -------------------------------------------------------------
                stage = PipelineState.VALIDATION_FAILED
                try:
                    record = self._gate.admit(candidate)
                except SchemaViolationError as e:
                    return self._fail(PipelineState.VALIDATION_FAILED, e, request_id)

                # -------------------------------------------------------------
                # 2.5 Render
                # -------------------------------------------------------------
                stage = PipelineState.RENDER_FAILED
                try:
                    html = render(self._context.template, record)
                except RenderError as e:
                    return self._fail(PipelineState.RENDER_FAILED, e, request_id)
            except Exception as e:
                return self._fail(stage, self._classify_unexpected(stage, e, text), request_id)

            self._requests_rendered += 1
            logger.info(f"Consultation rendered | Length: {len(html)} chars")
            return PipelineOutcome(
                state=PipelineState.RENDERED, request_id=request_id, html=html
            )

    # =========================================================================
    # STAGE 4: FACTORY METHODS
    # =========================================================================

    @classmethod
    def from_configuration(cls, config: PipelineConfiguration) -> "ConsultationPipeline":
        """Build context and generation client from one configuration."""
        return cls(PipelineContext.load(config), create_generation_client(config))

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None) -> "ConsultationPipeline":
        """
        Create pipeline from environment configuration.

        Raises:
            ConfigurationError: If settings are out of range or resources fail to load
        """
        config = PipelineConfiguration.from_environment(env_file=env_file)
        return cls.from_configuration(config)

    # =========================================================================
    # STAGE 5: PRIVATE HELPERS
    # =========================================================================

    def _fail(
        self, state: PipelineState, error: ConsultologistError, request_id: str
    ) -> PipelineOutcome:
        if state is PipelineState.RENDER_FAILED:
            logger.critical(f"Template failed on a validated record | {error}")
        elif state is PipelineState.INPUT_REJECTED:
            logger.info(f"Request rejected | {error.message}")
        elif state is PipelineState.VALIDATION_FAILED:
            logger.warning(f"Generation rejected by schema | {error.message}")
        else:
            logger.error(f"Pipeline failed | State: {state.value} | {error}")

        if isinstance(error, DecodeError):
            logger.debug(f"Undecodable generation text | {error.raw_text[:500]!r}")

        return PipelineOutcome(state=state, request_id=request_id, error=error)

    def _classify_unexpected(
        self, stage: PipelineState, error: Exception, text: Optional[str]
    ) -> ConsultologistError:
        """Wrap an unclassified exception in the error type of the stage that raised it."""
        logger.opt(exception=error).error(
            f"Unexpected {type(error).__name__} | Stage: {stage.value}"
        )
        reason = f"{type(error).__name__}: {error}"

        if stage is PipelineState.INPUT_REJECTED:
            return InputError(
                "Could not compose a prompt from the consultation details",
                context={"error_type": type(error).__name__},
            )
        if stage is PipelineState.GENERATION_FAILED:
            provider = self._gateway.provider_name
            return TransportError(
                f"Unexpected error calling {provider}", provider=provider, original_error=error
            )
        if stage is PipelineState.DECODE_FAILED:
            return DecodeError(text or "", reason)
        if stage is PipelineState.VALIDATION_FAILED:
            return SchemaViolationError((), reason)
        return RenderError(reason, original_error=error)

    # =========================================================================
    # STAGE 6: PROPERTIES AND METRICS
    # =========================================================================

    @property
    def context(self) -> PipelineContext:
        return self._context

    @property
    def gateway(self) -> GenerationGateway:
        return self._gateway

    @property
    def requests_handled(self) -> int:
        return self._requests_handled

    @property
    def requests_rendered(self) -> int:
        """Requests that reached RENDERED."""
        return self._requests_rendered
