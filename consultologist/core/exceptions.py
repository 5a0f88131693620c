"""
Domain Exceptions for the Consultation Rendering Pipeline

Every failure a consultation request can hit is one of the exceptions below.
Each carries an ErrorKind from the closed taxonomy, so the pipeline boundary
can branch exhaustively instead of stringifying and guessing.

Exception Hierarchy:
    ConsultologistError (base)
    ├── InputError                  → Bad inbound prompt
    │   └── EmptyPromptError
    ├── ConfigurationError          → Missing settings, broken resources
    │   ├── SchemaLoadError
    │   └── TemplateLoadError
    ├── GenerationError             → Generation backend failures
    │   ├── TransportError
    │   │   └── GenerationTimeoutError
    │   ├── ProviderError
    │   │   └── ContentFilteredError
    │   └── EmptyGenerationError
    ├── DecodeError                 → Text is not one JSON object
    ├── SchemaViolationError        → JSON object breaks the schema
    └── RenderError                 → Template failed on a validated record

Usage:
    from consultologist.core.exceptions import SchemaViolationError

    try:
        record = gate.validate(candidate, validator)
    except SchemaViolationError as e:
        logger.error(f"Rejected: {e.summary}")
"""

from typing import Any, Dict, List, Optional, Sequence

from consultologist.core.enums import ErrorKind


# =============================================================================
# STAGE 1: BASE EXCEPTION
# =============================================================================


class ConsultologistError(Exception):
    """
    Base exception for all pipeline errors.

    What it does:
        Provides the shared structure every classified failure carries: a
        human-readable message, an ErrorKind, an HTTP status and a context
        dictionary for server-side diagnostics.

    Attributes:
        message: Human-readable error description (safe to show callers)
        context: Additional debugging context (never shown in production)
        kind: ErrorKind of this failure
        status_code: HTTP status the host should answer with
    """

    kind: ErrorKind = ErrorKind.CONFIGURATION
    status_code: Optional[int] = None

    def __init__(self, message: str, context: Optional[dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format message with context for display."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message

    @property
    def title(self) -> str:
        """Category name for caller-facing payloads."""
        return self.kind.title

    @property
    def http_status(self) -> int:
        """Status code, falling back to the kind's default."""
        return self.status_code or self.kind.default_status_code

    def diagnostic_details(self) -> Dict[str, Any]:
        """
        Structured detail for non-production responses and logs.

        Subclasses extend this with their own payload (violations, raw text).
        """
        return {key: _jsonable(value) for key, value in self.context.items()}


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)


# =============================================================================
# STAGE 2: INPUT ERRORS
# =============================================================================


class InputError(ConsultologistError):
    """
    The inbound request does not carry a usable prompt.

    When raised:
        - Request body empty or not JSON
        - `prompt` missing, not a string, or blank

    The pipeline is never entered and no generation call is made.
    """

    kind = ErrorKind.INPUT


class EmptyPromptError(InputError):
    """
    Prompt composition was asked to wrap absent, empty or non-text input.

    Attributes:
        received_type: Python type name of the rejected value
    """

    def __init__(self, received: Any = None):
        self.received_type = type(received).__name__
        super().__init__(
            "Please provide valid consultation details.",
            context={"received_type": self.received_type},
        )


# =============================================================================
# STAGE 3: CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(ConsultologistError):
    """
    Configuration is incomplete or invalid.

    When raised:
        - Mandatory generation backend settings are missing (raised before
          any network call, naming every missing setting)
        - Numeric or enum settings are out of range
        - Schema or template resources cannot be loaded (subclasses)

    Attributes:
        missing_settings: Names of absent settings, if any
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(
        self,
        message: str,
        context: Optional[dict] = None,
        missing_settings: Optional[Sequence[str]] = None,
    ):
        self.missing_settings: List[str] = list(missing_settings or [])
        if self.missing_settings:
            context = dict(context or {})
            context.setdefault("missing", ", ".join(self.missing_settings))
        super().__init__(message, context=context)


class SchemaLoadError(ConfigurationError):
    """
    The schema document is unreadable, malformed or not a valid JSON Schema.

    Fatal at startup: no request can be served without the schema.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Failed to load consultation schema from {path}: {reason}",
            context={"path": path, "reason": reason},
        )


class TemplateLoadError(ConfigurationError):
    """
    The presentation template is unreadable or does not compile.

    Fatal at startup, same as SchemaLoadError.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Failed to load consultation template from {path}: {reason}",
            context={"path": path, "reason": reason},
        )


# =============================================================================
# STAGE 4: GENERATION ERRORS
# =============================================================================


class GenerationError(ConsultologistError):
    """
    Base exception for generation backend failures.

    Attributes:
        provider: Name of the backend strategy that failed
        original_error: The wrapped SDK exception, if any
    """

    kind = ErrorKind.PROVIDER

    def __init__(
        self,
        message: str,
        provider: str,
        original_error: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.provider = provider
        self.original_error = original_error
        merged = {"provider": provider}
        if original_error is not None:
            merged["original_error"] = f"{type(original_error).__name__}: {original_error}"
        merged.update(context or {})
        super().__init__(message, context=merged)


class TransportError(GenerationError):
    """
    The backend could not be reached or refused our credentials.

    When raised:
        - DNS / connection / TLS failures
        - Authentication rejected (401 / 403)
        - Token acquisition failed for the managed identity
    """

    kind = ErrorKind.TRANSPORT


class GenerationTimeoutError(TransportError):
    """
    The generation call exceeded its configured time bound.

    Attributes:
        timeout_seconds: The bound that was exceeded
    """

    status_code = 504

    def __init__(self, provider: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Generation request timed out after {timeout_seconds}s",
            provider=provider,
            context={"timeout_seconds": timeout_seconds},
        )


class ProviderError(GenerationError):
    """
    The backend was reached and reported an error.

    Attributes:
        provider_status: HTTP status the provider answered with
        provider_code: Provider error code (e.g. "content_filter", "429")
    """

    kind = ErrorKind.PROVIDER

    def __init__(
        self,
        message: str,
        provider: str,
        provider_status: Optional[int] = None,
        provider_code: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.provider_status = provider_status
        self.provider_code = provider_code
        super().__init__(
            message,
            provider=provider,
            original_error=original_error,
            context={"provider_status": provider_status, "provider_code": provider_code},
        )


class ContentFilteredError(ProviderError):
    """The provider's safety system withheld the completion."""

    def __init__(self, provider: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(
            f"Content filtered by {provider} safety settings: {reason or 'unknown reason'}",
            provider=provider,
            provider_code="content_filter",
        )


class EmptyGenerationError(GenerationError):
    """The backend call succeeded but returned no text content."""

    kind = ErrorKind.EMPTY_GENERATION

    def __init__(self, provider: str, finish_reason: Optional[str] = None):
        self.finish_reason = finish_reason
        super().__init__(
            f"No response content from {provider}",
            provider=provider,
            context={"finish_reason": finish_reason},
        )


# =============================================================================
# STAGE 5: DECODE ERRORS
# =============================================================================


class DecodeError(ConsultologistError):
    """
    Generated text is not exactly one JSON object.

    Attributes:
        raw_text: The original text, kept for diagnostics
        reason: What the parser rejected
    """

    kind = ErrorKind.DECODE

    # Cap for the excerpt returned in non-production responses
    RAW_EXCERPT_LIMIT = 2000

    def __init__(self, raw_text: str, reason: str):
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(
            "Invalid JSON response from AI",
            context={"reason": reason, "raw_length": len(raw_text) if raw_text else 0},
        )

    def diagnostic_details(self) -> Dict[str, Any]:
        details = super().diagnostic_details()
        details["raw_text"] = (self.raw_text or "")[: self.RAW_EXCERPT_LIMIT]
        return details


# =============================================================================
# STAGE 6: SCHEMA VIOLATION ERRORS
# =============================================================================


class SchemaViolationError(ConsultologistError):
    """
    Decoded value failed structural validation.

    Attributes:
        violations: Ordered tuple of Violation objects
        summary: "path: message" pairs joined with ", " in violation order
    """

    kind = ErrorKind.SCHEMA_VIOLATION

    def __init__(self, violations: Sequence[Any], summary: str):
        self.violations = tuple(violations)
        self.summary = summary
        super().__init__(
            f"AI response does not match expected format: {summary}",
            context={"violation_count": len(self.violations)},
        )

    def diagnostic_details(self) -> Dict[str, Any]:
        details = super().diagnostic_details()
        details["violations"] = [v.to_dict() for v in self.violations]
        return details


# =============================================================================
# STAGE 7: RENDER ERRORS
# =============================================================================


class RenderError(ConsultologistError):
    """
    The template failed on a record that already passed validation.

    Indicates drift between template and schema; logged as critical.
    """

    kind = ErrorKind.RENDER

    def __init__(self, reason: str, original_error: Optional[BaseException] = None):
        self.reason = reason
        self.original_error = original_error
        super().__init__(
            f"Failed to render consultation: {reason}",
            context={
                "error_type": type(original_error).__name__ if original_error else None
            },
        )
