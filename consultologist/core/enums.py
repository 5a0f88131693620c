"""
Enumerations for the Consultation Rendering Pipeline

This module defines the closed sets of categorical values used throughout
the pipeline. Every catch site, log line and HTTP response branches on one
of these enums instead of comparing free-form strings.

Enumeration Categories:
    ErrorKind              → Closed taxonomy of request failures
    ConstraintKind         → Which schema constraint a violation broke
    AdditionalFieldsPolicy → Strict vs lenient handling of undeclared fields
    AuthMode               → Generation backend authentication strategy
    PipelineState          → Per-request pipeline state machine
    DeploymentEnvironment  → Controls diagnostic exposure in responses
"""

from enum import Enum


# =============================================================================
# STAGE 1: ERROR TAXONOMY
# =============================================================================
# Mutually exclusive failure categories. Each has a distinct title and
# HTTP status so hosts can map them without inspecting messages.


class ErrorKind(str, Enum):
    """
    Closed enumeration of request failure categories.

    What it does:
        Names every way a single consultation request can fail, from a bad
        inbound prompt to a template that cannot render a validated record.

    Mapping:
        INPUT             → 400 (caller error, pipeline never entered)
        CONFIGURATION     → 500 (missing backend settings, broken resources)
        TRANSPORT         → 502 (network / authentication failure)
        PROVIDER          → 502 (backend reachable, reported an error)
        EMPTY_GENERATION  → 502 (backend answered with no text)
        DECODE            → 502 (text is not one JSON object)
        SCHEMA_VIOLATION  → 502 (JSON object breaks the schema)
        RENDER            → 500 (template drifted from schema)
    """

    INPUT = "input"
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    PROVIDER = "provider"
    EMPTY_GENERATION = "empty_generation"
    DECODE = "decode"
    SCHEMA_VIOLATION = "schema_violation"
    RENDER = "render"

    @property
    def title(self) -> str:
        """Human-readable category name shown to callers."""
        return _ERROR_TITLES[self]

    @property
    def default_status_code(self) -> int:
        """HTTP status used when the error does not override it."""
        return _ERROR_STATUS_CODES[self]


_ERROR_TITLES = {
    ErrorKind.INPUT: "Invalid Input",
    ErrorKind.CONFIGURATION: "Configuration Error",
    ErrorKind.TRANSPORT: "Generation Service Unreachable",
    ErrorKind.PROVIDER: "Generation Service Error",
    ErrorKind.EMPTY_GENERATION: "Empty Generation",
    ErrorKind.DECODE: "Unreadable Generation",
    ErrorKind.SCHEMA_VIOLATION: "Invalid Consultation Structure",
    ErrorKind.RENDER: "Rendering Error",
}

_ERROR_STATUS_CODES = {
    ErrorKind.INPUT: 400,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.PROVIDER: 502,
    ErrorKind.EMPTY_GENERATION: 502,
    ErrorKind.DECODE: 502,
    ErrorKind.SCHEMA_VIOLATION: 502,
    ErrorKind.RENDER: 500,
}


# =============================================================================
# STAGE 2: SCHEMA VALIDATION ENUMERATIONS
# =============================================================================


class ConstraintKind(str, Enum):
    """
    The kind of schema constraint a Violation broke.

    Values:
        TYPE          → JSON type mismatch (string expected, got number)
        REQUIRED      → Required field absent
        ENUM          → Value outside the declared set (enum / const)
        PATTERN       → String does not match the field's regex
        BOUND         → Numeric, length or item-count bound exceeded
        FORMAT        → Declared format (date, email) not satisfied
        UNKNOWN_FIELD → Undeclared field under the strict policy
        STRUCTURE     → Any other structural keyword
    """

    TYPE = "type"
    REQUIRED = "required"
    ENUM = "enum"
    PATTERN = "pattern"
    BOUND = "bound"
    FORMAT = "format"
    UNKNOWN_FIELD = "unknown_field"
    STRUCTURE = "structure"


class AdditionalFieldsPolicy(str, Enum):
    """
    Global policy for fields the schema does not declare.

    STRICT rejects undeclared fields at every nesting level. LENIENT accepts
    them and passes them forward unchanged. The policy is applied to every
    object in the schema when the validator is compiled.
    """

    STRICT = "strict"
    LENIENT = "lenient"

    @classmethod
    def from_string(cls, value: str) -> "AdditionalFieldsPolicy":
        """
        Case-insensitive conversion.

        Raises:
            ValueError: If value names no policy
        """
        normalized = value.strip().lower()
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ValueError(
            f"Invalid additional fields policy: '{value}'. "
            f"Valid options: {[p.value for p in cls]}"
        )


# =============================================================================
# STAGE 3: GENERATION BACKEND ENUMERATIONS
# =============================================================================


class AuthMode(str, Enum):
    """
    Authentication strategy for the generation backend.

    API_KEY          → Static key sent with every request
    MANAGED_IDENTITY → Bearer token from an Azure credential, refreshed on demand
    """

    API_KEY = "api_key"
    MANAGED_IDENTITY = "managed_identity"

    @classmethod
    def from_string(cls, value: str) -> "AuthMode":
        """
        Convert string to AuthMode. Accepts a few common spellings.

        Raises:
            ValueError: If value names no strategy
        """
        normalized = value.strip().lower().replace("-", "_")
        aliases = {
            "key": cls.API_KEY,
            "apikey": cls.API_KEY,
            "identity": cls.MANAGED_IDENTITY,
            "entra": cls.MANAGED_IDENTITY,
            "aad": cls.MANAGED_IDENTITY,
        }
        if normalized in aliases:
            return aliases[normalized]
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(
            f"Invalid auth mode: '{value}'. Valid options: {[m.value for m in cls]}"
        )


# =============================================================================
# STAGE 4: PIPELINE STATE MACHINE
# =============================================================================


class PipelineState(str, Enum):
    """
    States of a single consultation request.

    Forward path:
        RECEIVED → COMPOSED → GENERATED → DECODED → VALIDATED → RENDERED

    Terminal failures:
        INPUT_REJECTED     (from RECEIVED)
        GENERATION_FAILED  (from COMPOSED)
        DECODE_FAILED      (from GENERATED)
        VALIDATION_FAILED  (from DECODED)
        RENDER_FAILED      (from VALIDATED)

    RENDERED is the only success terminal. No state is re-entered.
    """

    RECEIVED = "received"
    COMPOSED = "composed"
    GENERATED = "generated"
    DECODED = "decoded"
    VALIDATED = "validated"
    RENDERED = "rendered"

    INPUT_REJECTED = "input_rejected"
    GENERATION_FAILED = "generation_failed"
    DECODE_FAILED = "decode_failed"
    VALIDATION_FAILED = "validation_failed"
    RENDER_FAILED = "render_failed"

    @property
    def is_terminal(self) -> bool:
        """True for RENDERED and every failure state."""
        return self in _TERMINAL_STATES

    @property
    def is_failure(self) -> bool:
        """True for the failure terminals."""
        return self in _TERMINAL_STATES and self is not PipelineState.RENDERED


_TERMINAL_STATES = frozenset(
    {
        PipelineState.RENDERED,
        PipelineState.INPUT_REJECTED,
        PipelineState.GENERATION_FAILED,
        PipelineState.DECODE_FAILED,
        PipelineState.VALIDATION_FAILED,
        PipelineState.RENDER_FAILED,
    }
)


# =============================================================================
# STAGE 5: DEPLOYMENT ENVIRONMENT
# =============================================================================


class DeploymentEnvironment(str, Enum):
    """Where the service runs. Production hides diagnostic detail from callers."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "DeploymentEnvironment":
        normalized = value.strip().lower()
        if normalized in ("prod", "production"):
            return cls.PRODUCTION
        if normalized in ("dev", "development", "local", "test", "staging"):
            return cls.DEVELOPMENT
        raise ValueError(
            f"Invalid environment: '{value}'. Valid options: {[e.value for e in cls]}"
        )
