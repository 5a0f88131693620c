"""
Domain Models for the Consultation Rendering Pipeline

Immutable value objects passed between pipeline stages.

Model Hierarchy:
    Violation            → One structural defect found by the validator
    PromptPair           → System + user messages sent to the generation backend
    GenerationParameters → Sampling and format settings for one generation call
    PipelineOutcome      → Terminal result of one consultation request

The validated record type lives in consultologist.schema.validator, next to
the only code allowed to construct it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from consultologist.core.enums import ConstraintKind, ErrorKind, PipelineState
from consultologist.core.exceptions import ConsultologistError


# =============================================================================
# STAGE 1: VIOLATION
# =============================================================================


@dataclass(frozen=True)
class Violation:
    """
    One structural defect in a candidate consultation record.

    Attributes:
        path: Dot/bracket-qualified location, e.g. "front_matter.receptors"
              or "recommendations[2].text"; "root" for the document itself
        message: Human-readable description of the defect
        constraint: Which schema constraint was broken

    Example:
        >>> v = Violation("front_matter.receptors", "is required", ConstraintKind.REQUIRED)
        >>> v.as_summary_item()
        'front_matter.receptors: is required'
    """

    path: str
    message: str
    constraint: ConstraintKind

    def as_summary_item(self) -> str:
        """Render as "path: message" for the gate's summary string."""
        return f"{self.path}: {self.message}"

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "message": self.message,
            "constraint": self.constraint.value,
        }


# =============================================================================
# STAGE 2: GENERATION REQUEST MODELS
# =============================================================================


@dataclass(frozen=True)
class PromptPair:
    """
    Messages sent to the generation backend.

    Attributes:
        system: Domain framing plus the schema contract (deterministic)
        user: Caller's free text, unmodified
    """

    system: str
    user: str

    def to_messages(self) -> List[Dict[str, str]]:
        """Chat-completions message list."""
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


@dataclass(frozen=True)
class GenerationParameters:
    """
    Sampling and format settings for one generation call.

    Attributes:
        temperature: Sampling temperature (0.0-2.0)
        max_tokens: Upper bound on completion tokens
        response_format: Provider response format type; "json_object"
                         asks the backend for structured output
    """

    temperature: float = 0.7
    max_tokens: int = 4096
    response_format: str = "json_object"

    def to_request_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for chat.completions.create()."""
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": self.response_format},
        }


# =============================================================================
# STAGE 3: PIPELINE OUTCOME
# =============================================================================


@dataclass(frozen=True)
class PipelineOutcome:
    """
    Terminal result of one consultation request.

    Exactly one of `html` / `error` is set: `html` when the state is
    RENDERED, `error` for every failure state.

    Attributes:
        state: Terminal PipelineState reached
        request_id: Identifier bound into logs for this request
        html: Rendered document (success only)
        error: Classified failure (failure only)
    """

    state: PipelineState
    request_id: str
    html: Optional[str] = None
    error: Optional[ConsultologistError] = field(default=None, compare=False)

    def __post_init__(self):
        if self.state is PipelineState.RENDERED:
            if self.html is None or self.error is not None:
                raise ValueError("A rendered outcome carries html and no error")
        elif self.state.is_failure:
            if self.error is None or self.html is not None:
                raise ValueError("A failed outcome carries an error and no html")
        else:
            raise ValueError(f"Outcome state must be terminal, got {self.state.value}")

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.RENDERED

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None
