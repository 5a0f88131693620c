"""
Core Layer - Domain Models, Enums, Exceptions and Configuration

This is the innermost layer with no dependencies on other pipeline layers.
Everything here is pure data plus the loguru sink setup.

Submodules:
    models.py      → Violation, PromptPair, GenerationParameters, PipelineOutcome
    enums.py       → ErrorKind, ConstraintKind, PipelineState, AuthMode, ...
    exceptions.py  → Classified exception hierarchy
    config.py      → PipelineConfiguration
    constants.py   → Prompt text, resource paths, setting names
    log_setup.py   → configure_logging()

Dependency Rule:
    core/ depends on NOTHING else in consultologist.
    All other layers may depend on core/.
"""

from consultologist.core.models import (
    Violation,
    PromptPair,
    GenerationParameters,
    PipelineOutcome,
)
from consultologist.core.enums import (
    ErrorKind,
    ConstraintKind,
    AdditionalFieldsPolicy,
    AuthMode,
    PipelineState,
    DeploymentEnvironment,
)
from consultologist.core.config import PipelineConfiguration

__all__ = [
    # Models
    "Violation",
    "PromptPair",
    "GenerationParameters",
    "PipelineOutcome",
    # Enums
    "ErrorKind",
    "ConstraintKind",
    "AdditionalFieldsPolicy",
    "AuthMode",
    "PipelineState",
    "DeploymentEnvironment",
    # Configuration
    "PipelineConfiguration",
]
