"""
Consultologist

Turns free-text breast oncology consultation requests into schema-validated,
rendered HTML consultation notes. A language model is asked for one JSON
object that follows a canonical schema; nothing it returns reaches the
template until it has passed that schema.

Architecture Overview:
    consultologist/
    ├── core/        → Models, enums, exceptions, configuration (Layer 0 - Pure)
    ├── schema/      → Schema document and compiled validator (Layer 1)
    ├── generation/  → Prompt composition and response decoding (Layer 2)
    ├── clients/     → Azure OpenAI generation gateway (Layer 2 - Infrastructure)
    ├── validation/  → Gate between generated data and rendering (Layer 3)
    ├── rendering/   → Jinja2 presentation template (Layer 4)
    ├── pipeline.py  → Main orchestrator (Layer 5 - Public API)
    ├── api/         → FastAPI host (Layer 6)
    └── cli.py       → Command line (Layer 6)

Quick Start:
    from consultologist import ConsultationPipeline

    pipeline = ConsultationPipeline.from_environment()
    outcome = await pipeline.run("61F postmenopausal, left IDC, pT1c N0 M0 ...")
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================

# Main Entry Point
from consultologist.pipeline import ConsultationPipeline, PipelineContext

# Core Models
from consultologist.core.models import (
    Violation,
    PromptPair,
    GenerationParameters,
    PipelineOutcome,
)

# Enums
from consultologist.core.enums import (
    ErrorKind,
    PipelineState,
    AuthMode,
    AdditionalFieldsPolicy,
)

# Configuration
from consultologist.core.config import PipelineConfiguration

# Schema
from consultologist.schema.validator import ValidatedRecord

__all__ = [
    # Main Entry Point
    "ConsultationPipeline",
    "PipelineContext",
    # Core Models
    "Violation",
    "PromptPair",
    "GenerationParameters",
    "PipelineOutcome",
    "ValidatedRecord",
    # Enums
    "ErrorKind",
    "PipelineState",
    "AuthMode",
    "AdditionalFieldsPolicy",
    # Configuration
    "PipelineConfiguration",
]
