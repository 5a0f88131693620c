"""
Constants for the Consultation Rendering Pipeline

Constant Categories:
    DOMAIN_PREAMBLE        → Fixed domain framing for the system message
    CONTRACT_HEADING       → Introduces the embedded schema
    OUTPUT_REQUIREMENTS    → Output rules appended after the schema
    RESOURCE PATHS         → Bundled schema and template locations
    AZURE SETTINGS         → Environment variable names and defaults
"""

from pathlib import Path
from typing import Dict


# =============================================================================
# STAGE 1: PROMPT TEXT
# =============================================================================
# The system message is assembled as:
#     DOMAIN_PREAMBLE + CONTRACT_HEADING + <schema> + OUTPUT_REQUIREMENTS

DOMAIN_PREAMBLE = """You are Consultologist, an AI assistant specialized in helping oncologists create structured consultation notes for breast cancer patients.

IMPORTANT CONTEXT:
- You are working with breast cancer oncology consultations
- Focus on staging, pathology, receptor status, and treatment planning
- Always consider TNM staging, hormone receptor status, HER2 status, and Oncotype DX scores when available
- Treatment plans should include endocrine therapy, chemotherapy, and radiation considerations
- Use evidence-based treatment recommendations"""

CONTRACT_HEADING = (
    "CRITICAL: You must respond with ONLY a valid JSON object that conforms "
    "to the following structure:"
)

OUTPUT_REQUIREMENTS = """REQUIREMENTS:
- Your response must be ONLY a valid JSON object that strictly conforms to this schema
- Do not include any explanatory text, markdown formatting, or additional commentary
- All required fields must be present and properly formatted
- Do not add fields that the schema does not declare
- Use the exact enum values specified in the schema
- Follow all pattern constraints (e.g., TNM staging patterns, receptor scoring patterns)
- Return only the JSON object, nothing else"""


# =============================================================================
# STAGE 2: BUNDLED RESOURCES
# =============================================================================

RESOURCES_DIR = Path(__file__).resolve().parent.parent / "resources"

DEFAULT_SCHEMA_PATH = RESOURCES_DIR / "mortigen_render_context.schema.json"
DEFAULT_TEMPLATE_PATH = RESOURCES_DIR / "consult_response.html.j2"

# Root keyword carrying the schema's version string
SCHEMA_VERSION_KEYWORD = "x-schema-version"


# =============================================================================
# STAGE 3: GENERATION BACKEND SETTINGS
# =============================================================================

ENV_AZURE_ENDPOINT = "AZURE_OPENAI_ENDPOINT"
ENV_AZURE_DEPLOYMENT = "AZURE_OPENAI_DEPLOYMENT_NAME"
ENV_AZURE_API_VERSION = "AZURE_OPENAI_API_VERSION"
ENV_API_KEY = "OPENAI_API_KEY"
ENV_AUTH_MODE = "AZURE_OPENAI_AUTH_MODE"
ENV_TOKEN_SCOPE = "AZURE_OPENAI_TOKEN_SCOPE"

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"

# Human-readable labels used in health output and logs
PROVIDER_LABELS: Dict[str, str] = {
    "api_key": "azure-openai-key",
    "managed_identity": "azure-openai-identity",
}
