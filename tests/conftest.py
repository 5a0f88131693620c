import asyncio
import copy
from typing import Any, Callable, Dict, List, Optional

import pytest

from consultologist.core.config import PipelineConfiguration
from consultologist.core.constants import DEFAULT_SCHEMA_PATH, DEFAULT_TEMPLATE_PATH
from consultologist.core.enums import AdditionalFieldsPolicy, AuthMode
from consultologist.core.models import GenerationParameters, PromptPair
from consultologist.pipeline import PipelineContext
from consultologist.rendering.template_renderer import load_template
from consultologist.schema.registry import load_schema_document
from consultologist.schema.validator import compile_validator


VALID_RECORD: Dict[str, Any] = {
    "front_matter": {
        "consult_date": "2026-03-14",
        "patient": {
            "age": 58,
            "sex": "female",
            "menopausal_status": "postmenopausal",
            "ecog_performance_status": 0,
        },
        "diagnosis": {
            "laterality": "left",
            "histology": "invasive ductal carcinoma",
            "grade": 2,
            "tumor_size_cm": 2.3,
            "nodes_examined": 3,
            "nodes_positive": 0,
        },
        "staging": {"tnm": "pT2 N0 M0", "ajcc_stage": "IIA"},
        "receptors": {
            "er": {"status": "positive", "allred_score": "8/8", "percent_positive": 95},
            "pr": {"status": "positive", "allred_score": "7/8"},
            "her2": {"status": "negative", "ihc_score": "1+"},
            "ki67_percent": 15,
        },
        "genomics": {"oncotype_dx_recurrence_score": 18},
    },
    "assessment": {
        "summary": "Hormone receptor positive, HER2 negative early breast cancer after lumpectomy.",
        "risk_category": "intermediate",
        "key_findings": ["Node negative", "Oncotype DX recurrence score 18"],
    },
    "treatment_plan": {
        "endocrine_therapy": {"recommended": True, "agent": "letrozole", "duration_years": 5},
        "chemotherapy": {
            "recommended": False,
            "regimen": None,
            "rationale": "Low expected benefit at this recurrence score in a postmenopausal patient.",
        },
        "radiation": {"recommended": True, "details": "Whole breast radiation following lumpectomy."},
    },
    "recommendations": [
        {"category": "systemic therapy", "text": "Start letrozole 2.5 mg daily."},
        {"category": "radiation", "text": "Refer to radiation oncology."},
        {"category": "supportive care", "text": "Baseline DEXA scan before aromatase inhibitor."},
    ],
    "follow_up": {"interval_months": 3, "notes": "Review tolerance of endocrine therapy."},
}

MINIMAL_RECORD: Dict[str, Any] = {
    "front_matter": {
        "patient": {"age": 44, "sex": "female"},
        "diagnosis": {"laterality": "right", "histology": "invasive lobular carcinoma"},
        "staging": {"tnm": "cT1c N0 M0", "ajcc_stage": "IA"},
        "receptors": {
            "er": {"status": "positive", "allred_score": "6/8"},
            "pr": {"status": "negative", "allred_score": "0/8"},
            "her2": {"status": "low"},
        },
    },
    "assessment": {"summary": "Small node negative lobular carcinoma.", "risk_category": "low"},
    "treatment_plan": {
        "endocrine_therapy": {"recommended": True},
        "chemotherapy": {"recommended": False},
        "radiation": {"recommended": False},
    },
    "recommendations": [{"category": "surgery", "text": "Proceed with lumpectomy."}],
}


class StubGateway:
    """GenerationGateway double returning canned text or raising a canned error."""

    def __init__(self, text: Optional[str] = None, error: Optional[BaseException] = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: List[PromptPair] = []
        self.closed = 0

    async def generate(self, prompt: PromptPair, params: GenerationParameters) -> str:
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    async def aclose(self) -> None:
        self.closed += 1

    @property
    def provider_name(self) -> str:
        return "stub"

    @property
    def model_name(self) -> str:
        return "stub-deployment"


@pytest.fixture
def make_record() -> Callable[..., Dict[str, Any]]:
    def _make(minimal: bool = False) -> Dict[str, Any]:
        return copy.deepcopy(MINIMAL_RECORD if minimal else VALID_RECORD)

    return _make


@pytest.fixture(scope="session")
def schema_document():
    return load_schema_document(DEFAULT_SCHEMA_PATH)


@pytest.fixture(scope="session")
def compiled_validator(schema_document):
    return compile_validator(schema_document, AdditionalFieldsPolicy.STRICT)


@pytest.fixture(scope="session")
def lenient_validator(schema_document):
    return compile_validator(schema_document, AdditionalFieldsPolicy.LENIENT)


@pytest.fixture(scope="session")
def consult_template():
    return load_template(DEFAULT_TEMPLATE_PATH)


@pytest.fixture
def validated_record(compiled_validator, make_record):
    return compiled_validator.check(make_record()).record


@pytest.fixture
def pipeline_context(schema_document, compiled_validator, consult_template):
    return PipelineContext(
        schema_document=schema_document,
        validator=compiled_validator,
        template=consult_template,
        parameters=GenerationParameters(),
    )


@pytest.fixture
def stub_gateway_factory() -> Callable[..., StubGateway]:
    return StubGateway


@pytest.fixture
def backend_config() -> PipelineConfiguration:
    return PipelineConfiguration(
        azure_endpoint="https://contoso.openai.azure.com/",
        deployment_name="gpt-4o",
        api_version="2024-10-21",
        api_key="test-key",
        auth_mode=AuthMode.API_KEY,
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Environment without any consultologist or Azure OpenAI settings."""
    for name in (
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_DEPLOYMENT_NAME",
        "AZURE_OPENAI_API_VERSION",
        "OPENAI_API_KEY",
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_AUTH_MODE",
        "AZURE_OPENAI_TOKEN_SCOPE",
        "GENERATION_TIMEOUT_SECONDS",
        "GENERATION_TEMPERATURE",
        "GENERATION_MAX_TOKENS",
        "CONSULTOLOGIST_SCHEMA_PATH",
        "CONSULTOLOGIST_TEMPLATE_PATH",
        "CONSULTOLOGIST_ENVIRONMENT",
        "ADDITIONAL_FIELDS_POLICY",
        "LOG_LEVEL",
        "LOG_JSON",
        "HOST",
        "PORT",
    ):
        # setenv first so values a test loads from a .env file are undone too
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # No stray .env in the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch
