"""
Prompt Builder - Schema-Constrained Generation Prompts

This module constructs the system and user messages sent to the generation
backend. The system message embeds the full schema as a normative contract so
the model is instructed to answer with exactly one conforming JSON object.

Prompt Structure:
    system = DOMAIN_PREAMBLE
             CONTRACT_HEADING
             <schema canonical text>
             OUTPUT_REQUIREMENTS
    user   = caller's free text, unmodified

Pipeline Position:
    Request → [PromptBuilder] → GenerationGateway
               ^^^^^^^^^^^^^
               You are here
"""

from typing import Any

from consultologist.core.constants import (
    CONTRACT_HEADING,
    DOMAIN_PREAMBLE,
    OUTPUT_REQUIREMENTS,
)
from consultologist.core.exceptions import EmptyPromptError
from consultologist.core.models import PromptPair
from consultologist.schema.registry import SchemaDocument


# =============================================================================
# STAGE 1: SYSTEM MESSAGE TEMPLATE
# =============================================================================

SYSTEM_MESSAGE_TEMPLATE = """{preamble}

{contract_heading}

{schema_text}

{requirements}"""


# =============================================================================
# STAGE 2: PROMPT BUILDER CLASS
# =============================================================================


class PromptBuilder:
    """
    Composes the PromptPair for one consultation request.

    What it does:
        Wraps the caller's consultation text with a deterministic system
        message built from the domain preamble and the schema document.

    How it works:
        STAGE 2.1: Reject absent, non-text or blank input
        STAGE 2.2: Build (or reuse) the system message
        STAGE 2.3: Pair it with the caller's text, unmodified

    Example:
        >>> builder = PromptBuilder(schema_document)
        >>> pair = builder.build("55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative")
        >>> pair.user
        '55F, Stage IIA, ER 8/8 PR 7/8 HER2 negative'
    """

    def __init__(self, schema_document: SchemaDocument, domain_preamble: str = DOMAIN_PREAMBLE):
        self._schema_document = schema_document
        self._domain_preamble = domain_preamble
        # The system message depends only on immutable inputs, so build it once.
        self._system_message = build_system_message(schema_document, domain_preamble)

    @property
    def system_message(self) -> str:
        return self._system_message

    def build(self, user_text: Any) -> PromptPair:
        """
        Build the prompt pair for user_text.

        Raises:
            EmptyPromptError: If user_text is None, not a string, or blank
        """
        _require_text(user_text)
        return PromptPair(system=self._system_message, user=user_text)


# =============================================================================
# STAGE 3: FUNCTIONAL API
# =============================================================================


def build_system_message(schema_document: SchemaDocument, domain_preamble: str) -> str:
    """Deterministic system message: preamble, contract heading, schema, requirements."""
    return SYSTEM_MESSAGE_TEMPLATE.format(
        preamble=domain_preamble.strip(),
        contract_heading=CONTRACT_HEADING,
        schema_text=schema_document.canonical_text,
        requirements=OUTPUT_REQUIREMENTS,
    )


def compose(schema_document: SchemaDocument, domain_preamble: str, user_text: Any) -> PromptPair:
    """
    Compose the prompt pair from (schema, preamble, user text).

    Pure function; PromptBuilder caches the system message for repeated use.

    Raises:
        EmptyPromptError: If user_text is None, not a string, or blank
    """
    _require_text(user_text)
    return PromptPair(
        system=build_system_message(schema_document, domain_preamble),
        user=user_text,
    )


def _require_text(user_text: Any) -> None:
    if not isinstance(user_text, str) or not user_text.strip():
        raise EmptyPromptError(user_text)
