"""
Generation Layer - Prompt Composition and Response Decoding

Submodules:
    prompt_builder.py   → PromptBuilder, compose()
    response_decoder.py → decode()

Dependency Rule:
    This layer depends on: core, schema
    This layer is used by: pipeline (orchestrator)
"""

from consultologist.generation.prompt_builder import PromptBuilder, compose
from consultologist.generation.response_decoder import decode

__all__ = [
    "PromptBuilder",
    "compose",
    "decode",
]
