"""
Validation Layer - Gate Between Generated Data and Presentation

Submodules:
    validation_gate.py → ValidationGate, validate()

Dependency Rule:
    This layer depends on: core, schema
    This layer is used by: pipeline
"""

from consultologist.validation.validation_gate import ValidationGate, validate

__all__ = [
    "ValidationGate",
    "validate",
]
