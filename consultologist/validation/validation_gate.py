"""
Validation Gate - Sole Admission Point to Rendering

The gate is the only place a decoded candidate becomes a ValidatedRecord.
Everything downstream (the renderer) accepts ValidatedRecord only, so a
record that skipped the gate cannot reach the template.

Pipeline Position:
    ResponseDecoder → [ValidationGate] → TemplateRenderer
                       ^^^^^^^^^^^^^^
                       You are here
"""

from typing import Any

from loguru import logger

from consultologist.core.exceptions import SchemaViolationError
from consultologist.schema.validator import CompiledValidator, ValidatedRecord


class ValidationGate:
    """
    Admits candidates that satisfy the compiled schema.

    What it does:
        Runs the compiled validator and either returns the issued
        ValidatedRecord or raises SchemaViolationError carrying the ordered
        violations and their "path: message" summary.

    Why it exists:
        Keeps a single choke point between untrusted generated data and the
        presentation layer. The gate does no coercion and no repair.

    Example:
        >>> gate = ValidationGate(compiled_validator)
        >>> record = gate.admit({"front_matter": {...}, ...})
    """

    def __init__(self, compiled_validator: CompiledValidator):
        self._validator = compiled_validator
        self._admitted = 0
        self._rejected = 0

    @property
    def validator(self) -> CompiledValidator:
        return self._validator

    def admit(self, candidate: Any) -> ValidatedRecord:
        """
        Validate candidate and return the issued record.

        Raises:
            SchemaViolationError: If at least one violation was found
        """
        result = self._validator.check(candidate)

        if not result.is_valid:
            self._rejected += 1
            logger.warning(
                f"Candidate rejected | Violations: {len(result.violations)} | "
                f"First: {result.violations[0].as_summary_item()}"
            )
            raise SchemaViolationError(result.violations, result.summary)

        self._admitted += 1
        logger.debug(f"Candidate admitted | Schema version: {result.record.schema_version}")
        return result.record

    @property
    def admitted_count(self) -> int:
        return self._admitted

    @property
    def rejected_count(self) -> int:
        return self._rejected


def validate(candidate: Any, compiled_validator: CompiledValidator) -> ValidatedRecord:
    """Functional form of ValidationGate.admit()."""
    result = compiled_validator.check(candidate)
    if not result.is_valid:
        raise SchemaViolationError(result.violations, result.summary)
    return result.record
