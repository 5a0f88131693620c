"""
Schema Layer - Canonical Schema and Compiled Validator

Submodules:
    registry.py  → SchemaDocument, load_schema_document()
    validator.py → CompiledValidator, ValidatedRecord, CheckResult

Dependency Rule:
    This layer depends on: core
    This layer is used by: generation (prompt), validation (gate), pipeline
"""

from consultologist.schema.registry import (
    SchemaDocument,
    load_schema_document,
    parse_schema_document,
)
from consultologist.schema.validator import (
    CheckResult,
    CompiledValidator,
    ValidatedRecord,
    compile_validator,
    format_path,
)

__all__ = [
    "SchemaDocument",
    "load_schema_document",
    "parse_schema_document",
    "CheckResult",
    "CompiledValidator",
    "ValidatedRecord",
    "compile_validator",
    "format_path",
]
