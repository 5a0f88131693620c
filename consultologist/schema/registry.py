"""
Schema Registry - Canonical Consultation Schema

Loads the one canonical JSON Schema that describes a valid consultation
record. The document is parsed once per process and never mutated; the
validator and the prompt builder both read from the same SchemaDocument.

Pipeline Position:
    [SchemaRegistry] → Validator, PromptBuilder
     ^^^^^^^^^^^^^^
     You are here
"""

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError
from loguru import logger

from consultologist.core.constants import SCHEMA_VERSION_KEYWORD
from consultologist.core.exceptions import SchemaLoadError


# =============================================================================
# STAGE 1: SCHEMA DOCUMENT
# =============================================================================


@dataclass(frozen=True)
class SchemaDocument:
    """
    Immutable, versioned description of the consultation record shape.

    Attributes:
        schema_id: The schema's $id (or its file name when absent)
        version: Value of the root x-schema-version keyword
        title: Schema title
        source_path: Where the document was loaded from
        canonical_text: Two-space indented JSON in declaration order,
                        embedded verbatim in the generation prompt
        definition: Read-only view of the parsed schema

    Example:
        >>> document = load_schema_document(DEFAULT_SCHEMA_PATH)
        >>> document.version
        '1.2.0'
    """

    schema_id: str
    version: str
    title: str
    source_path: str
    canonical_text: str
    definition: Mapping[str, Any] = field(repr=False)

    def to_mutable(self) -> Dict[str, Any]:
        """Deep copy of the definition, safe for compile-time rewriting."""
        return copy.deepcopy(_thaw(self.definition))

    @property
    def top_level_fields(self) -> List[str]:
        """Declared root properties in declaration order."""
        return list(self.definition.get("properties", {}).keys())

    @property
    def required_fields(self) -> List[str]:
        return list(self.definition.get("required", []))


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


# =============================================================================
# STAGE 2: LOADING
# =============================================================================


def parse_schema_document(raw_text: str, source: str = "<memory>") -> SchemaDocument:
    """
    Parse schema text into a SchemaDocument.

    Checks:
        1. Text is one JSON object
        2. Root declares a non-empty x-schema-version
        3. Document passes the draft 2020-12 meta-schema

    Args:
        raw_text: JSON text of the schema
        source: Label for error messages (file path)

    Raises:
        SchemaLoadError: If any check fails
    """
    try:
        definition = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise SchemaLoadError(source, f"malformed JSON: {e}")

    if not isinstance(definition, dict):
        raise SchemaLoadError(source, "schema root must be a JSON object")

    version = definition.get(SCHEMA_VERSION_KEYWORD)
    if not isinstance(version, str) or not version.strip():
        raise SchemaLoadError(source, f"missing '{SCHEMA_VERSION_KEYWORD}' at schema root")

    try:
        Draft202012Validator.check_schema(definition)
    except SchemaError as e:
        raise SchemaLoadError(source, f"invalid JSON Schema: {e.message}")

    canonical_text = json.dumps(definition, indent=2, ensure_ascii=False)

    return SchemaDocument(
        schema_id=definition.get("$id") or Path(source).name,
        version=version,
        title=definition.get("title", ""),
        source_path=source,
        canonical_text=canonical_text,
        definition=_freeze(definition),
    )


def load_schema_document(path: Union[str, Path]) -> SchemaDocument:
    """
    Load the canonical schema from disk.

    Args:
        path: Path to the schema JSON file

    Returns:
        Parsed, immutable SchemaDocument

    Raises:
        SchemaLoadError: If the file is unreadable or the schema is invalid
    """
    schema_path = Path(path)
    try:
        raw_text = schema_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaLoadError(str(schema_path), f"unreadable: {e}")

    document = parse_schema_document(raw_text, source=str(schema_path))

    logger.info(
        f"Schema loaded | ID: {document.schema_id} | "
        f"Version: {document.version} | "
        f"Fields: {len(document.top_level_fields)}"
    )
    return document
