"""
Validator - Structural Checking of Consultation Records

This module compiles the SchemaDocument into a reusable checker that turns an
arbitrary decoded value into either a ValidatedRecord or an ordered tuple of
Violations.

Checks Performed (via jsonschema, draft 2020-12):
    1. Required fields
    2. JSON types
    3. Enum / const membership (exact match, no coercion)
    4. Regex patterns (coded formats such as TNM staging)
    5. Numeric, length and item-count bounds
    6. Declared formats (date)
    7. Undeclared fields (strict policy)

Ordering:
    Violations are sorted by the schema declaration position of their path,
    so the same input always yields the same sequence regardless of the
    order of keys in the candidate.

Pipeline Position:
    SchemaRegistry → [Validator] → ValidationGate
                      ^^^^^^^^^
                      You are here
"""

import copy
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as JsonSchemaError
from loguru import logger

from consultologist.core.enums import AdditionalFieldsPolicy, ConstraintKind
from consultologist.core.models import Violation
from consultologist.schema.registry import SchemaDocument


# Issuing token: only CompiledValidator.check() holds it.
_ISSUER = object()

PathPart = Union[str, int]


# =============================================================================
# STAGE 1: VALIDATED RECORD
# =============================================================================


class ValidatedRecord:
    """
    A consultation record proven to satisfy the schema.

    What it does:
        Marks, at the type level, that a value went through the validation
        gate. The renderer accepts nothing else.

    Construction:
        Only CompiledValidator.check() can build one; direct construction
        raises TypeError.

    Attributes:
        schema_id: Schema the record was proven against
        schema_version: Version of that schema
        data: Deep copy of the validated mapping
    """

    __slots__ = ("_data", "_schema_id", "_schema_version")

    def __init__(
        self,
        data: Dict[str, Any],
        schema_id: str,
        schema_version: str,
        *,
        _issuer: object = None,
    ):
        if _issuer is not _ISSUER:
            raise TypeError("ValidatedRecord can only be issued by CompiledValidator.check()")
        object.__setattr__(self, "_data", copy.deepcopy(data))
        object.__setattr__(self, "_schema_id", schema_id)
        object.__setattr__(self, "_schema_version", schema_version)

    def __setattr__(self, name, value):
        raise AttributeError("ValidatedRecord is immutable")

    @property
    def data(self) -> Dict[str, Any]:
        """Copy of the validated mapping; mutating it cannot affect the record."""
        return copy.deepcopy(self._data)

    @property
    def schema_id(self) -> str:
        return self._schema_id

    @property
    def schema_version(self) -> str:
        return self._schema_version

    def __eq__(self, other):
        if not isinstance(other, ValidatedRecord):
            return NotImplemented
        return (self._data, self._schema_id, self._schema_version) == (
            other._data,
            other._schema_id,
            other._schema_version,
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"ValidatedRecord(schema={self._schema_id!r}, version={self._schema_version!r}, "
            f"fields={sorted(self._data)})"
        )


# =============================================================================
# STAGE 2: CHECK RESULT
# =============================================================================


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of CompiledValidator.check().

    Either `record` is set (valid) or `violations` is non-empty (invalid).
    """

    record: Optional[ValidatedRecord] = None
    violations: Tuple[Violation, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.record is not None

    @property
    def summary(self) -> str:
        """Violations as "path: message" pairs joined with ", "."""
        return ", ".join(v.as_summary_item() for v in self.violations)


# =============================================================================
# STAGE 3: PATH AND MESSAGE FORMATTING
# =============================================================================


def format_path(parts: Iterable[PathPart]) -> str:
    """
    Render an instance path as dot/bracket notation.

    Example:
        >>> format_path(["recommendations", 2, "text"])
        'recommendations[2].text'
        >>> format_path([])
        'root'
    """
    rendered = ""
    for part in parts:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered += f".{part}" if rendered else str(part)
    return rendered or "root"


def _json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _literal(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)


_BOUND_MESSAGES = {
    "minimum": "must be >= {limit}, got {value}",
    "maximum": "must be <= {limit}, got {value}",
    "exclusiveMinimum": "must be > {limit}, got {value}",
    "exclusiveMaximum": "must be < {limit}, got {value}",
    "multipleOf": "must be a multiple of {limit}, got {value}",
    "minLength": "must be at least {limit} characters long",
    "maxLength": "must be at most {limit} characters long",
    "minItems": "must contain at least {limit} item(s)",
    "maxItems": "must contain at most {limit} item(s)",
    "minProperties": "must contain at least {limit} field(s)",
    "maxProperties": "must contain at most {limit} field(s)",
}


# =============================================================================
# STAGE 4: COMPILED VALIDATOR
# =============================================================================


class CompiledValidator:
    """
    Reusable structural checker compiled from one SchemaDocument.

    What it does:
        Applies the additional-fields policy to every object in the schema,
        builds a jsonschema validator once, and translates jsonschema errors
        into ordered Violations.

    Thread safety:
        Holds no per-call state; safe for unlimited concurrent check() calls.

    Example:
        >>> validator = compile_validator(document)
        >>> result = validator.check({"front_matter": {}})
        >>> result.is_valid
        False
    """

    def __init__(
        self,
        schema_document: SchemaDocument,
        policy: AdditionalFieldsPolicy = AdditionalFieldsPolicy.STRICT,
    ):
        # =====================================================================
        # STAGE 4.1: APPLY ADDITIONAL FIELDS POLICY
        # =====================================================================
        self._document = schema_document
        self._policy = policy
        self._schema = schema_document.to_mutable()
        _apply_additional_fields_policy(self._schema, policy is AdditionalFieldsPolicy.LENIENT)

        # =====================================================================
        # STAGE 4.2: BUILD JSONSCHEMA VALIDATOR
        # =====================================================================
        self._validator = Draft202012Validator(
            self._schema, format_checker=Draft202012Validator.FORMAT_CHECKER
        )

        logger.debug(
            f"Validator compiled | Schema: {schema_document.schema_id} | "
            f"Version: {schema_document.version} | Policy: {policy.value}"
        )

    # =========================================================================
    # STAGE 5: PUBLIC API
    # =========================================================================

    @property
    def schema_document(self) -> SchemaDocument:
        return self._document

    @property
    def policy(self) -> AdditionalFieldsPolicy:
        return self._policy

    def check(self, value: Any) -> CheckResult:
        """
        Check a candidate value against the schema.

        Algorithm:
            1. Collect every jsonschema error (allErrors semantics)
            2. Translate each into one or more Violations
            3. Stable-sort by schema declaration position
            4. Issue a ValidatedRecord when nothing was violated

        Args:
            value: Decoded, untrusted candidate

        Returns:
            CheckResult with either a record or the ordered violations
        """
        violations = self.collect_violations(value)
        if violations:
            return CheckResult(violations=tuple(violations))

        record = ValidatedRecord(
            value,
            schema_id=self._document.schema_id,
            schema_version=self._document.version,
            _issuer=_ISSUER,
        )
        return CheckResult(record=record)

    def collect_violations(self, value: Any) -> List[Violation]:
        """Ordered violations for value; empty when valid."""
        keyed: List[Tuple[Tuple[int, ...], Violation]] = []
        expanded_required = set()

        for error in self._validator.iter_errors(value):
            base_path = list(error.absolute_path)

            if error.validator == "required":
                # jsonschema reports each missing name separately; expand all of
                # them on the first report for this object and skip the rest.
                marker = tuple(base_path)
                if marker in expanded_required:
                    continue
                expanded_required.add(marker)
                for name in error.validator_value:
                    if isinstance(error.instance, dict) and name not in error.instance:
                        path = base_path + [name]
                        keyed.append(
                            (
                                self._position_key(path),
                                Violation(format_path(path), "is required", ConstraintKind.REQUIRED),
                            )
                        )
                continue

            if error.validator == "additionalProperties" and isinstance(error.instance, dict):
                declared = error.schema.get("properties", {})
                for name in sorted(k for k in error.instance if k not in declared):
                    path = base_path + [name]
                    keyed.append(
                        (
                            self._position_key(path),
                            Violation(
                                format_path(path),
                                "is not a declared field",
                                ConstraintKind.UNKNOWN_FIELD,
                            ),
                        )
                    )
                continue

            keyed.append((self._position_key(base_path), self._translate(error, base_path)))

        # Stable sort keeps jsonschema's keyword order for ties on one path.
        keyed.sort(key=lambda item: item[0])
        return [violation for _, violation in keyed]

    # =========================================================================
    # STAGE 6: ERROR TRANSLATION
    # =========================================================================

    def _translate(self, error: JsonSchemaError, path: List[PathPart]) -> Violation:
        keyword = error.validator
        instance = error.instance
        limit = error.validator_value
        location = format_path(path)

        if keyword == "type":
            expected = limit if isinstance(limit, list) else [limit]
            message = f"must be {' or '.join(expected)}, got {_json_type_name(instance)}"
            return Violation(location, message, ConstraintKind.TYPE)

        if keyword == "enum":
            allowed = ", ".join(_literal(v) for v in limit)
            message = f"must be one of [{allowed}], got {_literal(instance)}"
            return Violation(location, message, ConstraintKind.ENUM)

        if keyword == "const":
            message = f"must equal {_literal(limit)}, got {_literal(instance)}"
            return Violation(location, message, ConstraintKind.ENUM)

        if keyword == "pattern":
            description = error.schema.get("description")
            if description:
                message = (
                    f"value {_literal(instance)} does not match expected format: "
                    f"{description} (pattern {limit})"
                )
            else:
                message = f"value {_literal(instance)} does not match pattern {limit}"
            return Violation(location, message, ConstraintKind.PATTERN)

        if keyword in _BOUND_MESSAGES:
            message = _BOUND_MESSAGES[keyword].format(limit=limit, value=_literal(instance))
            return Violation(location, message, ConstraintKind.BOUND)

        if keyword == "format":
            message = f"value {_literal(instance)} is not a valid {limit}"
            return Violation(location, message, ConstraintKind.FORMAT)

        return Violation(location, error.message, ConstraintKind.STRUCTURE)

    # =========================================================================
    # STAGE 7: DECLARATION ORDER
    # =========================================================================

    def _position_key(self, path: Sequence[PathPart]) -> Tuple[int, ...]:
        """
        Map an instance path to schema declaration positions.

        Object keys become their index in the enclosing `properties`
        (undeclared keys sort after declared ones); array indices are kept.
        """
        node: Any = self._schema
        key: List[int] = []
        for part in path:
            node = self._resolve(node)
            if isinstance(part, int):
                key.append(part)
                items = node.get("items") if isinstance(node, dict) else None
                node = items if isinstance(items, dict) else {}
            else:
                properties = node.get("properties", {}) if isinstance(node, dict) else {}
                names = list(properties)
                key.append(names.index(part) if part in properties else len(names))
                node = properties.get(part, {})
        return tuple(key)

    def _resolve(self, node: Any) -> Any:
        """Follow local "#/..." references."""
        for _ in range(32):
            if not isinstance(node, dict):
                return node
            ref = node.get("$ref")
            if not isinstance(ref, str) or "#" not in ref:
                return node
            pointer = ref.split("#", 1)[1]
            target: Any = self._schema
            for token in [t for t in pointer.split("/") if t]:
                token = token.replace("~1", "/").replace("~0", "~")
                if not isinstance(target, dict) or token not in target:
                    return {}
                target = target[token]
            node = target
        return node


# =============================================================================
# STAGE 8: POLICY REWRITE
# =============================================================================

_SCHEMA_MAP_KEYWORDS = ("properties", "patternProperties", "$defs", "definitions", "dependentSchemas")
_SCHEMA_KEYWORDS = ("items", "contains", "not", "if", "then", "else", "propertyNames")
_SCHEMA_LIST_KEYWORDS = ("prefixItems", "allOf", "anyOf", "oneOf")


def _is_object_schema(node: Dict[str, Any]) -> bool:
    declared = node.get("type")
    if declared == "object" or (isinstance(declared, list) and "object" in declared):
        return True
    return "properties" in node


def _apply_additional_fields_policy(node: Any, allow: bool) -> None:
    """Set additionalProperties on every object sub-schema, in place."""
    if not isinstance(node, dict):
        return

    if _is_object_schema(node):
        node["additionalProperties"] = allow

    for keyword in _SCHEMA_MAP_KEYWORDS:
        for child in (node.get(keyword) or {}).values():
            _apply_additional_fields_policy(child, allow)
    for keyword in _SCHEMA_KEYWORDS:
        _apply_additional_fields_policy(node.get(keyword), allow)
    for keyword in _SCHEMA_LIST_KEYWORDS:
        for child in node.get(keyword) or []:
            _apply_additional_fields_policy(child, allow)


def compile_validator(
    schema_document: SchemaDocument,
    policy: AdditionalFieldsPolicy = AdditionalFieldsPolicy.STRICT,
) -> CompiledValidator:
    """Compile schema_document under the given additional-fields policy."""
    return CompiledValidator(schema_document, policy)
