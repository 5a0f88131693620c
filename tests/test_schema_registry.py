import json

import pytest

from consultologist.core.exceptions import SchemaLoadError
from consultologist.schema.registry import load_schema_document, parse_schema_document


def test_canonical_schema(schema_document):
    assert schema_document.schema_id == "urn:consultologist:schema:mortigen-render-context"
    assert schema_document.version == "1.2.0"
    assert schema_document.top_level_fields == [
        "front_matter",
        "assessment",
        "treatment_plan",
        "recommendations",
        "follow_up",
    ]
    assert schema_document.required_fields == [
        "front_matter",
        "assessment",
        "treatment_plan",
        "recommendations",
    ]


def test_canonical_text_round_trips(schema_document):
    assert json.loads(schema_document.canonical_text) == schema_document.to_mutable()


def test_definition_is_read_only(schema_document):
    with pytest.raises(TypeError):
        schema_document.definition["title"] = "changed"

    mutable = schema_document.to_mutable()
    mutable["properties"]["front_matter"]["required"].append("genomics")
    assert "genomics" not in schema_document.definition["properties"]["front_matter"]["required"]


@pytest.mark.parametrize(
    "raw_text, reason",
    [
        ("{not json", "malformed JSON"),
        ("[]", "must be a JSON object"),
        (json.dumps({"type": "object"}), "x-schema-version"),
        (json.dumps({"x-schema-version": "1.0.0", "type": 12}), "invalid JSON Schema"),
    ],
)
def test_invalid_documents_are_rejected(raw_text, reason):
    with pytest.raises(SchemaLoadError) as exc_info:
        parse_schema_document(raw_text, source="candidate.json")

    assert reason in exc_info.value.reason
    assert exc_info.value.path == "candidate.json"


def test_unreadable_file(tmp_path):
    with pytest.raises(SchemaLoadError):
        load_schema_document(tmp_path / "missing.schema.json")


def test_schema_id_falls_back_to_file_name():
    document = parse_schema_document(
        json.dumps({"x-schema-version": "0.1.0", "type": "object"}), source="/tmp/local.schema.json"
    )
    assert document.schema_id == "local.schema.json"
