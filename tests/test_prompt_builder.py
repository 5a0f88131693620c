import pytest

from consultologist.core.constants import CONTRACT_HEADING, DOMAIN_PREAMBLE, OUTPUT_REQUIREMENTS
from consultologist.core.exceptions import EmptyPromptError
from consultologist.generation.prompt_builder import PromptBuilder, compose


def test_system_message_embeds_full_schema(schema_document):
    pair = PromptBuilder(schema_document).build("58F, left IDC, pT2 N0 M0")

    assert pair.system.startswith(DOMAIN_PREAMBLE.strip())
    assert CONTRACT_HEADING in pair.system
    assert schema_document.canonical_text in pair.system
    assert pair.system.rstrip().endswith(OUTPUT_REQUIREMENTS.rstrip())
    assert pair.system.index(CONTRACT_HEADING) < pair.system.index(schema_document.canonical_text)


def test_user_text_is_passed_through_unmodified(schema_document):
    text = "  62F\n\tER 8/8, PR 0/8 <b>HER2</b> 3+  "
    pair = PromptBuilder(schema_document).build(text)
    assert pair.user == text


def test_system_message_is_deterministic(schema_document):
    first = compose(schema_document, DOMAIN_PREAMBLE, "a")
    second = compose(schema_document, DOMAIN_PREAMBLE, "b")
    builder = PromptBuilder(schema_document)

    assert first.system == second.system == builder.build("c").system


def test_compose_matches_builder(schema_document):
    assert compose(schema_document, DOMAIN_PREAMBLE, "x") == PromptBuilder(schema_document).build("x")


def test_custom_preamble(schema_document):
    pair = compose(schema_document, "You are a test harness.", "x")
    assert pair.system.startswith("You are a test harness.")


@pytest.mark.parametrize("value", [None, "", "   \n\t", 42, ["prompt"], {"prompt": "x"}])
def test_absent_or_blank_input_is_rejected(schema_document, value):
    with pytest.raises(EmptyPromptError) as exc_info:
        PromptBuilder(schema_document).build(value)

    assert exc_info.value.message == "Please provide valid consultation details."
    assert exc_info.value.http_status == 400


def test_messages_are_system_then_user(schema_document):
    messages = PromptBuilder(schema_document).build("x").to_messages()
    assert [m["role"] for m in messages] == ["system", "user"]
    assert messages[1]["content"] == "x"
