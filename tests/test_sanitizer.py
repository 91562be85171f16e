import json

import pytest

from career_relay.sanitizer import (
    clean_field_value,
    escape_json_value,
    extract_link_text,
    normalize_phone,
    repair_json,
    safe_json_parse,
    safe_json_response,
    sanitize_webhook_data,
    strip_invisible,
)


def test_sanitize_keeps_known_non_empty_fields() -> None:
    raw = {
        "\ufefffull_name_uzbek": " Ali form_variable_ABC1 ",
        "city_uzbek": "Toshkent\u200b",
        "unknown_field": "dropped",
        "resume": "",
        "age_uzbek": None,
        " degree ": "Bakalavr",
    }

    assert sanitize_webhook_data(raw) == {
        "full_name_uzbek": "Ali",
        "city_uzbek": "Toshkent",
        "degree": "Bakalavr",
    }


def test_sanitize_output_is_clean() -> None:
    raw = {
        "position_uz": "\u2060Sotuvchi\u200d form_variable_POS9",
        "username": "\u200c<a href='https://t.me/ali'>@ali</a>",
        "phase2_q_1": 42,
    }

    cleaned = sanitize_webhook_data(raw)

    for key, value in cleaned.items():
        assert value
        assert strip_invisible(value) == value
        assert "form_variable_" not in value
        assert value == value.strip()
    assert cleaned["phase2_q_1"] == "42"


@pytest.mark.parametrize("raw", [None, "text", ["a"], 12])
def test_sanitize_non_mapping_yields_empty(raw: object) -> None:
    assert sanitize_webhook_data(raw) == {}


def test_clean_field_value_none() -> None:
    assert clean_field_value(None) == ""


def test_safe_json_parse_valid() -> None:
    assert safe_json_parse('{"a": "1"}') == {"a": "1"}


def test_safe_json_parse_repairs_inner_quotes() -> None:
    text = '{"full_name_uzbek": "Ali "Vali" Karimov", "age_uzbek": "25"}'

    assert safe_json_parse(text) == {"full_name_uzbek": 'Ali "Vali" Karimov', "age_uzbek": "25"}


def test_safe_json_parse_repairs_structure() -> None:
    text = '{degree: "Bakalavr", "city_uzbek": "Toshkent, Chilonzor",}'

    assert safe_json_parse(text) == {"degree": "Bakalavr", "city_uzbek": "Toshkent, Chilonzor"}


def test_safe_json_parse_repairs_raw_newlines() -> None:
    text = '{"phase2_q_1": "first line\nsecond line"}'

    assert safe_json_parse(text) == {"phase2_q_1": "first line\nsecond line"}


def test_repair_leaves_string_contents_alone() -> None:
    text = '{"a": "x,}"}'
    assert json.loads(repair_json(text)) == {"a": "x,}"}


@pytest.mark.parametrize("text", ["not json at all", "{{{", ""])
def test_safe_json_parse_returns_raw_text_on_failure(text: str) -> None:
    assert safe_json_parse(text) == text


def test_escape_json_value() -> None:
    assert escape_json_value('  say "hi"\n') == 'say \\"hi\\"\\n'
    assert escape_json_value("it's\ta\\b") == "it\\'s\\ta\\\\b"


def test_safe_json_response_walks_containers() -> None:
    data = {"name": 'O"Brien', "count": 3, "tags": ["a\nb", {"inner": "c'd"}], "flag": None}

    assert safe_json_response(data) == {
        "name": 'O\\"Brien',
        "count": 3,
        "tags": ["a\\nb", {"inner": "c\\'d"}],
        "flag": None,
    }


def test_safe_json_response_passes_scalars_through() -> None:
    assert safe_json_response(5) == 5
    assert safe_json_response("plain") == "plain"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("90 123 45 67", "+998901234567"),
        ("+998 (90) 123-45-67", "+998901234567"),
        ("998901234567", "+998901234567"),
        ("", ""),
        (None, ""),
        ("no digits", ""),
    ],
)
def test_normalize_phone(raw: str | None, expected: str) -> None:
    assert normalize_phone(raw) == expected


def test_extract_link_text() -> None:
    assert extract_link_text('<a href="https://t.me/ali">@ali</a>') == "@ali"
    assert extract_link_text("@plain") == "@plain"
    assert extract_link_text(None) == ""
