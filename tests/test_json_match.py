"""Tests for approximate JSON comparison."""

import json

import pytest

from outmatch.json_match import (
    find_mismatch,
    json_lines,
    match_json_line,
    match_json_output,
    parse_json_fragments,
)


def test_arrays_ignore_order():
    assert find_mismatch([1, 2], [2, 1]) is None


def test_arrays_of_different_length_mismatch_whole():
    assert find_mismatch([1, 2], [1, 2, 3]) == ([1, 2], [1, 2, 3])


def test_array_reports_first_unmatched_pair():
    assert find_mismatch([1, 2, 3], [3, 4, 1]) == (2, 4)


def test_arrays_match_each_element_once():
    assert find_mismatch([1, 1], [1, 2]) == (1, 2)


def test_object_key_sets_must_match():
    expected = {"a": 1}
    actual = {"a": 1, "b": 2}
    assert find_mismatch(expected, actual) == (expected, actual)


def test_object_reports_nested_mismatch():
    expected = {"a": 1, "b": {"c": "x"}}
    actual = {"b": {"c": "y"}, "a": 1}
    assert find_mismatch(expected, actual) == ("x", "y")


def test_object_reports_first_key_in_sorted_order():
    assert find_mismatch({"b": 1, "a": 2}, {"b": 3, "a": 4}) == (2, 4)


def test_string_fields_use_line_wildcards():
    assert find_mismatch("[..]/Cargo.toml", "/tmp/x/Cargo.toml") is None
    assert find_mismatch("[..]/Cargo.toml", "/tmp/x/Cargo.lock") == (
        "[..]/Cargo.toml",
        "/tmp/x/Cargo.lock",
    )


@pytest.mark.parametrize(
    "actual", [None, True, 3, "text", [1, [2]], {"nested": {"deep": [1, 2]}}]
)
def test_any_value_wildcard(actual):
    assert find_mismatch("{...}", actual) is None


def test_any_value_wildcard_inside_object():
    expected = {"name": "foo", "extra": "{...}"}
    actual = {"name": "foo", "extra": {"rendered": "warning", "spans": []}}
    assert find_mismatch(expected, actual) is None


def test_numbers_compare_numerically():
    assert find_mismatch(1, 1.0) is None
    assert find_mismatch(1, 2) == (1, 2)


def test_bools_are_not_numbers():
    assert find_mismatch(True, True) is None
    assert find_mismatch(True, 1) == (True, 1)
    assert find_mismatch(1, True) == (1, True)
    assert find_mismatch(False, True) == (False, True)


def test_null_only_matches_null():
    assert find_mismatch(None, None) is None
    assert find_mismatch(None, 0) == (None, 0)
    assert find_mismatch("null", None) == ("null", None)


def test_type_mismatch():
    assert find_mismatch([1], {"a": 1}) == ([1], {"a": 1})
    assert find_mismatch("1", 1) == ("1", 1)


# --- fragments and output lines ---


def test_parse_fragments_split_on_blank_line():
    text = '{"example": "abc"}\n\n{"example": "def"}'
    assert parse_json_fragments(text) == [{"example": "abc"}, {"example": "def"}]


def test_parse_fragments_rejects_invalid_json():
    with pytest.raises(ValueError, match="invalid expected json"):
        parse_json_fragments("{not json}")


def test_json_lines_keeps_object_lines_only():
    stdout = '{"a": 1}\nplain text\n  {"indented": true}\n{"b": 2}\n'
    assert json_lines(stdout) == ['{"a": 1}', '{"b": 2}']


def test_match_json_output_count_mismatch():
    message = match_json_output([{"a": 1}], '{"a": 1}\n{"a": 2}\n')
    assert message is not None
    assert message.startswith("expected 1 json lines, got 2, stdout:")


def test_match_json_output_in_order():
    stdout = '{"name":"foo","deps":["b","a"]}\n'
    expected = [{"name": "foo", "deps": ["a", "b"]}]
    assert match_json_output(expected, stdout) is None


def test_match_json_output_reports_mismatch():
    stdout = '{"name":"bar","deps":["a","b"]}\n'
    expected = [{"name": "foo", "deps": ["a", "b"]}]
    message = match_json_output(expected, stdout)
    assert message is not None
    assert message.startswith("JSON mismatch\n")
    assert f"Expected part:\n{json.dumps('foo')}" in message
    assert f"Actual part:\n{json.dumps('bar')}" in message


def test_match_json_line_invalid_actual():
    message = match_json_line({"a": 1}, "{broken")
    assert message is not None
    assert message.startswith("invalid json")
    assert "`{broken`" in message
