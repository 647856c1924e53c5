import re

import pytest

from common.profile_engine.errors import FilterUsageError
from common.profile_engine.filters import RecordFilter, filter_records


RECORDS = [
    {"user": "root", "uid": "0", "shell": "/bin/bash"},
    {"user": "daemon", "uid": "1", "shell": "/usr/sbin/nologin"},
    {"user": "alice", "uid": "1000", "shell": "/bin/bash"},
    {"user": "bob", "uid": "1001", "shell": "/bin/zsh"},
    {"user": "broken", "uid": "", "shell": "/bin/sh"},
]


def _users(records):
    return [r["user"] for r in records]


def test_literal_equality_preserves_order():
    out = filter_records(RECORDS, {"shell": "/bin/bash"})
    assert _users(out) == ["root", "alice"]


def test_filtering_is_idempotent():
    spec = {"uid": {">=": 1000}}
    once = filter_records(RECORDS, spec)
    twice = filter_records(once, spec)
    assert twice == once
    assert _users(once) == ["alice", "bob"]


def test_ordering_operators_coerce_string_fields_to_numbers():
    assert _users(filter_records(RECORDS, {"uid": {">=": 0}})) == ["root", "daemon", "alice", "bob"]
    assert _users(filter_records(RECORDS, {"uid": {"<": 1000}})) == ["root", "daemon"]
    assert _users(filter_records(RECORDS, {"uid": {"<=": 1}})) == ["root", "daemon"]
    assert _users(filter_records(RECORDS, {"uid": {">": 1000}})) == ["bob"]


def test_ordering_operators_skip_non_numeric_fields():
    out = filter_records(RECORDS, {"uid": {"<": 5}})
    assert "broken" not in _users(out)


def test_integer_equality_matches_string_field_by_text():
    # Parsed records hold strings: an integer literal is compared by its text form.
    assert _users(filter_records([{"user": "root", "uid": "0"}], {"uid": 0})) == ["root"]
    assert _users(filter_records([{"user": "root", "uid": "0"}], {"uid": {"==": 0}})) == ["root"]


def test_equality_keeps_native_types_otherwise():
    records = [{"name": "a", "port": 22}, {"name": "b", "port": "22"}]
    assert [r["name"] for r in filter_records(records, {"port": 22})] == ["a", "b"]
    assert [r["name"] for r in filter_records(records, {"port": "22"})] == ["b"]
    assert filter_records([{"uid": "0"}], {"uid": 0.0}) == []


def test_not_equal_operator():
    assert _users(filter_records(RECORDS, {"uid": {"!=": 0}})) == ["daemon", "alice", "bob", "broken"]


def test_regex_condition_uses_search():
    out = filter_records(RECORDS, {"shell": re.compile("nologin")})
    assert _users(out) == ["daemon"]
    out = filter_records(RECORDS, {"shell": {"!=": re.compile("bash$")}})
    assert _users(out) == ["daemon", "bob", "broken"]


def test_multiple_fields_must_all_match():
    out = filter_records(RECORDS, {"shell": "/bin/bash", "uid": {">": 0}})
    assert _users(out) == ["alice"]


def test_empty_spec_returns_all_records():
    assert filter_records(RECORDS, {}) == RECORDS
    assert filter_records(RECORDS, None) == RECORDS
    assert not RecordFilter({})


def test_unknown_operator_is_a_usage_error():
    with pytest.raises(FilterUsageError, match="Unsupported filter operator"):
        filter_records(RECORDS, {"uid": {"=~": 1}})


def test_multi_entry_operator_mapping_is_a_usage_error():
    with pytest.raises(FilterUsageError):
        filter_records(RECORDS, {"uid": {">": 1, "<": 10}})


def test_ordering_operator_needs_numeric_value():
    with pytest.raises(FilterUsageError, match="numeric"):
        filter_records(RECORDS, {"uid": {">": "many"}})


def test_describe_lists_clauses():
    spec = {"uid": {">=": 1000}, "shell": re.compile("bash")}
    assert RecordFilter(spec).describe() == "uid >= 1000 and shell == /bash/"
