"""Tests for request-line tokenization."""

import pytest

from prefixkit.errors import MalformedCommand
from prefixkit.tokenizer import RawCommand, tokenize


def test_prefix_only():
    assert tokenize("[list-cmd]") == RawCommand(prefix="list-cmd")


def test_prefix_modifiers_scope_and_body():
    raw = tokenize("[fix:keep:log]<file:ConnectionManager.swift:10-40> retry loop never ends")

    assert raw.prefix == "fix"
    assert raw.modifiers == ("keep", "log")
    assert raw.scope_text == "file:ConnectionManager.swift:10-40"
    assert raw.body == "retry loop never ends"


def test_prefix_and_modifiers_are_lowercased():
    raw = tokenize("[FIX:Keep] crash")
    assert raw.prefix == "fix"
    assert raw.modifiers == ("keep",)


def test_surrounding_whitespace_is_ignored():
    raw = tokenize("   [review]   look for leaks  ")
    assert raw.prefix == "review"
    assert raw.scope_text is None
    assert raw.body == "look for leaks"


def test_scope_only_recognized_directly_after_prefix():
    raw = tokenize("[think] compare <generics> and protocols")
    assert raw.scope_text is None
    assert raw.body == "compare <generics> and protocols"


def test_body_may_contain_brackets():
    raw = tokenize("[search] where is array[0] read")
    assert raw.body == "where is array[0] read"


@pytest.mark.parametrize(
    "line",
    [
        "",
        "   ",
        "fix the crash",
        "[fix",
        "[[fix]] crash",
        "[fix]] crash",
        "[]",
        "[:keep] crash",
        "[fix:] crash",
        "[fix::keep] crash",
        "[fix]<file:App.swift crash",
    ],
)
def test_malformed_lines_raise(line):
    with pytest.raises(MalformedCommand):
        tokenize(line)


def test_malformed_command_carries_code():
    with pytest.raises(MalformedCommand) as exc_info:
        tokenize("[fix")
    assert exc_info.value.to_dict()["code"] == "MALFORMED_COMMAND"
