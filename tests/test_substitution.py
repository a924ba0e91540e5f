from __future__ import annotations

import re

import pytest

from core.compiler import compile_rule
from core.rules import Rule
from core.substitution import expand_template, replace

VISA = (
    r"(?P<VISA>(?P<part1>4\d{3})[ -]?(?P<part2>\d{4})[ -]?(?P<part3>\d{4})[ -]?(?P<LastFour>[0-9]{4}))"
)
AMEX = r"(?P<AMEX>(?P<part1>3[47]\d{2})[ -]?(?P<part2>\d{6})[ -]?(?P<part3>\d)(?P<LastFour>[0-9]{4}))"
SSN = r"(?P<SSN>(?P<part1>\d{3})[ -]?(?P<part2>\d{2})[ -]?(?P<LastFour>[0-9]{4}))"


def _raw(pattern: str, template: str):
    """A rule with both boundaries disabled, so the pattern is used as written."""

    return compile_rule(
        Rule(pattern=pattern, template=template, disable_non_word_prefix=True, disable_non_word_suffix=True)
    )


def test_expand_template_references() -> None:
    match = re.match(r"(?P<key>\w+)-(\d+)", "MM-12")

    assert expand_template(match, "$key") == "MM"
    assert expand_template(match, "${key}x") == "MMx"
    assert expand_template(match, "$2") == "12"
    assert expand_template(match, "${2}") == "12"
    assert expand_template(match, "$0") == "MM-12"


def test_expand_template_unknown_groups_are_empty() -> None:
    match = re.match(r"(?P<key>\w+)-(\d+)", "MM-12")

    # The longest name wins, so $keyx is an unknown group.
    assert expand_template(match, "[$keyx]") == "[]"
    assert expand_template(match, "[$9]") == "[]"
    assert expand_template(match, "[${missing}]") == "[]"


def test_expand_template_unmatched_group_is_empty() -> None:
    match = re.match(r"(?P<a>x)?y", "y")

    assert expand_template(match, "<$a>") == "<>"


def test_expand_template_literal_dollars() -> None:
    match = re.match(r"(?P<key>\w+)", "MM")

    assert expand_template(match, "$$key") == "$key"
    assert expand_template(match, "cost: $-") == "cost: $-"
    assert expand_template(match, "${ key}") == "${ key}"


def test_replace_without_matcher_returns_text() -> None:
    compiled = compile_rule(Rule(pattern="MM", template=""))

    assert replace(compiled, "MM-1") == "MM-1"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (" abc 4111 1111 1111 1234 def", " abc VISA XXXX-XXXX-XXXX-1234 def"),
        ("4111-1111-1111-1234", "VISA XXXX-XXXX-XXXX-1234"),
        ("41111111 1111-1234", "VISA XXXX-XXXX-XXXX-1234"),
        ("abc 4111111111111234 def", "abc VISA XXXX-XXXX-XXXX-1234 def"),
        ("3111111111111234", "3111111111111234"),
        (" 4111-1111-1111-123", " 4111-1111-1111-123"),
        ("4111=1111=1111_1234", "4111=1111=1111_1234"),
        ("abc4111-1111-1111-1234", "abcVISA XXXX-XXXX-XXXX-1234"),
        ("4111-1111-1111-1234def", "VISA XXXX-XXXX-XXXX-1234def"),
    ],
)
def test_visa_pattern(text: str, expected: str) -> None:
    assert replace(_raw(VISA, "VISA XXXX-XXXX-XXXX-$LastFour"), text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (" abc 3411 123456 12345 def", " abc American Express XXXX-XXXXXX-X2345 def"),
        ("3711-123456-12345", "American Express XXXX-XXXXXX-X2345"),
        ("abc 371112345612345 def", "abc American Express XXXX-XXXXXX-X2345 def"),
        ("411112345612345", "411112345612345"),
        ("4111-1111=1111-1234", "4111-1111=1111-1234"),
    ],
)
def test_amex_pattern(text: str, expected: str) -> None:
    assert replace(_raw(AMEX, "American Express XXXX-XXXXXX-X$LastFour"), text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (" abc 652 47 3356 def", " abc XXX-XX-3356 def"),
        (" abc 652-47-3356 def", " abc XXX-XX-3356 def"),
        (" abc 652473356 def", " abc XXX-XX-3356 def"),
        (" abc 65247-3356 def", " abc XXX-XX-3356 def"),
        (" abc 19-09-9999 def", " abc 19-09-9999 def"),
        (" abc 652_47-3356 def", " abc 652_47-3356 def"),
    ],
)
def test_ssn_pattern(text: str, expected: str) -> None:
    assert replace(_raw(SSN, "XXX-XX-$LastFour"), text) == expected


def test_credit_card_with_default_boundaries() -> None:
    compiled = compile_rule(Rule(pattern=VISA, template="VISA XXXX-XXXX-XXXX-$LastFour"))

    assert (
        replace(compiled, "A credit card 4111-1111-2222-1234 mentioned")
        == "A credit card VISA XXXX-XXXX-XXXX-1234 mentioned"
    )
    assert replace(compiled, "A credit card4111-1111-2222-3333mentioned") == (
        "A credit card4111-1111-2222-3333mentioned"
    )


def test_credit_card_without_boundaries() -> None:
    compiled = _raw(VISA, "VISA XXXX-XXXX-XXXX-$LastFour")

    assert replace(compiled, "A credit card4111-1111-2222-3333mentioned") == (
        "A credit cardVISA XXXX-XXXX-XXXX-3333mentioned"
    )


def test_adjacent_matches_share_a_separator() -> None:
    compiled = compile_rule(Rule(pattern=r"A-(?P<n>\d)", template="[A$n]"))

    assert replace(compiled, "A-1 A-2") == "[A1] [A2]"
    assert (
        replace(
            compile_rule(Rule(pattern=VISA, template="VISA XXXX-XXXX-XXXX-$LastFour")),
            "Credit cards 4111-1111-2222-3333 4222-3333-4444-5678 mentioned",
        )
        == "Credit cards VISA XXXX-XXXX-XXXX-3333 VISA XXXX-XXXX-XXXX-5678 mentioned"
    )


def test_boundary_characters_are_kept() -> None:
    compiled = compile_rule(Rule(pattern=r"MM-(?P<id>\d+)", template="[MM-$id](url/MM-$id)"))

    assert replace(compiled, "(see MM-1), MM-2. MM-3!") == "(see [MM-1](url/MM-1)), [MM-2](url/MM-2). [MM-3](url/MM-3)!"


def test_replace_does_not_rescan_output() -> None:
    compiled = compile_rule(Rule(pattern="foo", template="foo foo"))

    assert replace(compiled, "foo") == "foo foo"


def test_empty_match_only_at_left_boundary() -> None:
    compiled = compile_rule(Rule(pattern="x?", template="[X]", disable_non_word_suffix=True))

    assert replace(compiled, "hello") == "[X]hello"
    assert replace(compiled, "say hello") == "[X]say [X]hello"
