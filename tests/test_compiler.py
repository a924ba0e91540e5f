from __future__ import annotations

import logging

import pytest

from core.compiler import PREFIX_GROUP, SUFFIX_GROUP, compile_rule, compile_rules
from core.errors import CompileError
from core.rules import Rule
from core.substitution import replace


def test_disabled_rule_compiles_to_inert_matcher() -> None:
    compiled = compile_rule(Rule(pattern="MM", template="x", disabled=True))

    assert not compiled.active
    assert replace(compiled, "MM") == "MM"


def test_empty_pattern_or_template_is_inert_outside_validation() -> None:
    assert not compile_rule(Rule(pattern="", template="x")).active
    assert not compile_rule(Rule(pattern="MM", template="")).active


def test_validation_rejects_empty_fields_and_ignores_disabled() -> None:
    with pytest.raises(CompileError) as exc_info:
        compile_rule(Rule(name="jira", pattern="", template="x"), validate=True)
    assert exc_info.value.message == "pattern is empty"
    assert str(exc_info.value) == "jira: pattern is empty"

    with pytest.raises(CompileError):
        compile_rule(Rule(pattern="MM", template=""), validate=True)

    compiled = compile_rule(Rule(pattern="MM", template="x", disabled=True), validate=True)
    assert compiled.active


def test_invalid_pattern_raises_compile_error() -> None:
    with pytest.raises(CompileError):
        compile_rule(Rule(name="broken", pattern=")", template="x"))


def test_default_boundaries_use_capturing_groups() -> None:
    compiled = compile_rule(Rule(pattern="MM", template="x"))

    assert not compiled.single_pass
    assert compiled.template == "${" + PREFIX_GROUP + "}x${" + SUFFIX_GROUP + "}"
    assert PREFIX_GROUP in compiled.pattern.groupindex
    assert SUFFIX_GROUP in compiled.pattern.groupindex


def test_word_match_uses_zero_width_anchors() -> None:
    compiled = compile_rule(Rule(pattern="MM", template="x", word_match=True))

    assert compiled.single_pass
    assert compiled.template == "x"
    assert compiled.pattern.pattern == r"\bMM\b"


def test_disabled_boundaries_leave_pattern_untouched() -> None:
    compiled = compile_rule(
        Rule(pattern="MM", template="x", disable_non_word_prefix=True, disable_non_word_suffix=True)
    )

    assert compiled.single_pass
    assert compiled.pattern.pattern == "MM"


def test_mixed_sides_single_pass_only_without_groups() -> None:
    word_and_disabled = compile_rule(
        Rule(pattern="MM", template="x", word_match=True, disable_non_word_prefix=True)
    )
    group_and_disabled = compile_rule(Rule(pattern="MM", template="x", disable_non_word_suffix=True))

    assert word_and_disabled.single_pass
    assert word_and_disabled.pattern.pattern == r"MM\b"
    assert not group_and_disabled.single_pass
    assert group_and_disabled.template == "${" + PREFIX_GROUP + "}x"


def test_leading_inline_flags_stay_at_pattern_start() -> None:
    compiled = compile_rule(Rule(pattern="(?i)mattermost", template="[MM](https://mattermost.com)"))

    assert compiled.pattern.pattern.startswith("(?i)(?P<" + PREFIX_GROUP + ">")
    assert replace(compiled, "Hello MatterMost!") == "Hello [MM](https://mattermost.com)!"


def test_suffix_chars_are_configurable() -> None:
    rule = Rule(pattern=r"KEY-\d+", template="[link]")

    assert replace(compile_rule(rule), "see KEY-1.") == "see [link]."
    assert replace(compile_rule(rule, suffix_chars=""), "see KEY-1.") == "see KEY-1."
    assert replace(compile_rule(rule, suffix_chars=":"), "see KEY-1: done") == "see [link]: done"


def test_compiling_does_not_modify_rule() -> None:
    rule = Rule(name="jira", pattern="MM", template="x")
    compile_rule(rule)

    assert rule == Rule(name="jira", pattern="MM", template="x")


def test_compile_rules_logs_and_keeps_invalid_entries(caplog) -> None:
    rules = [
        Rule(name="existing", pattern=")", template="otherthing"),
        Rule(name="good", pattern="thing", template="otherthing"),
    ]

    with caplog.at_level(logging.ERROR, logger="core.compiler"):
        compiled = compile_rules(rules)

    assert len(compiled) == 2
    assert not compiled[0].active
    assert compiled[1].active
    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "existing" in errors[0].getMessage()
