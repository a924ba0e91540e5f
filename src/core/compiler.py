"""Rule compilation (core domain).

Turns a ``Rule`` into an anchored matcher plus the template that goes with
it. ``\\b`` anchors do not consume characters and can be used with a single
global substitution; the capturing boundary groups consume the boundary
character, so rules using them are replaced one match at a time (see
``core.substitution``).
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Iterable, Optional, Tuple

from core.errors import CompileError
from core.rules import Rule

LOGGER = logging.getLogger(__name__)

PREFIX_GROUP = "AutolinkNonWordPrefix"
SUFFIX_GROUP = "AutolinkNonWordSuffix"

# Characters, besides whitespace, that may follow a match in non-word mode.
DEFAULT_SUFFIX_CHARS = ".!?,)"

# Global inline flags must stay at the very start of a Python pattern.
_LEADING_FLAGS_RE = re.compile(r"^(?:\(\?[aiLmsux]+\))+")


@dataclass(frozen=True)
class CompiledRule:
    """Derived, disposable matcher for one rule.

    ``pattern`` is None for rules that are disabled or incomplete; such a
    rule never changes any text.
    """

    rule: Rule
    pattern: Optional[re.Pattern] = None
    template: str = ""
    single_pass: bool = False

    @property
    def active(self) -> bool:
        return self.pattern is not None


def prefix_boundary() -> str:
    return rf"(?P<{PREFIX_GROUP}>^|\s)"


def suffix_boundary(suffix_chars: str = DEFAULT_SUFFIX_CHARS) -> str:
    escaped = "".join(re.escape(char) for char in suffix_chars)
    return rf"(?P<{SUFFIX_GROUP}>$|[\s{escaped}])"


def compile_rule(
    rule: Rule,
    validate: bool = False,
    suffix_chars: str = DEFAULT_SUFFIX_CHARS,
) -> CompiledRule:
    """Compile one rule.

    In normal mode a disabled rule, or one with an empty pattern or template,
    compiles to an inert ``CompiledRule``. With ``validate=True`` the
    disabled flag is ignored and an empty pattern or template is an error,
    which is what an explicit "test this rule" request wants.

    Raises ``CompileError`` when the assembled pattern is not a valid regex.
    """

    if validate:
        if not rule.pattern:
            raise CompileError("pattern is empty", rule.display_name)
        if not rule.template:
            raise CompileError("template is empty", rule.display_name)
    elif rule.disabled or not rule.pattern or not rule.template:
        return CompiledRule(rule=rule)

    flags_match = _LEADING_FLAGS_RE.match(rule.pattern)
    flags = flags_match.group(0) if flags_match else ""
    pattern = rule.pattern[len(flags):]
    template = rule.template
    single_pass = True

    if not rule.disable_non_word_prefix:
        if rule.word_match:
            pattern = r"\b" + pattern
        else:
            pattern = prefix_boundary() + pattern
            template = "${" + PREFIX_GROUP + "}" + template
            single_pass = False

    if not rule.disable_non_word_suffix:
        if rule.word_match:
            pattern = pattern + r"\b"
        else:
            pattern = pattern + suffix_boundary(suffix_chars)
            template = template + "${" + SUFFIX_GROUP + "}"
            single_pass = False

    try:
        compiled = re.compile(flags + pattern)
    except re.error as exc:
        raise CompileError(f"invalid pattern: {exc}", rule.display_name) from exc

    return CompiledRule(
        rule=rule,
        pattern=compiled,
        template=template,
        single_pass=single_pass,
    )


def compile_rules(
    rules: Iterable[Rule],
    suffix_chars: str = DEFAULT_SUFFIX_CHARS,
) -> Tuple[CompiledRule, ...]:
    """Compile rules in order for message processing.

    A rule that fails to compile is logged and kept as an inert entry so the
    list still lines up with the configured rules.
    """

    compiled = []
    for rule in rules:
        try:
            compiled.append(compile_rule(rule, suffix_chars=suffix_chars))
        except CompileError as exc:
            LOGGER.error("Error compiling autolink %s: %s", rule.display_name, exc)
            compiled.append(CompiledRule(rule=rule))
    return tuple(compiled)
