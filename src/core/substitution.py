"""Applying a compiled rule to a span of text."""

from __future__ import annotations

import re
from typing import List

from core.compiler import CompiledRule

# $name, ${name}, $1, ${1} and $$; names are the longest [A-Za-z0-9_] run.
_TEMPLATE_REF_RE = re.compile(r"\$(?:(?P<dollar>\$)|\{(?P<braced>[A-Za-z0-9_]+)\}|(?P<bare>[A-Za-z0-9_]+))")


def _group_value(match: re.Match, name: str) -> str:
    if name.isdigit():
        index = int(name)
        if index > (match.re.groups or 0):
            return ""
        return match.group(index) or ""
    if name not in match.re.groupindex:
        return ""
    return match.group(name) or ""


def expand_template(match: re.Match, template: str) -> str:
    """Expand ``$name`` style group references against a match.

    Unknown and unmatched groups expand to an empty string; a ``$`` that does
    not start a valid reference is kept as is.
    """

    def _expand(ref: re.Match) -> str:
        if ref.group("dollar"):
            return "$"
        return _group_value(match, ref.group("braced") or ref.group("bare"))

    return _TEMPLATE_REF_RE.sub(_expand, template)


def replace(compiled: CompiledRule, text: str) -> str:
    """Return ``text`` with every non-overlapping match rewritten."""

    pattern = compiled.pattern
    if pattern is None:
        return text

    if compiled.single_pass:
        return pattern.sub(lambda match: expand_template(match, compiled.template), text)

    # The remainder is sliced after each non-empty match so ^ in the prefix
    # boundary anchors at the resume point, letting back-to-back matches
    # share a separator. After an empty match the search moves on inside the
    # same remainder, where ^ no longer matches. An empty match right where
    # the previous match ended is not replaced.
    out: List[str] = []
    rest = text
    pos = 0
    after_match = False
    while rest:
        match = pattern.search(rest, pos)
        if match is None:
            break
        start, end = match.span()
        out.append(rest[pos:start])
        if end > start:
            out.append(expand_template(match, compiled.template))
            rest = rest[end:]
            pos = 0
            after_match = True
            continue
        if not (after_match and start == 0):
            out.append(expand_template(match, compiled.template))
        after_match = False
        if start >= len(rest):
            pos = start
            break
        out.append(rest[start])
        pos = start + 1
    out.append(rest[pos:])
    return "".join(out)
