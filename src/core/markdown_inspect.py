"""Offset-preserving markdown inspection.

This is not a renderer. It finds just enough chat-markdown structure to tell
which parts of a message are plain prose and where they sit in the source,
so the rewriter can splice replacements back without disturbing code,
links, or images.

``inspect`` runs a line-based block pass (code blocks, reference
definitions, headings, quotes, list markers) and then lazily parses the
inline content of each paragraph. Every node carries a ``Range`` into the
original string.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
import re
import string
from typing import Callable, Iterator, List, Optional, Set, Tuple

ASCII_PUNCTUATION = frozenset(string.punctuation)


@dataclass(frozen=True)
class Range:
    start: int
    end: int


@dataclass(frozen=True)
class Node:
    range: Range


@dataclass(frozen=True)
class Text(Node):
    """A run of plain text on a single source line."""

    text: str


@dataclass(frozen=True)
class Autolink(Node):
    """A URL recognized as a link target.

    ``range`` covers the URL itself; for ``<...>`` autolinks the angle
    brackets are outside it and ``bracketed`` is set.
    """

    text: str
    destination: str
    bracketed: bool = False


@dataclass(frozen=True)
class CodeSpan(Node):
    pass


@dataclass(frozen=True)
class CodeBlock(Node):
    pass


@dataclass(frozen=True)
class ReferenceDefinition(Node):
    label: str


@dataclass(frozen=True)
class Delimiter(Node):
    """Emphasis or strikethrough marker run."""


@dataclass(frozen=True)
class Escape(Node):
    pass


@dataclass(frozen=True)
class InlineLink(Node):
    destination: str
    children: Tuple[Node, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class InlineImage(Node):
    destination: str
    children: Tuple[Node, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReferenceLink(Node):
    label: str
    children: Tuple[Node, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReferenceImage(Node):
    label: str
    children: Tuple[Node, ...] = field(default_factory=tuple)


LINK_NODES = (InlineLink, InlineImage, ReferenceLink, ReferenceImage)

# ---------------------------------------------------------------------------
# Block pass
# ---------------------------------------------------------------------------

_BLOCKQUOTE_RE = re.compile(r" {0,3}> ?")
_LIST_MARKER_RE = re.compile(r" {0,3}(?:[-+*]|\d{1,9}[.)])(?:[ \t]+|$)")
_FENCE_OPEN_RE = re.compile(r" {0,3}(`{3,}|~{3,})(.*)$")
_FENCE_CLOSE_RE = re.compile(r" {0,3}(`+|~+)[ \t\r]*$")
_THEMATIC_BREAK_RE = re.compile(r" {0,3}([-*_])[ \t]*(?:\1[ \t]*){2,}$")
_SETEXT_RE = re.compile(r" {0,3}(?:=+|-+)[ \t]*$")
_ATX_RE = re.compile(r" {0,3}#{1,6}(?:[ \t]+|$)")
_ATX_CLOSING_RE = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_DEFINITION_RE = re.compile(
    r" {0,3}\[(?P<label>(?:\\.|[^\\\[\]])+)\]:[ \t]*(?:<[^<>\n]*>|\S+)"
    r"(?:[ \t]+(?:\"[^\"]*\"|'[^']*'|\([^()]*\)))?[ \t]*$"
)


def normalize_label(label: str) -> str:
    """Reference labels match case-insensitively with collapsed whitespace."""

    return " ".join(label.split()).casefold()


def _iter_lines(markdown: str) -> Iterator[Tuple[int, int]]:
    start = 0
    while start <= len(markdown):
        newline = markdown.find("\n", start)
        if newline == -1:
            if start < len(markdown):
                yield start, len(markdown)
            return
        yield start, newline
        start = newline + 1


def _strip_containers(markdown: str, start: int, end: int) -> int:
    """Skip block quote and list markers, returning the content start."""

    while True:
        quote = _BLOCKQUOTE_RE.match(markdown, start, end)
        if quote is None:
            break
        start = quote.end()
    if _THEMATIC_BREAK_RE.match(markdown, start, end):
        return start
    marker = _LIST_MARKER_RE.match(markdown, start, end)
    if marker is not None:
        start = marker.end()
    return start


def _indent_width(markdown: str, start: int, end: int) -> int:
    width = 0
    for char in markdown[start:end]:
        if char == " ":
            width += 1
        elif char == "\t":
            width += 4 - width % 4
        else:
            break
    return width


def _trim(markdown: str, start: int, end: int) -> Tuple[int, int]:
    while start < end and markdown[start] in " \t":
        start += 1
    while end > start and markdown[end - 1] in " \t\r":
        end -= 1
    return start, end


@dataclass
class _Blocks:
    nodes: List[object] = field(default_factory=list)
    labels: Set[str] = field(default_factory=set)


def _scan_blocks(markdown: str) -> _Blocks:
    """Split the message into code blocks, definitions and paragraphs.

    Paragraphs are kept as lists of trimmed ``(start, end)`` line ranges and
    parsed for inlines later, once every reference label is known.
    """

    blocks = _Blocks()
    paragraph: List[Tuple[int, int]] = []
    fence: Optional[Tuple[str, int, int]] = None

    def close_paragraph() -> None:
        if paragraph:
            blocks.nodes.append(list(paragraph))
            paragraph.clear()

    for line_start, line_end in _iter_lines(markdown):
        content = _strip_containers(markdown, line_start, line_end)
        line = markdown[content:line_end]

        if fence is not None:
            fence_char, fence_len, fence_start = fence
            closing = _FENCE_CLOSE_RE.match(line)
            if closing and closing.group(1)[0] == fence_char and len(closing.group(1)) >= fence_len:
                blocks.nodes.append(CodeBlock(Range(fence_start, line_end)))
                fence = None
            continue

        if not line.strip():
            close_paragraph()
            continue

        opening = _FENCE_OPEN_RE.match(line)
        if opening and not (opening.group(1)[0] == "`" and "`" in opening.group(2)):
            close_paragraph()
            fence = (opening.group(1)[0], len(opening.group(1)), line_start)
            continue

        if not paragraph and _indent_width(markdown, content, line_end) >= 4:
            blocks.nodes.append(CodeBlock(Range(line_start, line_end)))
            continue

        if paragraph and _SETEXT_RE.match(line):
            close_paragraph()
            continue

        if _THEMATIC_BREAK_RE.match(line):
            close_paragraph()
            continue

        heading = _ATX_RE.match(line)
        if heading:
            close_paragraph()
            start = content + heading.end()
            closing = _ATX_CLOSING_RE.search(markdown, start, line_end)
            end = closing.start() if closing else line_end
            start, end = _trim(markdown, start, end)
            if end > start:
                blocks.nodes.append([(start, end)])
            continue

        if not paragraph:
            definition = _DEFINITION_RE.match(line)
            if definition and definition.group("label").strip():
                label = normalize_label(definition.group("label"))
                blocks.labels.add(label)
                blocks.nodes.append(ReferenceDefinition(Range(line_start, line_end), label))
                continue

        paragraph.append(_trim(markdown, content, line_end))

    close_paragraph()
    if fence is not None:
        # An unclosed fence runs to the end of the message.
        blocks.nodes.append(CodeBlock(Range(fence[2], len(markdown))))
    return blocks


# ---------------------------------------------------------------------------
# Inline pass
# ---------------------------------------------------------------------------

_ANGLE_AUTOLINK_RE = re.compile(
    r"<(?P<url>[A-Za-z][A-Za-z0-9+.\-]{1,31}:[^\s<>]*"
    r"|[A-Za-z0-9.!#$%&'*+/=?^_`{|}~\-]+@[A-Za-z0-9](?:[A-Za-z0-9\-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9\-]{0,61}[A-Za-z0-9])?)*)>"
)
_BARE_URL_RE = re.compile(
    r"(?:(?:https?|ftp)://|www\.)[A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)*[^\s<]*",
    re.IGNORECASE,
)
_URL_TRAILING_PUNCTUATION = "?!.,:*_~'\""
_ENTITY_SUFFIX_RE = re.compile(r"&[A-Za-z0-9]+;$")
_URL_PRECEDERS = " \t\n*_~("


class _Paragraph:
    """Paragraph content joined by newlines, mapped back to the source."""

    def __init__(self, markdown: str, lines: List[Tuple[int, int]]) -> None:
        self._line_starts: List[int] = []
        self._source_starts: List[int] = []
        parts = []
        position = 0
        for start, end in lines:
            self._line_starts.append(position)
            self._source_starts.append(start)
            parts.append(markdown[start:end])
            position += end - start + 1
        self.text = "\n".join(parts)

    def to_source(self, index: int) -> int:
        line = bisect_right(self._line_starts, index) - 1
        return self._source_starts[line] + index - self._line_starts[line]

    def source_range(self, start: int, end: int) -> Range:
        if end <= start:
            position = self.to_source(start)
            return Range(position, position)
        return Range(self.to_source(start), self.to_source(end - 1) + 1)


def _is_punct(char: str) -> bool:
    return char in ASCII_PUNCTUATION or (not char.isalnum() and not char.isspace())


def _is_delimiter_run(text: str, start: int, end: int) -> bool:
    char = text[start]
    before = text[start - 1] if start > 0 else " "
    after = text[end] if end < len(text) else " "
    left = not after.isspace() and (not _is_punct(after) or before.isspace() or _is_punct(before))
    right = not before.isspace() and (not _is_punct(before) or after.isspace() or _is_punct(after))
    if char == "*":
        return left or right
    if char == "~":
        return end - start == 2 and (left or right)
    can_open = left and (not right or _is_punct(before))
    can_close = right and (not left or _is_punct(after))
    return can_open or can_close


def _backtick_run(text: str, start: int, end: int) -> int:
    position = start
    while position < end and text[position] == "`":
        position += 1
    return position - start


def _find_closing_backticks(text: str, start: int, end: int, length: int) -> Optional[int]:
    position = start
    while position < end:
        found = text.find("`", position, end)
        if found == -1:
            return None
        run = _backtick_run(text, found, end)
        if run == length:
            return found
        position = found + run
    return None


def _find_label_end(text: str, start: int, end: int) -> Optional[int]:
    """Index of the ``]`` closing a label that starts after ``[`` at ``start``."""

    depth = 0
    position = start
    while position < end:
        char = text[position]
        if char == "\\" and position + 1 < end:
            position += 2
            continue
        if char == "`":
            run = _backtick_run(text, position, end)
            closing = _find_closing_backticks(text, position + run, end, run)
            position = closing + run if closing is not None else position + run
            continue
        if char == "[":
            depth += 1
        elif char == "]":
            if depth == 0:
                return position
            depth -= 1
        position += 1
    return None


def _skip_whitespace(text: str, position: int, end: int) -> int:
    while position < end and text[position] in " \t\n":
        position += 1
    return position


def _parse_inline_destination(text: str, position: int, end: int) -> Optional[Tuple[str, int]]:
    """Parse ``dest "title")`` after ``](``; returns destination and end index."""

    position = _skip_whitespace(text, position, end)
    if position < end and text[position] == "<":
        closing = text.find(">", position + 1, end)
        if closing == -1 or "\n" in text[position:closing]:
            return None
        destination = text[position + 1 : closing]
        position = closing + 1
    else:
        dest_start = position
        depth = 0
        while position < end:
            char = text[position]
            if char == "\\" and position + 1 < end:
                position += 2
                continue
            if char.isspace():
                break
            if char == "(":
                depth += 1
            elif char == ")":
                if depth == 0:
                    break
                depth -= 1
            position += 1
        destination = text[dest_start:position]

    after_dest = position
    position = _skip_whitespace(text, position, end)
    if position < end and position > after_dest and text[position] in "\"'(":
        closer = ")" if text[position] == "(" else text[position]
        closing = text.find(closer, position + 1, end)
        if closing == -1:
            return None
        position = _skip_whitespace(text, closing + 1, end)
    if position < end and text[position] == ")":
        return destination, position + 1
    return None


def _trim_url(text: str, start: int, end: int) -> int:
    while end > start:
        url = text[start:end]
        last = url[-1]
        if last in _URL_TRAILING_PUNCTUATION:
            end -= 1
        elif last == ")" and url.count("(") < url.count(")"):
            end -= 1
        elif last == ";" and _ENTITY_SUFFIX_RE.search(url):
            end -= len(_ENTITY_SUFFIX_RE.search(url).group(0))
        else:
            break
    return end


class _InlineParser:
    def __init__(self, paragraph: _Paragraph, labels: Set[str]) -> None:
        self._paragraph = paragraph
        self._text = paragraph.text
        self._labels = labels

    def parse(self) -> List[Node]:
        return self._parse_range(0, len(self._text))

    def _text_nodes(self, start: int, end: int) -> List[Node]:
        nodes: List[Node] = []
        position = start
        while position < end:
            newline = self._text.find("\n", position, end)
            stop = end if newline == -1 else newline
            if stop > position:
                nodes.append(
                    Text(self._paragraph.source_range(position, stop), self._text[position:stop])
                )
            position = stop + 1
        return nodes

    def _parse_range(self, start: int, end: int) -> List[Node]:
        text = self._text
        nodes: List[Node] = []
        text_start = start
        position = start

        def emit(node: Node, node_start: int) -> None:
            nodes.extend(self._text_nodes(text_start, node_start))
            nodes.append(node)

        while position < end:
            char = text[position]

            if char == "\\" and position + 1 < end and text[position + 1] in ASCII_PUNCTUATION:
                emit(Escape(self._paragraph.source_range(position, position + 2)), position)
                position += 2
                text_start = position
                continue

            if char == "`":
                run = _backtick_run(text, position, end)
                closing = _find_closing_backticks(text, position + run, end, run)
                if closing is None:
                    position += run
                    continue
                emit(CodeSpan(self._paragraph.source_range(position, closing + run)), position)
                position = closing + run
                text_start = position
                continue

            if char == "!" and position + 1 < end and text[position + 1] == "[":
                parsed = self._parse_link(position + 1, end, image=True)
                if parsed is not None:
                    node, stop = parsed
                    emit(node, position)
                    position = text_start = stop
                    continue
                position += 1
                continue

            if char == "[":
                parsed = self._parse_link(position, end, image=False)
                if parsed is not None:
                    node, stop = parsed
                    emit(node, position)
                    position = text_start = stop
                    continue
                position += 1
                continue

            if char == "<":
                angle = _ANGLE_AUTOLINK_RE.match(text, position, end)
                if angle is not None:
                    url = angle.group("url")
                    destination = url if ":" in url else f"mailto:{url}"
                    node = Autolink(
                        self._paragraph.source_range(angle.start("url"), angle.end("url")),
                        url,
                        destination,
                        bracketed=True,
                    )
                    emit(node, position)
                    position = text_start = angle.end()
                    continue

            if char in "*_~":
                run_end = position
                while run_end < end and text[run_end] == char:
                    run_end += 1
                if _is_delimiter_run(text, position, run_end):
                    emit(Delimiter(self._paragraph.source_range(position, run_end)), position)
                    text_start = run_end
                position = run_end
                continue

            if char in "hHfFwW" and (position == 0 or text[position - 1] in _URL_PRECEDERS):
                bare = _BARE_URL_RE.match(text, position, end)
                if bare is not None:
                    stop = _trim_url(text, position, bare.end())
                    if stop > position:
                        url = text[position:stop]
                        destination = url if "://" in url else f"http://{url}"
                        emit(Autolink(self._paragraph.source_range(position, stop), url, destination), position)
                        position = text_start = stop
                        continue

            position += 1

        nodes.extend(self._text_nodes(text_start, end))
        return nodes

    def _parse_link(self, open_bracket: int, end: int, image: bool) -> Optional[Tuple[Node, int]]:
        text = self._text
        close = _find_label_end(text, open_bracket + 1, end)
        if close is None:
            return None
        start = open_bracket - 1 if image else open_bracket
        label = text[open_bracket + 1 : close]
        after = close + 1

        if after < end and text[after] == "(":
            inline = _parse_inline_destination(text, after + 1, end)
            if inline is not None:
                destination, stop = inline
                children = tuple(self._parse_range(open_bracket + 1, close))
                node_range = self._paragraph.source_range(start, stop)
                if image:
                    return InlineImage(node_range, destination, children), stop
                return InlineLink(node_range, destination, children), stop

        if after < end and text[after] == "[":
            ref_close = text.find("]", after + 1, end)
            if ref_close != -1 and "[" not in text[after + 1 : ref_close]:
                reference = text[after + 1 : ref_close] or label
                normalized = normalize_label(reference)
                if normalized in self._labels:
                    return self._reference(start, ref_close + 1, open_bracket, close, normalized, image)

        normalized = normalize_label(label)
        if normalized and normalized in self._labels:
            return self._reference(start, close + 1, open_bracket, close, normalized, image)
        return None

    def _reference(
        self, start: int, stop: int, open_bracket: int, close: int, label: str, image: bool
    ) -> Tuple[Node, int]:
        children = tuple(self._parse_range(open_bracket + 1, close))
        node_range = self._paragraph.source_range(start, stop)
        if image:
            return ReferenceImage(node_range, label, children), stop
        return ReferenceLink(node_range, label, children), stop


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def inspect(markdown: str) -> Iterator[Node]:
    """Yield top-level nodes in source order.

    The block pass runs up front so reference labels defined anywhere in the
    message are known; paragraphs are parsed as the iterator advances.
    """

    blocks = _scan_blocks(markdown)
    for block in blocks.nodes:
        if isinstance(block, Node):
            yield block
            continue
        paragraph = _Paragraph(markdown, block)
        yield from _InlineParser(paragraph, blocks.labels).parse()


def walk(markdown: str, descend: Optional[Callable[[Node], bool]] = None) -> Iterator[Node]:
    """Depth-first traversal; ``descend(node)`` False skips a node's children."""

    for node in inspect(markdown):
        yield from _walk_node(node, descend)


def _walk_node(node: Node, descend: Optional[Callable[[Node], bool]]) -> Iterator[Node]:
    yield node
    children = getattr(node, "children", ())
    if children and (descend is None or descend(node)):
        for child in children:
            yield from _walk_node(child, descend)
