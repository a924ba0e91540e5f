"""Hashtag extraction for rewritten messages."""

from __future__ import annotations

import re
from typing import Tuple

MAX_HASHTAGS_LENGTH = 1000

_LEADING_PUNCTUATION_RE = re.compile(r"^[^\w#]+|^_+")
_TRAILING_PUNCTUATION_RE = re.compile(r"[\W_]+$")
_EXTRA_POUNDS_RE = re.compile(r"^#{2,}")
# A letter, then letters/digits/-/_/., ending on a letter or digit;
# at least two characters after the #.
_HASHTAG_RE = re.compile(r"^#[^\W\d_][\w\-.]*[^\W_]$")


def parse_hashtags(text: str) -> Tuple[str, str]:
    """Split message words into (hashtags, plain text), both space-joined."""

    hashtags = []
    plain = []
    for word in text.split():
        word = _LEADING_PUNCTUATION_RE.sub("", word)
        word = _TRAILING_PUNCTUATION_RE.sub("", word)
        word = _EXTRA_POUNDS_RE.sub("#", word)
        if _HASHTAG_RE.match(word):
            hashtags.append(word)
        elif word:
            plain.append(word)

    joined = " ".join(hashtags)
    if len(joined) > MAX_HASHTAGS_LENGTH:
        joined = joined[: MAX_HASHTAGS_LENGTH - 1]
        last_space = joined.rfind(" ")
        joined = joined[:last_space] if last_space > -1 else ""
    return joined, " ".join(plain)
