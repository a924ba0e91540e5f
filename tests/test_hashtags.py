from __future__ import annotations

from core.hashtags import MAX_HASHTAGS_LENGTH, parse_hashtags


def test_hashtags_and_plain_words_are_split() -> None:
    hashtags, plain = parse_hashtags("see #bug and #feature-42 today")

    assert hashtags == "#bug #feature-42"
    assert plain == "see and today"


def test_punctuation_is_trimmed() -> None:
    hashtags, _ = parse_hashtags("(#bug), ##release.")

    assert hashtags == "#bug #release"


def test_invalid_hashtags_are_plain_words() -> None:
    hashtags, plain = parse_hashtags("#1 #a #_x #ab")

    assert hashtags == "#ab"
    assert "#a" in plain.split()
    assert "1" in plain


def test_hashtags_are_capped() -> None:
    text = " ".join(f"#tag{index:04d}" for index in range(200))

    hashtags, _ = parse_hashtags(text)

    assert len(hashtags) < MAX_HASHTAGS_LENGTH
    assert hashtags.startswith("#tag0000 #tag0001")
    assert not hashtags.endswith(" ")
