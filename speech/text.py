"""Tokenizer shared by every analyzer feature, so interim and final fragments count the same way."""

import re

_PUNCT = re.compile(r"[^\w\s]")
_SPACE = re.compile(r"\s+")


def extract_words(text: str) -> list[str]:
    """Lowercase tokens; punctuation becomes whitespace, empty tokens are dropped."""
    if not text:
        return []
    return [w for w in _SPACE.split(_PUNCT.sub(" ", text.lower())) if w]
