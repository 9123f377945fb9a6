"""Text preprocessing for lexical chunk search."""

from __future__ import annotations

import re

from recall_engine.config.constants import STOPWORDS

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str, min_length: int = 2) -> list[str]:
    """Lowercase, strip punctuation, drop stopwords and very short tokens."""
    tokens = _NON_WORD.sub(" ", text.lower()).split()
    return [t for t in tokens if t not in STOPWORDS and len(t) >= min_length]
