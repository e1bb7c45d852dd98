"""Text analysis for indexed fields.

An analyzer turns a field value into a list of ``Token``s. Every analyzer is
a word tokenizer followed by a chain of filters; the same analyzer is used at
index time and when the query parser analyzes query terms, so both sides
produce identical terms.

Token positions are assigned by the tokenizer and never renumbered, so a
token dropped for its length still occupies its slot and phrase matching
cannot bridge it. Underscores separate words like any other punctuation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
import re
from typing import NamedTuple


class Token(NamedTuple):
    """One analyzed term and where it came from."""

    text: str
    position: int
    start_char: int
    end_char: int


TokenFilter = Callable[[Iterable[Token]], Iterator[Token]]
Analyzer = Callable[[str], list[Token]]

WORD_PATTERN = re.compile(r"[^\W_]+", re.UNICODE)
MAX_TOKEN_LENGTH = 40


def tokenize(text: str) -> Iterator[Token]:
    """Split ``text`` into word tokens numbered by their order of appearance."""
    for position, match in enumerate(WORD_PATTERN.finditer(text)):
        yield Token(match.group(), position, match.start(), match.end())


def lowercase(tokens: Iterable[Token]) -> Iterator[Token]:
    for token in tokens:
        yield token._replace(text=token.text.lower())


def drop_longer_than(limit: int) -> TokenFilter:
    """Filter dropping tokens longer than ``limit`` characters (hashes, encoded blobs)."""

    def token_filter(tokens: Iterable[Token]) -> Iterator[Token]:
        return (token for token in tokens if len(token.text) <= limit)

    return token_filter


@dataclass(frozen=True)
class TextAnalyzer:
    """Word tokenizer followed by ``filters`` applied in order."""

    name: str
    filters: tuple[TokenFilter, ...] = ()

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = tokenize(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return list(stream)


class KeywordAnalyzer:
    """Emits the whole value as one untouched token."""

    name = "keyword"

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        return [Token(text, 0, 0, len(text))]


def simple_analyzer() -> TextAnalyzer:
    """Lowercased words; nothing else is removed or rewritten."""
    return TextAnalyzer("default", (drop_longer_than(MAX_TOKEN_LENGTH), lowercase))


_ANALYZERS: dict[str, Callable[[], Analyzer]] = {
    "default": simple_analyzer,
    "keyword": KeywordAnalyzer,
}


def get_analyzer(name: str | None) -> Analyzer:
    """Return a fresh analyzer by name; ``None`` selects ``default``."""
    key = (name or "default").lower()
    try:
        factory = _ANALYZERS[key]
    except KeyError:
        msg = f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZERS)}"
        raise ValueError(msg) from None
    return factory()
