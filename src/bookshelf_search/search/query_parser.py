"""Compile user query strings into executable queries.

Supported syntax::

    ownership borrow          implicit AND of both terms
    ownership OR lifetimes    either term (AND binds tighter than OR)
    +unsafe -nomicon          required / excluded clauses
    NOT deprecated            same as -deprecated
    "trait object"            phrase (consecutive terms)
    title:closures            restrict to one field
    book:nomicon              exact match on a keyword field
    (a OR b) AND c            grouping

A bare term is searched in every default field; within a field it is
analyzed with that field's analyzer. A word whose analysis yields several
tokens (``hash-map``) becomes a phrase. A prefix before ``:`` that is not a
schema field name is kept as plain text, so ``std::vec::Vec`` is a query for
its words.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
import re

from bookshelf_search.errors import QueryParseError
from bookshelf_search.search.analyzers import Analyzer
from bookshelf_search.search.query import BooleanQuery, EmptyQuery, Occur, PhraseQuery, Query, TermQuery
from bookshelf_search.search.schema import Schema
from bookshelf_search.search.storage import build_field_analyzer


_OPERATORS = {"AND", "OR", "NOT"}
_FIELD_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_SPECIAL = '()"'
MAX_NESTING_DEPTH = 64


@dataclass(frozen=True)
class _Lexeme:
    kind: str  # "(", ")", "AND", "OR", "NOT", "+", "-", "TERM", "PHRASE"
    text: str = ""
    field: str | None = None
    offset: int = 0


class _Lexer:
    def __init__(self, raw: str, schema: Schema) -> None:
        self.raw = raw
        self.schema = schema
        self.pos = 0

    def lex(self) -> list[_Lexeme]:
        lexemes: list[_Lexeme] = []
        raw = self.raw
        while self.pos < len(raw):
            char = raw[self.pos]
            if char.isspace():
                self.pos += 1
                continue
            start = self.pos
            if char in "()":
                lexemes.append(_Lexeme(char, offset=start))
                self.pos += 1
            elif char == '"':
                lexemes.append(_Lexeme("PHRASE", self._read_quoted(), offset=start))
            elif char in "+-" and self._starts_clause():
                lexemes.append(_Lexeme(char, offset=start))
                self.pos += 1
            else:
                lexemes.append(self._read_word())
        return lexemes

    def _starts_clause(self) -> bool:
        following = self.raw[self.pos + 1 : self.pos + 2]
        return bool(following) and not following.isspace() and following not in "+-)"

    def _read_quoted(self) -> str:
        start = self.pos
        end = self.raw.find('"', start + 1)
        if end == -1:
            msg = f"Unterminated phrase starting at offset {start}"
            raise QueryParseError(msg)
        self.pos = end + 1
        return self.raw[start + 1 : end]

    def _read_word(self) -> _Lexeme:
        start = self.pos
        raw = self.raw
        while self.pos < len(raw) and not raw[self.pos].isspace() and raw[self.pos] not in _SPECIAL:
            self.pos += 1
        word = raw[start : self.pos]

        if word in _OPERATORS:
            return _Lexeme(word, offset=start)

        field_name, sep, value = word.partition(":")
        if not sep or not _FIELD_NAME.fullmatch(field_name) or field_name not in self.schema:
            return _Lexeme("TERM", word, offset=start)

        if value:
            return _Lexeme("TERM", value, field=field_name, offset=start)
        if self.pos < len(raw) and raw[self.pos] == '"':
            return _Lexeme("PHRASE", self._read_quoted(), field=field_name, offset=start)
        msg = f"Missing value for field '{field_name}' at offset {start}"
        raise QueryParseError(msg)


class QueryParser:
    """Parses raw query strings against a fixed schema.

    A parser holds per-field analyzers and is meant to be owned by a single
    worker; ``parse`` itself keeps no state between calls.
    """

    def __init__(self, schema: Schema, default_fields: Sequence[str]) -> None:
        if not default_fields:
            raise ValueError("At least one default search field is required")
        for name in default_fields:
            if name not in schema:
                msg = f"Unknown default search field '{name}'"
                raise ValueError(msg)
            if not schema[name].indexed:
                msg = f"Default search field '{name}' is not indexed"
                raise ValueError(msg)
        self.schema = schema
        self.default_fields = tuple(default_fields)
        self._analyzers: dict[str, Analyzer] = {f.name: build_field_analyzer(f) for f in schema if f.indexed}

    def parse(self, raw_query: str) -> Query:
        """Compile ``raw_query``; raises ``QueryParseError`` on invalid syntax."""
        lexemes = _Lexer(raw_query, self.schema).lex()
        if not lexemes:
            return EmptyQuery()
        query = _Parser(self, lexemes).parse()
        return query if query is not None else EmptyQuery()

    def build_text_query(self, text: str, field: str | None) -> Query | None:
        """Build the query for one term or phrase, or ``None`` when nothing survives analysis."""
        fields = (field,) if field is not None else self.default_fields
        if field is not None and not self.schema[field].indexed:
            msg = f"Field '{field}' is not indexed"
            raise QueryParseError(msg)

        per_field: list[Query] = []
        for field_name in fields:
            tokens = self._analyzers[field_name](text)
            if not tokens:
                continue
            if len(tokens) == 1:
                per_field.append(TermQuery(field_name, tokens[0].text))
                continue
            first = tokens[0].position
            per_field.append(
                PhraseQuery(
                    field_name,
                    tuple(token.text for token in tokens),
                    tuple(token.position - first for token in tokens),
                )
            )
        if not per_field:
            return None
        if len(per_field) == 1:
            return per_field[0]
        return BooleanQuery.of([(Occur.SHOULD, sub_query) for sub_query in per_field])


class _Parser:
    """Recursive-descent parser over lexemes.

    or_expr  := and_expr ("OR" and_expr)*
    and_expr := unary (["AND"] unary)*
    unary    := ("NOT" | "-" | "+") atom | atom
    atom     := "(" or_expr ")" | TERM | PHRASE

    Parenthesized groups may nest at most ``MAX_NESTING_DEPTH`` levels.
    """

    def __init__(self, owner: QueryParser, lexemes: list[_Lexeme]) -> None:
        self.owner = owner
        self.lexemes = lexemes
        self.index = 0
        self.depth = 0

    def parse(self) -> Query | None:
        query = self._or_expr()
        if self.index < len(self.lexemes):
            lexeme = self.lexemes[self.index]
            msg = f"Unexpected '{lexeme.kind}' at offset {lexeme.offset}"
            raise QueryParseError(msg)
        return query

    def _peek(self) -> _Lexeme | None:
        if self.index < len(self.lexemes):
            return self.lexemes[self.index]
        return None

    def _next(self) -> _Lexeme:
        lexeme = self._peek()
        if lexeme is None:
            raise QueryParseError("Unexpected end of query")
        self.index += 1
        return lexeme

    def _or_expr(self) -> Query | None:
        branches = [self._and_expr()]
        while (lexeme := self._peek()) is not None and lexeme.kind == "OR":
            self.index += 1
            branches.append(self._and_expr())
        kept = [branch for branch in branches if branch is not None]
        if not kept:
            return None
        if len(kept) == 1:
            return kept[0]
        return BooleanQuery.of([(Occur.SHOULD, branch) for branch in kept])

    def _and_expr(self) -> Query | None:
        clauses: list[tuple[Occur, Query | None]] = [self._unary()]
        while (lexeme := self._peek()) is not None and lexeme.kind not in {"OR", ")"}:
            if lexeme.kind == "AND":
                self.index += 1
            clauses.append(self._unary())

        kept = [(occur, query) for occur, query in clauses if query is not None]
        if not kept:
            return None
        if all(occur == Occur.MUST_NOT for occur, _ in kept):
            raise QueryParseError("Query cannot consist only of excluded clauses")
        if len(kept) == 1:
            return kept[0][1]
        return BooleanQuery.of(kept)  # type: ignore[arg-type]

    def _unary(self) -> tuple[Occur, Query | None]:
        lexeme = self._peek()
        if lexeme is not None and lexeme.kind in {"NOT", "-"}:
            self.index += 1
            return Occur.MUST_NOT, self._atom()
        if lexeme is not None and lexeme.kind == "+":
            self.index += 1
        return Occur.MUST, self._atom()

    def _atom(self) -> Query | None:
        lexeme = self._next()
        if lexeme.kind == "(":
            if self.depth >= MAX_NESTING_DEPTH:
                msg = f"Query nested too deeply at offset {lexeme.offset}"
                raise QueryParseError(msg)
            self.depth += 1
            inner = self._or_expr()
            self.depth -= 1
            closing = self._next()
            if closing.kind != ")":
                msg = f"Expected ')' at offset {closing.offset}"
                raise QueryParseError(msg)
            return inner
        if lexeme.kind == "TERM":
            return self.owner.build_text_query(lexeme.text, lexeme.field)
        if lexeme.kind == "PHRASE":
            return self.owner.build_text_query(lexeme.text, lexeme.field)
        msg = f"Unexpected '{lexeme.kind}' at offset {lexeme.offset}"
        raise QueryParseError(msg)
