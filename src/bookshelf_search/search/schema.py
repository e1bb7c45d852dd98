"""
Field definitions for the bookshelf index.

Every indexed document has the same five fields:
- book: which corpus the document belongs to (keyword)
- section: the document reference inside its corpus (keyword)
- title, breadcrumbs, body: searchable text

Keyword fields are indexed as one exact term; text fields are run through
an analyzer. All five are stored and returned verbatim in search results.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


class FieldKind(str, Enum):
    TEXT = "text"
    KEYWORD = "keyword"


@dataclass(frozen=True)
class SchemaField:
    """Common field options.

    Args:
        name: Field name used in documents and in ``field:term`` queries
        stored: Keep the raw value for retrieval
        indexed: Make the field searchable
        boost: Multiplier applied to scores from this field
    """

    kind: ClassVar[FieldKind]

    name: str
    stored: bool = True
    indexed: bool = True
    boost: float = 1.0


@dataclass(frozen=True)
class TextField(SchemaField):
    """Tokenized field; ``analyzer_name`` picks the analyzer (``None`` = default)."""

    kind: ClassVar[FieldKind] = FieldKind.TEXT

    analyzer_name: str | None = None


@dataclass(frozen=True)
class KeywordField(SchemaField):
    """Untokenized field matched only by its exact value."""

    kind: ClassVar[FieldKind] = FieldKind.KEYWORD


@dataclass(frozen=True)
class Schema:
    """Ordered, immutable collection of uniquely named fields."""

    fields: tuple[SchemaField, ...]
    name: str = "default"
    _by_name: dict[str, SchemaField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name: dict[str, SchemaField] = {}
        for schema_field in self.fields:
            if schema_field.name in by_name:
                msg = f"Duplicate field '{schema_field.name}' in schema"
                raise ValueError(msg)
            by_name[schema_field.name] = schema_field
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "_by_name", by_name)

    @classmethod
    def of(cls, fields: Iterable[SchemaField], name: str = "default") -> Schema:
        return cls(tuple(fields), name)

    def __getitem__(self, name: str) -> SchemaField:
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[SchemaField]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self._by_name)

    @property
    def stored_fields(self) -> list[SchemaField]:
        return [f for f in self.fields if f.stored]

    def fields_of_kind(self, kind: FieldKind) -> list[SchemaField]:
        return [f for f in self.fields if f.kind is kind]

    def get_boost(self, field_name: str) -> float:
        schema_field = self._by_name.get(field_name)
        return schema_field.boost if schema_field else 1.0


BOOK_FIELD = "book"
SECTION_FIELD = "section"
TITLE_FIELD = "title"
BREADCRUMBS_FIELD = "breadcrumbs"
BODY_FIELD = "body"

DEFAULT_SEARCH_FIELDS: tuple[str, ...] = (TITLE_FIELD, BREADCRUMBS_FIELD, BODY_FIELD)


def create_bookshelf_schema() -> Schema:
    """Build the schema shared by every book in the index."""
    return Schema.of(
        (
            KeywordField(BOOK_FIELD),
            KeywordField(SECTION_FIELD),
            TextField(TITLE_FIELD),
            TextField(BREADCRUMBS_FIELD),
            TextField(BODY_FIELD),
        ),
        name="bookshelf",
    )
