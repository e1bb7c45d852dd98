"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- schema: Field types and the bookshelf schema
- analyzers: Tokenizers and filters (lowercase, stop, stemming)
- storage: Index writer, committed index and searcher
- stats: BM25 scoring statistics
- query / query_parser: Query objects and the query language
- collector: Top-K ranking collector
- indexer: Book loading and indexing
"""
