"""
FlatSearch: a flat-file inverted index search engine
Builds a SQL-shaped index from a directory of documents, loads it back into
memory and answers ranked free-text queries with snippets
"""

__version__ = "1.0.0"

from .core import (
    TableType, Token, term_hash,
    IndexFormatError, IndexCorruptionError, IndexWriteError
)
from .config import DEFAULT_CONFIG, load_config
from .analyzer import TextAnalyzer
from .document import Document
from .writer import IndexWriter
from .pipeline import Indexer, Saver
from .index import IndexedDocument, IndexedTerm, InvertedIndex
from .loader import IndexLoader
from .query_processor import QueryProcessor, QueryResult, SearchResult
from .snippets import SnippetGenerator
from .metrics import MetricsCollector, Reporter
from .index_builder import IndexBuilder, SampleQueryGenerator

__all__ = [
    "TableType",
    "Token",
    "term_hash",
    "IndexFormatError",
    "IndexCorruptionError",
    "IndexWriteError",
    "DEFAULT_CONFIG",
    "load_config",
    "TextAnalyzer",
    "Document",
    "IndexWriter",
    "Indexer",
    "Saver",
    "IndexedDocument",
    "IndexedTerm",
    "InvertedIndex",
    "IndexLoader",
    "QueryProcessor",
    "QueryResult",
    "SearchResult",
    "SnippetGenerator",
    "MetricsCollector",
    "Reporter",
    "IndexBuilder",
    "SampleQueryGenerator",
]
