"""
Core utilities and enums for FlatSearch
Handles the index table formats, term hashing and shared error types
"""

import textwrap
from enum import Enum
from typing import Tuple


HASH_SEED = 1125899906842597
HASH_MULTIPLIER = 31
HASH_BOUND = 2147483647

_UINT64_MASK = (1 << 64) - 1
_INT64_SIGN = 1 << 63


class IndexFormatError(ValueError):
    """A row in an index file could not be scanned"""


class IndexCorruptionError(IndexFormatError):
    """An index row references an entity that was never loaded"""


class IndexWriteError(OSError):
    """Index files could not be created"""


class TableType(Enum):
    """
    Logical tables of the flat-file index.
    Each value holds (file stem, statement header, field layout).
    Layout letters: i = integer field, s = quoted string field.
    """
    DOCUMENTS = (
        'dml_documents',
        'Replace into Documents (DocumentID,HighestTermFreq,Title,Path) VALUES ',
        'iiss'
    )
    TOKENS = (
        'dml_tokens',
        'Replace into Tokens (TokenPK,Token,HashValue) VALUES ',
        'isi'
    )
    INTERSECTION = (
        'dml_intersection',
        'Replace into Intersection (TokenFK,DocumentID,Frequency) VALUES ',
        'iii'
    )

    @property
    def file_stem(self) -> str:
        return self.value[0]

    @property
    def header(self) -> str:
        return self.value[1]

    @property
    def layout(self) -> str:
        return self.value[2]

    def file_name(self, number: int, extension: str = '.sql') -> str:
        """Name of the n-th file of this table, e.g. dml_tokens-1.sql"""
        return f"{self.file_stem}-{number}{extension}"

    @classmethod
    def classify(cls, file_name: str) -> 'TableType':
        """Classify an index file by the table named in it"""
        name = file_name.lower()
        if 'intersection' in name:
            return cls.INTERSECTION
        if 'tokens' in name:
            return cls.TOKENS
        return cls.DOCUMENTS


SCHEMA_DDL = """CREATE TABLE IF NOT EXISTS Documents (
    DocumentID INTEGER PRIMARY KEY,
    HighestTermFreq INTEGER NOT NULL,
    Title TEXT,
    Path TEXT
);
CREATE TABLE IF NOT EXISTS Tokens (
    TokenPK INTEGER PRIMARY KEY,
    Token TEXT NOT NULL,
    HashValue INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS Intersection (
    TokenFK INTEGER NOT NULL,
    DocumentID INTEGER NOT NULL,
    Frequency INTEGER NOT NULL,
    PRIMARY KEY (TokenFK, DocumentID)
);
"""


def term_hash(text: str) -> int:
    """
    Deterministic polynomial hash of a term.
    Runs over UTF-16 code units with signed 64-bit wrap-around, then is
    folded to a non-negative value below HASH_BOUND.
    """
    h = HASH_SEED
    data = text.encode('utf-16-le')
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (HASH_MULTIPLIER * h + unit) & _UINT64_MASK

    if h & _INT64_SIGN:
        h -= 1 << 64

    return abs(h) % HASH_BOUND


class Token:
    """A normalized term together with its frequency in one text scope"""

    __slots__ = ('text', 'frequency', '_hash')

    def __init__(self, text: str, frequency: int = 1):
        self.text = text
        self.frequency = frequency
        self._hash = None

    @property
    def hash_value(self) -> int:
        if self._hash is None:
            self._hash = term_hash(self.text)
        return self._hash

    def increment_frequency(self, amount: int = 1):
        self.frequency += amount

    def __repr__(self):
        return f"Token({self.text!r}, {self.frequency})"


def escape_field(value: str) -> str:
    """Escape a string field for a quoted index row"""
    return value.replace('\\', '\\\\').replace('"', '\\"')


def truncate_title(title: str, max_length: int = 120) -> str:
    """Bound a title to max_length characters, marking the cut with ' ...'"""
    if len(title) > max_length:
        return title[:max_length - 4] + ' ...'
    return title


def word_wrap(text: str, width: int = 100, indent: str = '   \t') -> str:
    """Collapse whitespace and wrap text, indenting every line"""
    words = ' '.join(text.split())
    wrapped = textwrap.fill(
        words,
        width=width,
        initial_indent=indent,
        subsequent_indent=indent,
        break_long_words=False,
        break_on_hyphens=False
    )
    return wrapped + '\n'


def split_file_number(file_name: str) -> Tuple[str, int]:
    """Split 'dml_tokens-3.sql' into ('dml_tokens', 3); unnumbered files sort first"""
    stem = file_name.rsplit('.', 1)[0]
    base, _, number = stem.rpartition('-')
    if base and number.isdigit():
        return base, int(number)
    return stem, 0
