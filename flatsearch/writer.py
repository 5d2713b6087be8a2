"""
Index writer module
Assigns term IDs and serializes documents, tokens and postings to rolling
flat files shaped like bulk REPLACE statements
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, TextIO, Tuple

from .core import SCHEMA_DDL, IndexWriteError, TableType, Token, escape_field

logger = logging.getLogger(__name__)


class Vocabulary:
    """
    Term text -> term ID, bucketed by term hash.
    IDs start at 1 and are handed out once per distinct text.
    """

    def __init__(self):
        self._buckets: Dict[int, Dict[str, int]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def lookup_or_assign(self, text: str, hash_value: int) -> Tuple[int, bool]:
        """Return (term ID, newly assigned)"""
        with self._lock:
            bucket = self._buckets.get(hash_value)
            if bucket is None:
                bucket = {}
                self._buckets[hash_value] = bucket

            term_id = bucket.get(text)
            if term_id is not None:
                return term_id, False

            term_id = self._next_id
            self._next_id += 1
            bucket[text] = term_id
            return term_id, True

    def __len__(self):
        return self._next_id - 1


class _TableFile:
    """Open file and statement state for one table"""

    def __init__(self, table: TableType, directory: Path, extension: str):
        self.table = table
        self.directory = directory
        self.extension = extension
        self.number = 0
        self.handle: Optional[TextIO] = None
        self.bytes_written = 0
        self.row = 1               # position of the next row in its statement
        self.open_statement = False
        self.rows_total = 0
        self.statements = 0

    @property
    def path(self) -> Path:
        return self.directory / self.table.file_name(self.number, self.extension)

    def open_next(self):
        if self.handle is not None:
            self.handle.close()
        self.number += 1
        self.handle = open(self.path, 'w', encoding='utf-8', newline='\n')
        self.bytes_written = 0
        self.row = 1
        logger.debug("Opened index file: %s", self.path)

    def write(self, text: str):
        self.handle.write(text)
        self.bytes_written += len(text.encode('utf-8'))

    def terminate(self, newline: bool = False):
        self.write(';\n' if newline else ';')
        self.open_statement = False
        self.statements += 1
        self.row = 1

    def close(self):
        if self.handle is None:
            return
        if self.open_statement:
            self.terminate()
        self.handle.close()
        self.handle = None


class IndexWriter:
    """
    Writes the Documents, Tokens and Intersection tables.

    save_document() is serialized by a lock so term IDs and the per-table
    row and file counters stay consistent while many analysis workers finish
    at once.
    """

    def __init__(self, output_dir: Path,
                 max_rows_per_statement: int = 10_000,
                 max_file_bytes: int = 900 * 1024 ** 2,
                 extension: str = '.sql',
                 schema_file: str = 'ddl.sql'):
        self.output_dir = Path(output_dir)
        self.max_rows_per_statement = max_rows_per_statement
        self.max_file_bytes = max_file_bytes
        self.extension = extension
        self.vocabulary = Vocabulary()
        self.documents_written = 0
        self._lock = threading.Lock()
        self._closed = False
        self._files: Dict[TableType, _TableFile] = {}

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            (self.output_dir / schema_file).write_text(SCHEMA_DDL, encoding='utf-8')
            for table in TableType:
                table_file = _TableFile(table, self.output_dir, extension)
                table_file.open_next()
                self._files[table] = table_file
        except OSError as e:
            self._close_files()
            raise IndexWriteError(f"Failed to set up index files in {self.output_dir}: {e}") from e

        logger.info("Writing index to: %s", self.output_dir)

    @classmethod
    def from_config(cls, output_dir: Path, config: Dict) -> 'IndexWriter':
        return cls(
            output_dir,
            max_rows_per_statement=config['max_rows_per_statement'],
            max_file_bytes=config['max_file_bytes'],
            extension=config['index_extension'],
            schema_file=config['schema_file']
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def save_document(self, document, last: bool = False):
        """
        Persist a fully analyzed document: its postings, any new tokens and,
        if it has at least one term, its document row.
        `last` marks this as the final document of the corpus.
        """
        tokens = list(document.tokens.values())
        with self._lock:
            highest = 0
            for i, token in enumerate(tokens):
                highest = max(highest, token.frequency)
                self._save_token(document.id, token, last and i == len(tokens) - 1)

            if highest > 0:
                self._write_row(
                    TableType.DOCUMENTS, last,
                    document.id, highest, document.title, document.relative_path
                )
                self.documents_written += 1

    def _save_token(self, doc_id: int, token: Token, last: bool):
        term_id, is_new = self.vocabulary.lookup_or_assign(token.text, token.hash_value)
        if is_new:
            self._write_row(TableType.TOKENS, last, term_id, token.text, token.hash_value)
        self._write_row(TableType.INTERSECTION, last, term_id, doc_id, token.frequency)

    @staticmethod
    def _format_row(table: TableType, values: tuple) -> str:
        fields = []
        for kind, value in zip(table.layout, values):
            if kind == 's':
                fields.append(f'"{escape_field(str(value))}"')
            else:
                fields.append(str(int(value)))
        return '\n(' + ','.join(fields) + ')'

    def _write_row(self, table: TableType, last: bool, *values):
        table_file = self._files[table]
        try:
            if not table_file.open_statement:
                table_file.write(table.header)
                table_file.open_statement = True
            else:
                table_file.write(',')

            table_file.write(self._format_row(table, values))
            table_file.rows_total += 1

            if last:
                table_file.terminate()
            else:
                self._advance(table_file)
        except OSError as e:
            logger.error("Failed to add row for table %s: %s", table.name, e)

    def _advance(self, table_file: _TableFile):
        """Move to the next row slot, rolling the statement or file over"""
        if table_file.bytes_written >= self.max_file_bytes:
            table_file.terminate()
            table_file.open_next()
        elif table_file.row >= self.max_rows_per_statement:
            table_file.terminate(newline=True)
        else:
            table_file.row += 1

    def statistics(self) -> Dict[str, int]:
        return {
            'documents': self.documents_written,
            'tokens': len(self.vocabulary),
            'intersections': self._files[TableType.INTERSECTION].rows_total
            if TableType.INTERSECTION in self._files else 0,
            'files': sum(f.number for f in self._files.values()),
        }

    def statements_written(self, table: TableType) -> int:
        return self._files[table].statements

    def _close_files(self):
        for table_file in self._files.values():
            try:
                table_file.close()
            except OSError as e:
                logger.error("Failed to close index file %s: %s", table_file.path, e)

    def close(self):
        """Terminate open statements and flush every file"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._close_files()
        logger.info("Index writer closed: %s", self.statistics())
