"""
Index loading module
Scans the flat index files back into an in-memory inverted index
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .core import (IndexCorruptionError, IndexFormatError, TableType,
                   split_file_number)
from .index import IndexedDocument, IndexedTerm, InvertedIndex
from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


def scan_row(line: str, layout: str) -> List:
    """
    Scan one row literal such as (12,3,"title","path").

    Only digit runs and double-quoted spans are recognized, in the order
    given by `layout` ('i' integer, 's' string). Backslash escapes inside
    strings are resolved. Anything after the closing parenthesis is ignored.
    """
    if not line.startswith('('):
        raise IndexFormatError(f"Row does not start with '(': {line[:60]!r}")

    fields = []
    pos = 1
    end = len(line)
    for i, kind in enumerate(layout):
        if i > 0:
            if pos >= end or line[pos] != ',':
                raise IndexFormatError(f"Expected ',' at column {pos}: {line[:60]!r}")
            pos += 1

        if kind == 'i':
            start = pos
            while pos < end and line[pos].isdigit():
                pos += 1
            if start == pos:
                raise IndexFormatError(f"Expected a number at column {start}: {line[:60]!r}")
            fields.append(int(line[start:pos]))
        else:
            if pos >= end or line[pos] != '"':
                raise IndexFormatError(f"Expected '\"' at column {pos}: {line[:60]!r}")
            pos += 1
            chars = []
            while True:
                if pos >= end:
                    raise IndexFormatError(f"Unterminated string: {line[:60]!r}")
                ch = line[pos]
                if ch == '\\' and pos + 1 < end:
                    chars.append(line[pos + 1])
                    pos += 2
                    continue
                pos += 1
                if ch == '"':
                    break
                chars.append(ch)
            fields.append(''.join(chars))

    if pos >= end or line[pos] != ')':
        raise IndexFormatError(f"Expected ')' at column {pos}: {line[:60]!r}")
    return fields


class IndexLoader:
    """
    Loads an index directory and answers lookups once loading is done.

    Documents and tokens are read concurrently; intersections are read after
    both, since they refer to document and token IDs.
    """

    def __init__(self, extension: str = '.sql', schema_file: str = 'ddl.sql'):
        self.extension = extension
        self.schema_file = schema_file
        self.index: Optional[InvertedIndex] = None

        self._id_docs: Dict[int, IndexedDocument] = {}
        self._id_terms: Optional[Dict[int, IndexedTerm]] = {}
        self._intersections_loaded = 0
        self._tokens_loaded = 0

        self._finished = threading.Event()
        self._error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_config(cls, config: Dict) -> 'IndexLoader':
        return cls(extension=config['index_extension'], schema_file=config['schema_file'])

    def discover(self, directory: Path) -> Dict[TableType, List[Path]]:
        """Find the index files in a directory, grouped by table"""
        directory = Path(directory)
        groups: Dict[TableType, List[Path]] = {table: [] for table in TableType}
        for path in directory.iterdir():
            if not path.is_file():
                continue
            if path.name.lower() == self.schema_file.lower():
                continue
            if not path.name.lower().endswith(self.extension.lower()):
                continue
            logger.debug("Found index file: %s", path.name)
            groups[TableType.classify(path.name)].append(path)

        for files in groups.values():
            files.sort(key=lambda p: split_file_number(p.name))

        logger.debug("Found %d intersection file(s), %d token file(s), and %d document file(s).",
                     len(groups[TableType.INTERSECTION]), len(groups[TableType.TOKENS]),
                     len(groups[TableType.DOCUMENTS]))
        return groups

    # ---- background loading -------------------------------------------------

    def load_index(self, directory: Path):
        """Start loading in a background thread and return immediately"""
        if self._thread is not None:
            raise RuntimeError("An index has already been loaded by this loader")
        logger.info("Loading index from: %s", Path(directory).absolute())
        self._thread = threading.Thread(
            target=self._load_in_background, args=(Path(directory),),
            name='flatsearch-loader', daemon=True
        )
        self._thread.start()

    def _load_in_background(self, directory: Path):
        try:
            self._load(directory)
        except BaseException as e:
            logger.exception("Index loading failed")
            self._error = e
        finally:
            self._finished.set()

    def is_finished_loading(self) -> bool:
        return self._finished.is_set() and self._error is None

    def wait(self, timeout: Optional[float] = None) -> InvertedIndex:
        """Block until loading ends; re-raises the failure if it failed"""
        if not self._finished.wait(timeout):
            raise TimeoutError(f"Index still loading after {timeout} seconds")
        if self._error is not None:
            raise self._error
        return self.index

    def load_index_sync(self, directory: Path) -> InvertedIndex:
        """Load in the calling thread"""
        logger.info("Loading index from: %s", Path(directory).absolute())
        try:
            return self._load(Path(directory))
        finally:
            self._finished.set()

    # ---- loading steps ---------------------------------------------------------

    def _load(self, directory: Path) -> InvertedIndex:
        if not directory.is_dir():
            raise FileNotFoundError(f"Index directory not found: {directory}")

        groups = self.discover(directory)

        logger.debug("Starting to load tokens and documents simultaneously.")
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='flatsearch-load') as executor:
            docs_future = executor.submit(self._load_documents, groups[TableType.DOCUMENTS])
            tokens_future = executor.submit(self._load_tokens, groups[TableType.TOKENS])
            docs_future.result()
            tokens_future.result()
        self._log_memory()

        logger.info("Starting to load intersections.")
        self._load_intersections(groups[TableType.INTERSECTION])

        self.index = InvertedIndex.from_terms(self._id_docs, self._id_terms.values())
        self._id_terms = None
        self._log_memory()

        logger.info("Index loading complete.")
        logger.info("Loaded %d tokens, %d documents, and %d intersections.",
                    self._tokens_loaded, len(self._id_docs), self._intersections_loaded)
        return self.index

    def _read_file(self, path: Path, table: TableType, consumer: Callable[[List], None]):
        """Feed every row of a file to consumer; header lines are skipped"""
        logger.debug("Reading file: %s", path)
        line_number = 0
        try:
            with open(path, 'r', encoding='utf-8') as fh:
                for line_number, line in enumerate(fh, start=1):
                    if not line.startswith('('):
                        continue
                    try:
                        consumer(scan_row(line.rstrip('\r\n'), table.layout))
                    except IndexFormatError as e:
                        raise type(e)(f"{path.name}:{line_number}: {e}") from e
        except OSError as e:
            logger.error("Failed to read from file correctly at line %d: %s (%s)", line_number, path, e)

    def _load_documents(self, files: List[Path]):
        def add(fields):
            doc_id, highest, title, path = fields
            self._id_docs[doc_id] = IndexedDocument(doc_id, title, path, highest)

        for path in files:
            self._read_file(path, TableType.DOCUMENTS, add)

    def _load_tokens(self, files: List[Path]):
        def add(fields):
            term_id, text, hash_value = fields
            self._id_terms[term_id] = IndexedTerm(text, hash_value)
            self._tokens_loaded += 1

        for path in files:
            self._read_file(path, TableType.TOKENS, add)

    def _load_intersections(self, files: List[Path]):
        def add(fields):
            term_id, doc_id, frequency = fields
            term = self._id_terms.get(term_id)
            if term is None:
                raise IndexCorruptionError(
                    f"Intersection references unknown token. TokenID={term_id},DocumentID={doc_id},Freq={frequency}"
                )
            if doc_id not in self._id_docs:
                raise IndexCorruptionError(
                    f"Intersection references unknown document. TokenID={term_id},DocumentID={doc_id},Freq={frequency}"
                )
            term.add_document_link(doc_id, frequency)
            self._intersections_loaded += 1

        for path in files:
            self._read_file(path, TableType.INTERSECTION, add)

    def _log_memory(self):
        logger.info("Using %.2f MB of memory.", MetricsCollector.measure_memory())

    # ---- lookups ---------------------------------------------------------------

    def _require_index(self) -> InvertedIndex:
        if self.index is None:
            raise RuntimeError("Index has not finished loading")
        return self.index

    def get_doc_by_id(self, doc_id: int) -> Optional[IndexedDocument]:
        return self._require_index().get_document(doc_id)

    def get_term_by_hash_token(self, hash_value: int, text: str) -> Optional[IndexedTerm]:
        return self._require_index().get_term(hash_value, text)

    def get_num_docs(self) -> int:
        return self._require_index().num_docs

    def statistics(self) -> Dict[str, int]:
        return {
            'tokens': self._tokens_loaded,
            'documents': len(self._id_docs),
            'intersections': self._intersections_loaded,
        }
