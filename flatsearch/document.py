"""
Build-time document model
Reads a source file, hands it to the analyzer and reports its term bag
"""

import logging
import os
import re
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .core import Token, truncate_title

logger = logging.getLogger(__name__)

TITLE_LABEL = re.compile(r'^\s*title\s*:\s*', re.IGNORECASE)
URL_LABEL = re.compile(r'^\s*url\s*:', re.IGNORECASE)


def read_source(path: Path) -> Tuple[str, str, bool]:
    """
    Read a source document.
    Returns (title line, body, complete). The title is the first line with
    any 'Title:' label removed; the body is everything after it except a
    'URL:' metadata line right below the title. If the file cannot be read
    fully, whatever was read is returned with complete=False.
    """
    lines: List[str] = []
    complete = True
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as fh:
            for line in fh:
                lines.append(line.rstrip('\r\n'))
    except OSError as e:
        logger.error("Failed to read document fully: %s (%s)", path, e)
        complete = False

    if not lines:
        return '', '', complete

    title = TITLE_LABEL.sub('', lines[0], count=1).strip()
    rest = lines[1:]
    if rest and URL_LABEL.match(rest[0]):
        rest = rest[1:]

    return title, '\n'.join(rest), complete


def assign_document_ids(paths: Iterable[Path]) -> List[Tuple[int, Path]]:
    """
    Give each source file its document ID.
    Files named '<integer>.<ext>' keep that integer; the rest get IDs after
    the largest numeric one, in file name order.
    """
    numbered = []
    unnumbered = []
    for path in sorted(paths, key=lambda p: p.name):
        prefix = path.name.split('.', 1)[0]
        if prefix.isdigit():
            numbered.append((int(prefix), path))
        else:
            unnumbered.append(path)

    next_id = max((doc_id for doc_id, _ in numbered), default=0) + 1
    used = {doc_id for doc_id, _ in numbered}
    assigned = list(numbered)
    for path in unnumbered:
        while next_id in used:
            next_id += 1
        assigned.append((next_id, path))
        used.add(next_id)
        next_id += 1

    return assigned


class Document:
    """A source file moving through the ingestion pipeline"""

    def __init__(self, doc_id: int, path: Path,
                 path_root: Optional[Path] = None,
                 title_max_length: int = 120):
        self.id = doc_id
        self.path = Path(path)
        self.path_root = Path(path_root) if path_root else Path.cwd()
        self.title_max_length = title_max_length
        self.title = ''
        self.is_last = False
        self._future: Optional[Future] = None
        logger.debug("Creating document with ID: %d", doc_id)

    @property
    def relative_path(self) -> str:
        """Path of the source relative to the path root"""
        return os.path.relpath(self.path.absolute(), self.path_root.absolute())

    def parse(self, analyzer) -> Dict[str, Token]:
        """Read the file and extract its terms"""
        logger.debug("Starting to parse document: %d", self.id)
        title, body, _ = read_source(self.path)
        self.title = truncate_title(title, self.title_max_length)

        tokens = analyzer.analyze(f"{title}\n{body}" if body else title)
        logger.debug("Tokens found in document %d: %d", self.id, len(tokens))
        return tokens

    def start_analysis(self, executor: Executor, analyzer) -> Future:
        """Schedule parse() on the executor without waiting for it"""
        self._future = executor.submit(self.parse, analyzer)
        return self._future

    @property
    def future(self) -> Optional[Future]:
        return self._future

    def ready_to_save(self) -> bool:
        return self._future is not None and self._future.done()

    @property
    def tokens(self) -> Dict[str, Token]:
        """Analysis result; re-raises the analyzer's exception if it failed"""
        if self._future is None:
            raise RuntimeError(f"Document {self.id} has not been analyzed")
        return self._future.result()

    def highest_term_frequency(self) -> int:
        return max((t.frequency for t in self.tokens.values()), default=0)

    def __repr__(self):
        return f"Document({self.id}, {str(self.path)!r})"
