"""
Inverted Index implementation
Query-time documents, terms with postings, and the lookup structure
built from them
"""

from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Set


class IndexedDocument:
    """A document as known to the query engine"""

    __slots__ = ('id', 'title', 'path', 'highest_term_frequency')

    def __init__(self, doc_id: int, title: str, path: str, highest_term_frequency: int):
        self.id = doc_id
        self.title = title
        self.path = path
        self.highest_term_frequency = highest_term_frequency

    def file_path(self, path_root: Optional[Path] = None) -> Path:
        """Location of the source file, resolving the stored relative path"""
        path = Path(self.path)
        if path.is_absolute():
            return path
        return (Path(path_root) if path_root else Path.cwd()) / path

    def __repr__(self):
        return f"IndexedDocument({self.id}, {self.title!r})"


class IndexedTerm:
    """A vocabulary entry and its postings (document ID -> frequency)"""

    __slots__ = ('text', 'hash_value', 'postings')

    def __init__(self, text: str, hash_value: int):
        self.text = text
        self.hash_value = hash_value
        self.postings: Dict[int, int] = {}

    def add_document_link(self, doc_id: int, frequency: int):
        self.postings[doc_id] = frequency

    def frequency_in(self, doc_id: int) -> int:
        return self.postings.get(doc_id, 0)

    @property
    def docs(self) -> Set[int]:
        return set(self.postings)

    @property
    def document_frequency(self) -> int:
        return len(self.postings)

    def __repr__(self):
        return f"IndexedTerm({self.text!r}, df={len(self.postings)})"


class InvertedIndex:
    """
    Immutable snapshot of a loaded index.
    Terms are found by (hash, text); the hash only selects the bucket.
    """

    def __init__(self,
                 documents: Dict[int, IndexedDocument],
                 terms_by_hash: Dict[int, Dict[str, IndexedTerm]]):
        self._documents = documents
        self._terms_by_hash = terms_by_hash
        self._num_terms = sum(len(bucket) for bucket in terms_by_hash.values())

    @classmethod
    def from_terms(cls, documents: Dict[int, IndexedDocument],
                   terms: Iterable[IndexedTerm]) -> 'InvertedIndex':
        """Bucket a flat collection of terms by hash"""
        by_hash: Dict[int, Dict[str, IndexedTerm]] = {}
        for term in terms:
            by_hash.setdefault(term.hash_value, {})[term.text] = term
        return cls(documents, by_hash)

    @property
    def num_docs(self) -> int:
        return len(self._documents)

    @property
    def num_terms(self) -> int:
        return self._num_terms

    def get_document(self, doc_id: int) -> Optional[IndexedDocument]:
        return self._documents.get(doc_id)

    def get_term(self, hash_value: int, text: str) -> Optional[IndexedTerm]:
        bucket = self._terms_by_hash.get(hash_value)
        if bucket is None:
            return None
        return bucket.get(text)

    def documents(self) -> Iterator[IndexedDocument]:
        return iter(self._documents.values())

    def terms(self) -> Iterator[IndexedTerm]:
        for bucket in self._terms_by_hash.values():
            yield from bucket.values()
