"""
Query processing module
Resolves query terms, expands the candidate set, ranks by TF-IDF and
attaches snippets
"""

import heapq
import logging
import math
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Set

from .index import IndexedDocument, IndexedTerm, InvertedIndex
from .snippets import SnippetGenerator

logger = logging.getLogger(__name__)


class SearchResult:
    """One ranked document"""

    __slots__ = ('rank', 'document', 'score', 'snippet', 'location')

    def __init__(self, rank: int, document: IndexedDocument, score: float,
                 snippet: str = '', location: Optional[Path] = None):
        self.rank = rank
        self.document = document
        self.score = score
        self.snippet = snippet
        self.location = location

    def format(self) -> str:
        location = self.location if self.location is not None else self.document.file_path()
        return (f"{self.rank}) {self.document.title}\n"
                f"{self.snippet}"
                f"   \tLOCATION: {Path(location).absolute()}\n")

    def __repr__(self):
        return f"SearchResult({self.rank}, {self.document.id}, {self.score:.4f})"


class QueryResult:
    """Everything produced for one query"""

    def __init__(self, query: str, terms: List[str], results: List[SearchResult]):
        self.query = query
        self.terms = terms
        self.results = results

    @property
    def is_empty(self) -> bool:
        return not self.results

    def __len__(self):
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def format(self) -> str:
        if self.is_empty:
            return f"\n\tYour Query '{self.query}' didn't match any of the documents.\n\n"
        return '\n'.join(result.format() for result in self.results)


class QueryProcessor:
    """Answers free-text queries against a loaded index"""

    def __init__(self, index: InvertedIndex, analyzer,
                 candidate_threshold: int = 50,
                 max_subset_expansions: int = 1024,
                 top_k: int = 5,
                 snippet_workers: int = 5,
                 path_root: Optional[Path] = None,
                 snippets: Optional[SnippetGenerator] = None):
        self.index = index
        self.analyzer = analyzer
        self.candidate_threshold = candidate_threshold
        self.max_subset_expansions = max_subset_expansions
        self.top_k = top_k
        self.snippet_workers = snippet_workers
        self.path_root = path_root
        self.snippets = snippets or SnippetGenerator(analyzer, path_root)

    @classmethod
    def from_config(cls, index: InvertedIndex, analyzer, config: Dict) -> 'QueryProcessor':
        path_root = Path(config['path_root']) if config.get('path_root') else None
        return cls(
            index, analyzer,
            candidate_threshold=config['candidate_threshold'],
            max_subset_expansions=config['max_subset_expansions'],
            top_k=config['top_k'],
            snippet_workers=config['snippet_workers'],
            path_root=path_root,
            snippets=SnippetGenerator(analyzer, path_root,
                                      sentences=config['snippet_sentences'],
                                      width=config['snippet_width'])
        )

    def resolve_terms(self, query: str) -> List[IndexedTerm]:
        """Analyze the query and keep the terms present in the index"""
        terms = []
        for token in self.analyzer.analyze(query).values():
            term = self.index.get_term(token.hash_value, token.text)
            logger.debug("Term in query: %s. Found in index: %s", token.text, term is not None)
            if term is not None:
                terms.append(term)
        return terms

    def candidate_documents(self, terms: List[IndexedTerm]) -> Set[int]:
        """
        Documents matching all terms; when fewer than the threshold match,
        also those matching every subset with one term dropped, recursively
        down to single terms. Each subset is visited once.
        """
        if not terms:
            return set()

        candidates: Set[int] = set()
        start = frozenset(range(len(terms)))
        queue = deque([start])
        visited: Set[FrozenSet[int]] = {start}

        while queue:
            subset = queue.popleft()
            docs = set.intersection(*(terms[i].docs for i in subset))
            candidates |= docs

            if len(docs) >= self.candidate_threshold or len(subset) < 2:
                continue

            for i in sorted(subset):
                child = subset - {i}
                if child in visited:
                    continue
                if len(visited) >= self.max_subset_expansions:
                    logger.warning("Stopped expanding query after %d term subsets", len(visited))
                    queue.clear()
                    break
                visited.add(child)
                queue.append(child)

        logger.debug("Docs found: %s", sorted(candidates))
        return candidates

    def score(self, document: IndexedDocument, terms: List[IndexedTerm]) -> float:
        """Sum of tf * idf over the query terms"""
        total_docs = self.index.num_docs
        score = 0.0
        for term in terms:
            if not term.document_frequency or not document.highest_term_frequency:
                continue
            tf = term.frequency_in(document.id) / document.highest_term_frequency
            idf = math.log2(total_docs / term.document_frequency)
            score += tf * idf
        return score

    def rank_documents(self, doc_ids: Set[int], terms: List[IndexedTerm]) -> List[SearchResult]:
        """Top documents by score, best first; equal scores keep candidate order"""
        heap = []
        for seq, doc_id in enumerate(sorted(doc_ids)):
            document = self.index.get_document(doc_id)
            if document is None:
                continue
            score = self.score(document, terms)
            logger.debug("Ranking document %s: %f", document.title, score)
            entry = (score, -seq, doc_id)
            if len(heap) < self.top_k:
                heapq.heappush(heap, entry)
            else:
                heapq.heappushpop(heap, entry)

        ranked = sorted(heap, key=lambda e: (-e[0], -e[1]))
        return [
            SearchResult(rank, self.index.get_document(doc_id), score)
            for rank, (score, _, doc_id) in enumerate(ranked, start=1)
        ]

    def attach_snippets(self, results: List[SearchResult], terms: List[IndexedTerm]):
        """Fill in snippets concurrently; result order is unchanged"""
        if not results:
            return
        query_terms = [term.text for term in terms]
        with ThreadPoolExecutor(max_workers=self.snippet_workers,
                                thread_name_prefix='flatsearch-snippet') as executor:
            futures = [
                executor.submit(self.snippets.generate, result.document, query_terms)
                for result in results
            ]
            for result, future in zip(results, futures):
                result.snippet = future.result()
                result.location = result.document.file_path(self.path_root)

    def process_query(self, query: str, snippets: bool = True) -> QueryResult:
        logger.info("Processing query: %s", query)
        terms = self.resolve_terms(query)
        if not terms:
            return QueryResult(query, [], [])

        candidates = self.candidate_documents(terms)
        results = self.rank_documents(candidates, terms)
        if snippets:
            self.attach_snippets(results, terms)

        logger.debug("Top documents: %s", [r.document.title for r in results])
        return QueryResult(query, [term.text for term in terms], results)
