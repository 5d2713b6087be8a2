"""
Index builder and query generator module
Drives a full build from a source directory and generates sample queries
"""

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .analyzer import TextAnalyzer
from .config import DEFAULT_CONFIG
from .document import assign_document_ids
from .index import InvertedIndex
from .loader import IndexLoader
from .pipeline import Indexer, Saver
from .query_processor import QueryProcessor
from .writer import IndexWriter

logger = logging.getLogger(__name__)


class IndexBuilder:
    """
    Main interface for building and loading indices
    """

    def __init__(self, config: Optional[Dict] = None, analyzer=None):
        self.config = dict(DEFAULT_CONFIG)
        if config:
            self.config.update(config)
        self.analyzer = analyzer or TextAnalyzer.from_config(self.config)
        self.index: Optional[InvertedIndex] = None
        self.loader: Optional[IndexLoader] = None

    @property
    def path_root(self) -> Path:
        root = self.config.get('path_root')
        return Path(root) if root else Path.cwd()

    def build_index(self, source_dir: Path, index_dir: Path) -> Dict:
        """Index every file below source_dir into index_dir; returns build statistics"""
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise FileNotFoundError(f"Source directory not found: {source_dir}")

        files = [p for p in sorted(source_dir.rglob('*')) if p.is_file()]
        logger.info("Found %d files (recursively scanning subdirectories)", len(files))

        start_time = time.time()
        with IndexWriter.from_config(Path(index_dir), self.config) as writer:
            saver = Saver(
                writer, self.analyzer,
                capacity=self.config['admission_capacity'],
                workers=self.config['analysis_workers'],
                poll_interval=self.config['poll_interval']
            )
            indexer = Indexer(
                saver,
                path_root=self.path_root,
                title_max_length=self.config['title_max_length'],
                poll_interval=self.config['poll_interval']
            )
            indexer.start()
            for doc_id, path in assign_document_ids(files):
                indexer.add_document(doc_id, path)
            indexer.added_all_documents()
            indexer.join_all()

        stats = dict(writer.statistics())
        stats.update(indexer.statistics())
        stats['files_found'] = len(files)
        stats['preprocessing_size'] = self.analyzer.preprocessing_size
        stats['postprocessing_size'] = self.analyzer.postprocessing_size
        stats['duration'] = time.time() - start_time

        logger.info("Indexed %d documents in %.2fs", stats['documents'], stats['duration'])
        return stats

    def load_index(self, index_dir: Path) -> InvertedIndex:
        """Load an existing index"""
        self.loader = IndexLoader.from_config(self.config)
        self.index = self.loader.load_index_sync(Path(index_dir))
        return self.index

    def get_query_processor(self) -> QueryProcessor:
        """Get query processor for the loaded index"""
        if not self.index:
            raise ValueError("Index not built or loaded")
        return QueryProcessor.from_config(self.index, self.analyzer, self.config)


class SampleQueryGenerator:
    """Generate free-text sample queries from the index vocabulary"""

    @staticmethod
    def generate_queries(index: InvertedIndex, num_queries: int = 50,
                         seed: Optional[int] = None) -> List[str]:
        """
        Mix one to three word queries over common, medium and rare terms
        (ranked by document frequency).
        """
        rng = np.random.default_rng(seed)

        term_freq = sorted(((t.text, t.document_frequency) for t in index.terms()),
                           key=lambda x: x[1], reverse=True)
        total_terms = len(term_freq)
        if not total_terms:
            return []

        common_terms = [t[0] for t in term_freq[:max(1, int(total_terms * 0.1))]]
        medium_terms = [t[0] for t in term_freq[int(total_terms * 0.3):int(total_terms * 0.6)]] or common_terms
        rare_terms = [t[0] for t in term_freq[int(total_terms * 0.9):]] or common_terms

        patterns = [
            [common_terms],
            [common_terms, common_terms],
            [rare_terms],
            [common_terms, rare_terms],
            [common_terms, medium_terms, rare_terms],
            [medium_terms, medium_terms],
        ]

        queries = []
        for i in range(num_queries):
            pattern = patterns[i % len(patterns)]
            queries.append(' '.join(str(rng.choice(pool)) for pool in pattern))
        return queries
