"""
Ingestion pipeline
An intake thread feeds documents to a throttled saver thread, which runs
analysis on a worker pool and persists finished documents in one writer
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Deque, Dict, Optional

from .document import Document

logger = logging.getLogger(__name__)


class Saver(threading.Thread):
    """
    Analyze/persist stage.

    Holds at most `capacity` documents whose analysis has started. Admission
    starts analysis right away; a full queue refuses the document and the
    caller retries. Finished documents are written through the IndexWriter.
    """

    def __init__(self, writer, analyzer,
                 capacity: int = 100,
                 workers: int = 4,
                 poll_interval: float = 0.01):
        super().__init__(name='flatsearch-saver', daemon=True)
        self.writer = writer
        self.analyzer = analyzer
        self.capacity = capacity
        self.poll_interval = poll_interval
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='flatsearch-analyze')

        self._documents: Deque[Document] = deque()
        self._lock = threading.Lock()
        self._accepting = True
        self.documents_saved = 0
        self.documents_failed = 0

    def add_document(self, document: Document) -> bool:
        """Admit a document for analysis. Returns False if it was refused."""
        with self._lock:
            if not self._accepting:
                logger.error("Document added after all documents were announced: %s", document.path)
                return False

            if len(self._documents) >= self.capacity:
                logger.debug("Unable to add document, queue is full: %s", document.path)
                return False

            document.start_analysis(self.executor, self.analyzer)
            self._documents.append(document)
            return True

    def added_all_documents(self):
        """No more documents will be admitted"""
        logger.info("All documents have been added to the saver.")
        with self._lock:
            self._accepting = False

    def pending(self) -> int:
        with self._lock:
            return len(self._documents)

    def _keep_running(self) -> bool:
        with self._lock:
            return self._accepting or bool(self._documents)

    def _wait_for_progress(self):
        with self._lock:
            futures = [doc.future for doc in self._documents]
        if futures:
            wait(futures, timeout=self.poll_interval, return_when=FIRST_COMPLETED)
        else:
            time.sleep(self.poll_interval)

    def _take_finished(self) -> Optional[Document]:
        """Remove the first finished document; returns it with its 'last' flag set"""
        with self._lock:
            for _ in range(len(self._documents)):
                doc = self._documents.popleft()
                if doc.ready_to_save():
                    doc.is_last = not self._accepting and not self._documents
                    return doc
                self._documents.append(doc)
        return None

    def _save(self, document: Document):
        try:
            self.writer.save_document(document, last=document.is_last)
        except Exception:
            logger.exception("Failed to analyze or save document: %s", document.path)
            self.documents_failed += 1
            return
        self.documents_saved += 1
        logger.debug("Saved document data: %s", document.path)

    def run(self):
        logger.info("Saver running ...")
        try:
            while self._keep_running():
                document = self._take_finished()
                if document is None:
                    self._wait_for_progress()
                    continue
                self._save(document)
        finally:
            self.executor.shutdown(wait=True)
        logger.info("Saver terminating ...")


class Indexer(threading.Thread):
    """
    Intake stage.

    Wraps incoming files as documents and pushes them to the Saver, re-queuing
    any document the Saver refuses.
    """

    def __init__(self, saver: Saver,
                 path_root: Optional[Path] = None,
                 title_max_length: int = 120,
                 poll_interval: float = 0.01):
        super().__init__(name='flatsearch-indexer', daemon=True)
        self.saver = saver
        self.path_root = path_root
        self.title_max_length = title_max_length
        self.poll_interval = poll_interval

        self._documents: Deque[Document] = deque()
        self._lock = threading.Lock()
        self._accepting = True
        self._wakeup = threading.Event()
        self.documents_added = 0
        self.refusals = 0

    def add_document(self, doc_id: int, path: Path) -> bool:
        """Queue a source file for indexing"""
        with self._lock:
            if not self._accepting:
                logger.error("Document added after all documents were announced: %s", path)
                return False
            logger.debug("Loading document into index: %s", path)
            self._documents.append(Document(doc_id, Path(path), self.path_root, self.title_max_length))
            self.documents_added += 1
        self._wakeup.set()
        return True

    def added_all_documents(self):
        logger.info("All documents have been added to the indexer.")
        with self._lock:
            self._accepting = False
        self._wakeup.set()

    def _next(self) -> Optional[Document]:
        with self._lock:
            if self._documents:
                return self._documents.popleft()
            return None

    def _keep_running(self) -> bool:
        with self._lock:
            return self._accepting or bool(self._documents)

    def run(self):
        logger.info("Indexer running ...")
        self.saver.start()

        while self._keep_running():
            document = self._next()
            if document is None:
                self._wakeup.wait(self.poll_interval)
                self._wakeup.clear()
                continue

            admitted = self.saver.add_document(document)
            logger.debug("Attempting to add document to saver: %s (admitted=%s)", document.path, admitted)
            if not admitted:
                self.refusals += 1
                with self._lock:
                    self._documents.append(document)
                time.sleep(self.poll_interval)

        self.saver.added_all_documents()
        logger.info("Indexer terminating ...")

    def join_all(self, timeout: Optional[float] = None):
        """Wait for intake and for every admitted document to be saved"""
        self.join(timeout)
        self.saver.join(timeout)

    def statistics(self) -> Dict[str, int]:
        return {
            'documents_added': self.documents_added,
            'documents_saved': self.saver.documents_saved,
            'documents_failed': self.saver.documents_failed,
            'refusals': self.refusals,
        }
