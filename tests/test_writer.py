import tempfile
import threading
import unittest
from pathlib import Path

from flatsearch.core import SCHEMA_DDL, TableType, term_hash
from flatsearch.loader import IndexLoader, scan_row
from flatsearch.writer import IndexWriter, Vocabulary

from .support import StubDocument


def rows(path: Path, layout: str):
    with open(path, encoding='utf-8') as fh:
        return [scan_row(line.rstrip('\n'), layout) for line in fh if line.startswith('(')]


class TestVocabulary(unittest.TestCase):

    def test_ids_start_at_one_and_repeat(self):
        vocabulary = Vocabulary()
        self.assertEqual(vocabulary.lookup_or_assign('alpha', term_hash('alpha')), (1, True))
        self.assertEqual(vocabulary.lookup_or_assign('beta', term_hash('beta')), (2, True))
        self.assertEqual(vocabulary.lookup_or_assign('alpha', term_hash('alpha')), (1, False))
        self.assertEqual(len(vocabulary), 2)

    def test_same_bucket_different_text(self):
        vocabulary = Vocabulary()
        first, _ = vocabulary.lookup_or_assign('one', 7)
        second, is_new = vocabulary.lookup_or_assign('two', 7)
        self.assertNotEqual(first, second)
        self.assertTrue(is_new)

    def test_concurrent_assignment(self):
        vocabulary = Vocabulary()
        words = [f"w{i}" for i in range(200)]
        results = []
        lock = threading.Lock()

        def worker():
            local = [(w, vocabulary.lookup_or_assign(w, term_hash(w))[0]) for w in words]
            with lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        ids = {}
        for word, term_id in results:
            ids.setdefault(word, set()).add(term_id)
        self.assertTrue(all(len(v) == 1 for v in ids.values()))
        self.assertEqual(len({next(iter(v)) for v in ids.values()}), len(words))


class TestIndexWriter(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.out = Path(self.tmp.name) / 'index'

    def tearDown(self):
        self.tmp.cleanup()

    def test_schema_file(self):
        IndexWriter(self.out).close()
        self.assertEqual((self.out / 'ddl.sql').read_text(encoding='utf-8'), SCHEMA_DDL)
        for table in TableType:
            self.assertTrue((self.out / table.file_name(1)).exists())

    def test_rows_and_new_tokens(self):
        with IndexWriter(self.out) as writer:
            writer.save_document(StubDocument(1, {'alpha': 2, 'beta': 1}))
            writer.save_document(StubDocument(2, {'alpha': 1, 'gamma': 3}), last=True)

        tokens = rows(self.out / 'dml_tokens-1.sql', 'isi')
        self.assertEqual(sorted(t[1] for t in tokens), ['alpha', 'beta', 'gamma'])
        self.assertEqual(len({t[0] for t in tokens}), 3)
        for term_id, text, hash_value in tokens:
            self.assertEqual(hash_value, term_hash(text))

        postings = rows(self.out / 'dml_intersection-1.sql', 'iii')
        self.assertEqual(len(postings), 4)

        documents = rows(self.out / 'dml_documents-1.sql', 'iiss')
        self.assertEqual(sorted((d[0], d[1]) for d in documents), [(1, 2), (2, 3)])

    def test_last_document_terminates_statements(self):
        with IndexWriter(self.out) as writer:
            writer.save_document(StubDocument(1, {'alpha': 1}), last=True)
        text = (self.out / 'dml_intersection-1.sql').read_text(encoding='utf-8')
        self.assertTrue(text.endswith('(1,1,1);'))
        self.assertEqual(text.count(';'), 1)

    def test_document_without_terms_is_skipped(self):
        with IndexWriter(self.out) as writer:
            writer.save_document(StubDocument(1, {}))
        self.assertEqual(rows(self.out / 'dml_documents-1.sql', 'iiss'), [])
        self.assertEqual(writer.statistics()['documents'], 0)

    def test_statement_rollover(self):
        counts = {f"term{i}": 1 for i in range(2000)}
        with IndexWriter(self.out, max_rows_per_statement=10) as writer:
            writer.save_document(StubDocument(1, counts), last=True)

        self.assertEqual(writer.statements_written(TableType.INTERSECTION), 200)
        self.assertEqual(writer.statements_written(TableType.TOKENS), 200)
        text = (self.out / 'dml_intersection-1.sql').read_text(encoding='utf-8')
        self.assertEqual(text.count(TableType.INTERSECTION.header), 200)
        self.assertEqual(text.count(';'), 200)

    def test_file_rollover(self):
        with IndexWriter(self.out, max_file_bytes=200) as writer:
            for doc_id in range(1, 21):
                writer.save_document(StubDocument(doc_id, {f"word{doc_id}": doc_id, 'shared': 1}))

        files = sorted(p.name for p in self.out.glob('dml_intersection-*.sql'))
        self.assertGreater(len(files), 1)
        self.assertIn('dml_intersection-2.sql', files)

        total = sum(len(rows(self.out / name, 'iii')) for name in files)
        self.assertEqual(total, 40)

    def test_escaped_strings_survive(self):
        title = 'He said "stop" \\ then left'
        with IndexWriter(self.out) as writer:
            writer.save_document(StubDocument(1, {'stop': 1}, title=title, relative_path='a\\b.txt'))
        documents = rows(self.out / 'dml_documents-1.sql', 'iiss')
        self.assertEqual(documents, [[1, 1, title, 'a\\b.txt']])

    def test_close_is_idempotent(self):
        writer = IndexWriter(self.out)
        writer.save_document(StubDocument(1, {'alpha': 1}))
        writer.close()
        writer.close()
        text = (self.out / 'dml_documents-1.sql').read_text(encoding='utf-8')
        self.assertTrue(text.endswith(';'))
        self.assertEqual(text.count(';'), 1)

    def test_round_trip_through_loader(self):
        with IndexWriter(self.out, max_rows_per_statement=3, max_file_bytes=300) as writer:
            writer.save_document(StubDocument(1, {'apple': 4, 'cherry': 1}))
            writer.save_document(StubDocument(2, {'apple': 1, 'banana': 2}))
            writer.save_document(StubDocument(3, {'cherry': 1}), last=True)

        index = IndexLoader().load_index_sync(self.out)
        self.assertEqual(index.num_docs, 3)
        self.assertEqual(index.num_terms, 3)
        apple = index.get_term(term_hash('apple'), 'apple')
        self.assertEqual(apple.postings, {1: 4, 2: 1})
        self.assertEqual(index.get_document(1).highest_term_frequency, 4)
        self.assertEqual(index.get_document(2).path, '2.txt')


if __name__ == '__main__':
    unittest.main()
