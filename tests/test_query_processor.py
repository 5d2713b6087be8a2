import math
import tempfile
import unittest
from pathlib import Path

from flatsearch.core import term_hash
from flatsearch.index import IndexedDocument, IndexedTerm, InvertedIndex
from flatsearch.query_processor import QueryProcessor

from .support import WordAnalyzer


def make_index(documents, postings):
    """documents: {id: highest}, postings: {text: {doc_id: freq}}"""
    docs = {doc_id: IndexedDocument(doc_id, f"Doc {doc_id}", f"{doc_id}.txt", highest)
            for doc_id, highest in documents.items()}
    terms = []
    for text, links in postings.items():
        term = IndexedTerm(text, term_hash(text))
        for doc_id, freq in links.items():
            term.add_document_link(doc_id, freq)
        terms.append(term)
    return InvertedIndex.from_terms(docs, terms)


class TestThreeDocumentScenario(unittest.TestCase):

    def setUp(self):
        self.index = make_index(
            {1: 4, 2: 2, 3: 1},
            {
                'apple': {1: 4, 2: 1},
                'banana': {2: 2},
                'cherry': {1: 1, 3: 1},
            }
        )
        self.processor = QueryProcessor(self.index, WordAnalyzer())

    def test_scores(self):
        result = self.processor.process_query('apple banana', snippets=False)
        self.assertEqual(sorted(result.terms), ['apple', 'banana'])
        self.assertEqual([r.document.id for r in result], [2, 1])

        expected_2 = 0.5 * math.log2(3 / 2) + 1.0 * math.log2(3)
        expected_1 = 1.0 * math.log2(3 / 2)
        self.assertAlmostEqual(result.results[0].score, expected_2, delta=1e-9)
        self.assertAlmostEqual(result.results[1].score, expected_1, delta=1e-9)
        self.assertEqual([r.rank for r in result], [1, 2])

    def test_unknown_terms_are_dropped(self):
        result = self.processor.process_query('cherry durian', snippets=False)
        self.assertEqual(result.terms, ['cherry'])
        self.assertEqual({r.document.id for r in result}, {1, 3})

    def test_query_without_index_terms(self):
        result = self.processor.process_query('durian elderberry')
        self.assertTrue(result.is_empty)
        self.assertEqual(result.terms, [])
        self.assertIn("Your Query 'durian elderberry' didn't match any of the documents.", result.format())

    def test_empty_query(self):
        self.assertTrue(self.processor.process_query('').is_empty)


class TestCandidateExpansion(unittest.TestCase):

    def setUp(self):
        self.index = make_index(
            {i: 1 for i in range(1, 11)},
            {
                'red': {1: 1, 2: 1, 3: 1, 4: 1},
                'green': {2: 1, 3: 1, 5: 1},
                'blue': {3: 1, 6: 1, 7: 1},
            }
        )

    def terms(self, processor, query):
        return processor.resolve_terms(query)

    def test_intersection_only_above_threshold(self):
        processor = QueryProcessor(self.index, WordAnalyzer(), candidate_threshold=1)
        terms = self.terms(processor, 'red green blue')
        self.assertEqual(processor.candidate_documents(terms), {3})

    def test_fallback_is_superset(self):
        strict = QueryProcessor(self.index, WordAnalyzer(), candidate_threshold=1)
        loose = QueryProcessor(self.index, WordAnalyzer(), candidate_threshold=50)
        terms = self.terms(loose, 'red green blue')
        narrow = strict.candidate_documents(terms)
        wide = loose.candidate_documents(terms)
        self.assertTrue(narrow <= wide)
        self.assertEqual(wide, {1, 2, 3, 4, 5, 6, 7})

    def test_threshold_boundary(self):
        # red AND green matches {2, 3}
        at_threshold = QueryProcessor(self.index, WordAnalyzer(), candidate_threshold=2)
        below_threshold = QueryProcessor(self.index, WordAnalyzer(), candidate_threshold=3)
        terms = self.terms(at_threshold, 'red green')
        self.assertEqual(at_threshold.candidate_documents(terms), {2, 3})
        self.assertEqual(below_threshold.candidate_documents(terms), {1, 2, 3, 4, 5})

    def test_expansion_cap(self):
        processor = QueryProcessor(self.index, WordAnalyzer(), max_subset_expansions=1)
        terms = self.terms(processor, 'red green blue')
        self.assertEqual(processor.candidate_documents(terms), {3})

    def test_no_terms(self):
        processor = QueryProcessor(self.index, WordAnalyzer())
        self.assertEqual(processor.candidate_documents([]), set())


class TestRanking(unittest.TestCase):

    def test_top_k_bound_and_order(self):
        documents = {i: 10 for i in range(1, 9)}
        documents[9] = 1
        index = make_index(documents, {'word': {i: i for i in range(1, 9)}})
        processor = QueryProcessor(index, WordAnalyzer(), top_k=5)
        results = processor.process_query('word', snippets=False).results

        self.assertEqual(len(results), 5)
        scores = [r.score for r in results]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual([r.document.id for r in results], [8, 7, 6, 5, 4])

    def test_ties_keep_candidate_order(self):
        index = make_index({1: 1, 2: 1, 3: 1, 4: 1}, {'word': {1: 1, 2: 1, 3: 1}})
        processor = QueryProcessor(index, WordAnalyzer(), top_k=2)
        results = processor.process_query('word', snippets=False).results
        self.assertEqual([r.document.id for r in results], [1, 2])


class TestFormatting(unittest.TestCase):

    def test_result_format(self):
        with tempfile.TemporaryDirectory() as tmp:
            tmp = Path(tmp)
            (tmp / '1.txt').write_text("Title: Doc 1\nThe apple fell. Nothing else.\n")
            (tmp / '2.txt').write_text("Title: Doc 2\nNo fruit here.\n")
            index = make_index({1: 1, 2: 1}, {'apple': {1: 1}, 'fruit': {2: 1}})
            processor = QueryProcessor(index, WordAnalyzer(), path_root=tmp)
            text = processor.process_query('apple').format()

        self.assertTrue(text.startswith('1) Doc 1\n'))
        self.assertIn('   \tThe apple fell.', text)
        self.assertIn(f"   \tLOCATION: {(tmp / '1.txt').absolute()}", text)


if __name__ == '__main__':
    unittest.main()
