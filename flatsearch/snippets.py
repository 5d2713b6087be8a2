"""
Snippet extraction
Picks the sentences of a document that best match the query terms
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .core import word_wrap
from .document import read_source

logger = logging.getLogger(__name__)

NO_CONTENT = "This Document has no content."


class SnippetGenerator:
    """
    Scores every sentence of a document against the query with a cosine
    measure over sentence-level TF-IDF and keeps the best few.
    """

    def __init__(self, analyzer, path_root: Optional[Path] = None,
                 sentences: int = 2, width: int = 100, indent: str = '   \t'):
        self.analyzer = analyzer
        self.path_root = path_root
        self.sentences = sentences
        self.width = width
        self.indent = indent

    @staticmethod
    def score_sentences(sentences: List[Dict], query_terms: Sequence[str]) -> List[float]:
        """
        Cosine score of each sentence's term bag against the query.

        tf = f / (highest f in the sentence), idf = sentences / sentences
        containing the term. Each query term adds 1 to the query norm.
        Sentence terms outside the query only count toward the sentence norm
        when at least one query term matched.
        """
        if not sentences:
            return []

        containing = Counter()
        for tokens in sentences:
            containing.update(tokens.keys())
        total = len(sentences)

        query_norm = np.sqrt(len(query_terms))
        scores = []
        for position, tokens in enumerate(sentences):
            highest = max((t.frequency for t in tokens.values()), default=0)
            remaining = dict(tokens)

            def weight(token):
                return (token.frequency / highest) * (total / containing[token.text])

            matched = np.array([weight(remaining.pop(term)) for term in query_terms if term in remaining])
            numerator = matched.sum() if matched.size else 0.0
            if numerator == 0:
                logger.debug("Sentence %d was given a rank of: 0", position)
                scores.append(0.0)
                continue

            others = np.array([weight(t) for t in remaining.values()])
            sentence_norm = np.sqrt(np.sum(matched ** 2) + (np.sum(others ** 2) if others.size else 0.0))
            score = float(numerator / (query_norm * sentence_norm))
            logger.debug("Sentence %d was given a rank of: %f", position, score)
            scores.append(score)
        return scores

    def select(self, sentence_texts: List[str], scores: List[float]) -> Optional[str]:
        """Join the best positively scored sentences in document order"""
        ranked: List[Tuple[float, int]] = sorted(
            ((score, i) for i, score in enumerate(scores) if score > 0),
            key=lambda item: (-item[0], item[1])
        )
        chosen = sorted(i for _, i in ranked[:self.sentences])
        if not chosen:
            return None
        logger.debug("Using the top %d sentences: %s", len(chosen), chosen)
        return ' '.join(sentence_texts[i].strip() for i in chosen)

    def generate(self, document, query_terms: Sequence[str]) -> str:
        """Word-wrapped snippet for a ranked document"""
        _, body, _ = read_source(document.file_path(self.path_root))

        analyzed = self.analyzer.analyze_sentences(body)
        logger.debug("Ranking %d sentences.", len(analyzed))
        texts = [text for text, _ in analyzed]
        scores = self.score_sentences([tokens for _, tokens in analyzed], query_terms)

        snippet = self.select(texts, scores)
        return word_wrap(snippet or NO_CONTENT, self.width, self.indent)
