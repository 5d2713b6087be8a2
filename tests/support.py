"""Shared fixtures for the test suite"""

import re
import threading
from pathlib import Path
from typing import Dict

from flatsearch.core import Token

WORD = re.compile(r"[a-z]+")
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class WordAnalyzer:
    """Lowercases and splits on non-letters; no stemming or filtering"""

    def analyze(self, text: str) -> Dict[str, Token]:
        tokens: Dict[str, Token] = {}
        for word in WORD.findall(text.lower()):
            if word in tokens:
                tokens[word].increment_frequency()
            else:
                tokens[word] = Token(word)
        return tokens

    def analyze_sentences(self, text: str):
        text = text.strip()
        if not text:
            return []
        return [(s, self.analyze(s)) for s in SENTENCE_END.split(text)]

    preprocessing_size = 0
    postprocessing_size = 0


class BlockingAnalyzer(WordAnalyzer):
    """Holds every analysis until released"""

    def __init__(self):
        self.release = threading.Event()

    def analyze(self, text: str) -> Dict[str, Token]:
        self.release.wait(10)
        return super().analyze(text)


class StubDocument:
    """Just enough of a Document for the writer"""

    def __init__(self, doc_id: int, counts: Dict[str, int], title: str = '', relative_path: str = ''):
        self.id = doc_id
        self.title = title or f"Document {doc_id}"
        self.relative_path = relative_path or f"{doc_id}.txt"
        self.tokens = {text: Token(text, freq) for text, freq in counts.items()}


def write_corpus(directory: Path, texts: Dict[str, str]):
    """Write files named by key, each holding a title line and the text"""
    for name, text in texts.items():
        (directory / name).write_text(f"Title: {name}\n{text}\n", encoding='utf-8')
