"""
Text analysis module
Handles sentence splitting, tokenization, filtering and stemming
"""

import logging
import re
import threading
from collections import defaultdict
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from nltk.stem import PorterStemmer
from nltk.tokenize import PunktSentenceTokenizer, TreebankWordTokenizer

from .core import Token, term_hash

logger = logging.getLogger(__name__)

STOPWORDS_RESOURCE = 'stopwords.txt'

ILLEGAL_PATTERNS = [
    r"\d+(|.\d+)",                                    # numbers
    r"[!\"#$%&'()*+,\-./:;<=>?@\[\\\]^_`{|}~]+",      # symbols
    r"\b(https?|ftp|file)://[-a-zA-Z0-9+&@#/%?=~_|!:,.;]*[-a-zA-Z0-9+&@#/%=~_|]",
    r".*[^a-zA-Z\-_`'‘]+.*",                     # non english letters
]


def load_word_list(path: Path) -> Set[str]:
    """Read one word per line, ignoring blanks and '#' comments"""
    words = set()
    with open(path, 'r', encoding='utf-8') as fh:
        for line in fh:
            word = line.strip().lower()
            if word and not word.startswith('#'):
                words.add(word)
    return words


def load_default_stopwords() -> Set[str]:
    """Stopwords bundled with the package"""
    resource = resources.files('flatsearch') / 'resources' / STOPWORDS_RESOURCE
    text = resource.read_text(encoding='utf-8')
    return {
        line.strip().lower() for line in text.splitlines()
        if line.strip() and not line.startswith('#')
    }


class TextAnalyzer:
    """
    Turns raw text into normalized terms with frequency counts.

    Every raw token is lowercased and stripped of periods, then dropped if it
    is a stopword, missing from the optional dictionary, matches an illegal
    pattern or falls outside the allowed length. Survivors are Porter stemmed.
    """

    def __init__(self,
                 stopwords_path: Optional[Path] = None,
                 dictionary_path: Optional[Path] = None,
                 min_token_length: int = 3,
                 max_token_length: int = 45):
        self.stemmer = PorterStemmer()
        self.sentence_tokenizer = PunktSentenceTokenizer()
        self.word_tokenizer = TreebankWordTokenizer()
        self.min_token_length = min_token_length
        self.max_token_length = max_token_length

        self.stop_words = load_default_stopwords()
        if stopwords_path:
            logger.info("Loading stopwords from: %s", stopwords_path)
            self.stop_words |= load_word_list(Path(stopwords_path))

        self.dictionary: Optional[Dict[int, Set[str]]] = None
        if dictionary_path:
            self.dictionary = self._load_dictionary(Path(dictionary_path))

        self.pattern = re.compile('|'.join(f"({p})" for p in ILLEGAL_PATTERNS))

        self._stats_lock = threading.Lock()
        self._preprocessing_size = 0
        self._postprocessing_size = 0

    @classmethod
    def from_config(cls, config: Dict) -> 'TextAnalyzer':
        return cls(
            stopwords_path=config.get('stopwords_path'),
            dictionary_path=config.get('dictionary_path'),
            min_token_length=config.get('min_token_length', 3),
            max_token_length=config.get('max_token_length', 45)
        )

    def _load_dictionary(self, path: Path) -> Dict[int, Set[str]]:
        """Load legal words into hash buckets for quick membership checks"""
        logger.info("Loading dictionary words from: %s", path)
        buckets: Dict[int, Set[str]] = defaultdict(set)
        for word in load_word_list(path):
            buckets[term_hash(word)].add(word)
        return dict(buckets)

    @property
    def preprocessing_size(self) -> int:
        """Raw tokens seen, duplicates included"""
        return self._preprocessing_size

    @property
    def postprocessing_size(self) -> int:
        """Unique terms kept per scanned text, summed over all texts"""
        return self._postprocessing_size

    def _in_dictionary(self, word: str) -> bool:
        if self.dictionary is None:
            return True
        return word in self.dictionary.get(term_hash(word), ())

    def normalize(self, raw: str) -> Optional[str]:
        """Normalize one raw token, or return None if it is filtered out"""
        word = raw.lower().replace('.', '')

        if word in self.stop_words:
            return None
        if not self._in_dictionary(word):
            return None
        if self.pattern.fullmatch(word):
            return None
        if not self.min_token_length <= len(word) <= self.max_token_length:
            return None

        return self.stemmer.stem(word)

    def _collect(self, sentences: List[str]) -> Tuple[Dict[str, Token], int]:
        tokens: Dict[str, Token] = {}
        seen = 0
        for sentence in sentences:
            for raw in self.word_tokenizer.tokenize(sentence):
                seen += 1
                term = self.normalize(raw)
                if term is None:
                    continue
                token = tokens.get(term)
                if token is None:
                    tokens[term] = Token(term)
                else:
                    token.increment_frequency()
        return tokens, seen

    def _record(self, seen: int, kept: int):
        with self._stats_lock:
            self._preprocessing_size += seen
            self._postprocessing_size += kept

    def split_sentences(self, text: str) -> List[str]:
        if not text or not text.strip():
            return []
        return self.sentence_tokenizer.tokenize(text)

    def analyze(self, text: str) -> Dict[str, Token]:
        """
        Analyze a whole text (document body or query)
        Returns term text -> Token with in-text frequency
        """
        tokens, seen = self._collect(self.split_sentences(text))
        self._record(seen, len(tokens))
        return tokens

    def analyze_sentences(self, text: str) -> List[Tuple[str, Dict[str, Token]]]:
        """
        Analyze a text sentence by sentence
        Returns (sentence text, term text -> Token) pairs in text order
        """
        result = []
        for sentence in self.split_sentences(text):
            tokens, seen = self._collect([sentence])
            self._record(seen, len(tokens))
            result.append((sentence, tokens))
        return result
