"""
Configuration for FlatSearch
Defaults for every tunable plus loading of JSON overrides
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional


# Ingestion
ADMISSION_CAPACITY: int = 100      # documents analyzed concurrently at most
POLL_INTERVAL: float = 0.01        # seconds between queue polls
ANALYSIS_WORKERS: int = os.cpu_count() or 4

# Index files
INDEX_EXTENSION: str = '.sql'
SCHEMA_FILE: str = 'ddl.sql'
MAX_ROWS_PER_STATEMENT: int = 10_000
MAX_FILE_BYTES: int = 900 * 1024 ** 2

# Documents
TITLE_MAX_LENGTH: int = 120

# Analyzer
MIN_TOKEN_LENGTH: int = 3
MAX_TOKEN_LENGTH: int = 45

# Query processing
CANDIDATE_THRESHOLD: int = 50
MAX_SUBSET_EXPANSIONS: int = 1024
TOP_K: int = 5
SNIPPET_SENTENCES: int = 2
SNIPPET_WIDTH: int = 100
SNIPPET_WORKERS: int = 5


DEFAULT_CONFIG: Dict[str, Any] = {
    'admission_capacity': ADMISSION_CAPACITY,
    'poll_interval': POLL_INTERVAL,
    'analysis_workers': ANALYSIS_WORKERS,
    'index_extension': INDEX_EXTENSION,
    'schema_file': SCHEMA_FILE,
    'max_rows_per_statement': MAX_ROWS_PER_STATEMENT,
    'max_file_bytes': MAX_FILE_BYTES,
    'title_max_length': TITLE_MAX_LENGTH,
    'min_token_length': MIN_TOKEN_LENGTH,
    'max_token_length': MAX_TOKEN_LENGTH,
    'stopwords_path': None,
    'dictionary_path': None,
    'path_root': None,
    'candidate_threshold': CANDIDATE_THRESHOLD,
    'max_subset_expansions': MAX_SUBSET_EXPANSIONS,
    'top_k': TOP_K,
    'snippet_sentences': SNIPPET_SENTENCES,
    'snippet_width': SNIPPET_WIDTH,
    'snippet_workers': SNIPPET_WORKERS,
    'log_level': 'INFO',
    'log_file': None,
}

# Keys that must hold positive integers
_POSITIVE_INTS = {
    'admission_capacity', 'analysis_workers', 'max_rows_per_statement',
    'max_file_bytes', 'title_max_length', 'min_token_length',
    'max_token_length', 'candidate_threshold', 'max_subset_expansions',
    'top_k', 'snippet_sentences', 'snippet_width', 'snippet_workers',
}


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Check key names and value types, raising ValueError on the first problem"""
    for key, value in config.items():
        if key not in DEFAULT_CONFIG:
            raise ValueError(f"Unknown configuration key: {key}")

        if key in _POSITIVE_INTS:
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{key} must be a positive integer, got {value!r}")

    poll_interval = config.get('poll_interval', POLL_INTERVAL)
    if isinstance(poll_interval, bool) or not isinstance(poll_interval, (int, float)) \
            or poll_interval < 0:
        raise ValueError(f"poll_interval must be a non-negative number, got {poll_interval!r}")

    if config.get('min_token_length', MIN_TOKEN_LENGTH) > config.get('max_token_length', MAX_TOKEN_LENGTH):
        raise ValueError("min_token_length cannot exceed max_token_length")

    return config


def load_config(path: Optional[Path] = None, **overrides) -> Dict[str, Any]:
    """
    Build the effective configuration.
    Values from the JSON file at `path` replace the defaults, and keyword
    overrides replace both.
    """
    config = dict(DEFAULT_CONFIG)

    if path is not None:
        with open(path, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must hold a JSON object: {path}")
        config.update(data)

    config.update(overrides)
    return validate_config(config)
