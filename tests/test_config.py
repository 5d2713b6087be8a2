import json
import tempfile
import unittest
from pathlib import Path

from flatsearch.config import DEFAULT_CONFIG, load_config, validate_config


class TestConfig(unittest.TestCase):

    def test_defaults(self):
        config = load_config()
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertEqual(config['top_k'], 5)
        self.assertEqual(config['candidate_threshold'], 50)
        self.assertEqual(config['max_rows_per_statement'], 10_000)

    def test_file_and_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'config.json'
            path.write_text(json.dumps({'top_k': 10, 'snippet_width': 80}))
            config = load_config(path, top_k=3)
        self.assertEqual(config['top_k'], 3)
        self.assertEqual(config['snippet_width'], 80)

    def test_unknown_key(self):
        with self.assertRaises(ValueError):
            load_config(not_a_key=1)

    def test_non_positive_int(self):
        for value in (0, -1, 'five', True):
            with self.assertRaises(ValueError):
                validate_config({'top_k': value})

    def test_poll_interval(self):
        with self.assertRaises(ValueError):
            validate_config({'poll_interval': -0.5})
        validate_config({'poll_interval': 0})

    def test_token_length_order(self):
        with self.assertRaises(ValueError):
            load_config(min_token_length=10, max_token_length=5)

    def test_non_object_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'config.json'
            path.write_text('[1, 2]')
            with self.assertRaises(ValueError):
                load_config(path)


if __name__ == '__main__':
    unittest.main()
