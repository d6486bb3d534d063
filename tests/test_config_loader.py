from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from tabula.config_loader import DEFAULT_CONFIG, deep_merge, load_config, load_config_from_path
from tabula.errors import ErrorType


class TestConfigLoader(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def write(self, text: str) -> Path:
        path = self.dir / "config.toml"
        path.write_text(text)
        return path

    def test_missing_file(self) -> None:
        result = load_config_from_path(self.dir / "missing.toml")
        self.assertTrue(result.is_err())
        self.assertEqual(result.error.error_type, ErrorType.FILE_NOT_FOUND)

    def test_partial_file_is_merged_over_defaults(self) -> None:
        path = self.write('[pipe]\nname = "tabula"\n\n[rename]\nuse_stable_identity = false\n')
        config = load_config_from_path(path).value
        self.assertEqual(config["pipe"]["name"], "tabula")
        self.assertFalse(config["rename"]["use_stable_identity"])
        self.assertEqual(config["logging"], DEFAULT_CONFIG["logging"])

    def test_invalid_toml_reports_line(self) -> None:
        path = self.write('[pipe]\nname = "ok"\nbroken = \n')
        result = load_config_from_path(path)
        self.assertEqual(result.error.error_type, ErrorType.PARSE_ERROR)
        self.assertEqual(result.error.context["line_number"], 3)
        self.assertIn("broken", result.error.message)

    def test_load_config_falls_back_to_defaults(self) -> None:
        self.assertEqual(load_config(self.dir / "missing.toml"), DEFAULT_CONFIG)
        self.assertEqual(load_config(self.write("[[[")), DEFAULT_CONFIG)

    def test_deep_merge_leaves_base_untouched(self) -> None:
        base = {"a": {"b": 1, "c": 2}}
        merged = deep_merge(base, {"a": {"b": 5}, "d": 3})
        self.assertEqual(merged, {"a": {"b": 5, "c": 2}, "d": 3})
        self.assertEqual(base, {"a": {"b": 1, "c": 2}})


if __name__ == "__main__":
    unittest.main()
