import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import yaml

from parallax.config import Config
from parallax.core.lenses import LENS_CONFIGS, custom_lens, get_lens, load_lenses


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.env = mock.patch.dict(os.environ, {}, clear=True)
        self.env.start()
        self.addCleanup(self.env.stop)

    def write(self, name, text):
        path = Path(self.tmp.name) / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    def test_defaults(self):
        config = Config()
        self.assertEqual(config.get("scoring.window_days"), 7)
        self.assertEqual(config.get("edges.batch_threshold"), 50)
        self.assertEqual(config.get("missing.key", "fallback"), "fallback")

    def test_yaml_file_deep_merges(self):
        config = Config(self.write("parallax.yaml", "scoring:\n  window_days: 3\n"))
        self.assertEqual(config.get("scoring.window_days"), 3)
        self.assertEqual(config.get("scoring.temporal_mode"), "bonus")

    def test_json_file(self):
        config = Config(self.write("parallax.json", '{"llm": {"model": "local-model"}}'))
        self.assertEqual(config.get("llm.model"), "local-model")

    def test_missing_or_broken_file_falls_back(self):
        self.assertEqual(Config("/nonexistent/parallax.yaml").get("scoring.window_days"), 7)
        with self.assertLogs("parallax.config", level="ERROR"):
            config = Config(self.write("broken.json", "{nope"))
        self.assertEqual(config.get("scoring.window_days"), 7)

    def test_environment_overrides(self):
        os.environ["PARALLAX_SCORING_WINDOW_DAYS"] = "5"
        os.environ["PARALLAX_FETCH_USER_AGENT"] = "tester"
        config = Config()
        self.assertEqual(config.get("scoring.window_days"), 5)
        self.assertEqual(config.get("fetch.user_agent"), "tester")

    def test_save_round_trip(self):
        config = Config()
        path = str(Path(self.tmp.name) / "saved.yaml")
        self.assertTrue(config.save(path))
        with open(path, encoding="utf-8") as f:
            self.assertEqual(yaml.safe_load(f)["layout"]["ring_spacing"], 100)
        self.assertFalse(config.save(str(Path(self.tmp.name) / "saved.ini")))


class TestLenses(unittest.TestCase):
    def test_builtins(self):
        lenses = load_lenses()
        self.assertEqual(list(lenses)[:4], ["political", "geographic", "domain", "custom"])
        political = lenses["political"]
        self.assertEqual(political.columns[0].id, "left")
        self.assertTrue(all(col.feeds for col in political.columns))
        self.assertEqual(lenses["custom"].columns, ())

    def test_overrides_replace_and_add(self):
        overrides = {
            "political": {"label": "Mine", "columns": [{"id": "x", "feeds": ["https://x.test/rss"]}]},
            "science": {"columns": [{"id": "physics", "label": "Physics"}]},
        }
        lenses = load_lenses(overrides)
        self.assertEqual(lenses["political"].label, "Mine")
        self.assertEqual(lenses["political"].column("x").label, "x")
        self.assertEqual(lenses["science"].label, "science")
        self.assertIn("left", [c["id"] for c in LENS_CONFIGS["political"]["columns"]])

    def test_unknown_lens(self):
        with self.assertRaises(KeyError):
            get_lens("astrology")

    def test_custom_lens(self):
        lens = custom_lens([{"id": "a", "label": "A", "color": "#fff"}])
        self.assertEqual(lens.id, "custom")
        self.assertEqual(lens.column("a").color, "#fff")
        self.assertIsNone(lens.column("b"))


if __name__ == "__main__":
    unittest.main()
