"""
Tests for Logging Setup
"""

import json
import logging
import sys
import unittest
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from survey.logging_config import JSONFormatter, setup_logging


class TestJSONFormatter(unittest.TestCase):

    def make_record(self, **extra):
        record = logging.LogRecord("survey.workflow", logging.INFO, __file__, 10,
                                   "Stage %s", ("review",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_context_fields(self):
        entry = json.loads(JSONFormatter().format(
            self.make_record(project_id="PRJ-1", stage="review")))

        self.assertEqual(entry["message"], "Stage review")
        self.assertEqual(entry["level"], "INFO")
        self.assertEqual(entry["project_id"], "PRJ-1")
        self.assertEqual(entry["stage"], "review")

    def test_without_context(self):
        entry = json.loads(JSONFormatter().format(self.make_record()))
        self.assertNotIn("project_id", entry)
        self.assertNotIn("stage", entry)


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self.saved = (root.handlers[:], root.level)

    def tearDown(self):
        root = logging.getLogger()
        root.handlers, level = self.saved
        root.setLevel(level)

    def test_single_handler(self):
        setup_logging("debug", json_output=True)
        setup_logging("debug", json_output=True)

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertIsInstance(root.handlers[0].formatter, JSONFormatter)
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    def test_unknown_level_falls_back(self):
        setup_logging("chatty")
        self.assertEqual(logging.getLogger().level, logging.INFO)


if __name__ == '__main__':
    unittest.main()
