"""
Tests for NEC Table Loading
"""

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path

from algorithms.nec_tables import NECTables


class TestNECTables(unittest.TestCase):
    """Test NEC table lookups."""

    def setUp(self):
        """Set up test fixtures."""
        self.tables = NECTables()

    def test_wire_sizes_in_ascending_order(self):
        """Twenty gauges, 14 AWG first, 750 kcmil last, ampacity increasing."""
        sizes = self.tables.wire_sizes
        self.assertEqual(len(sizes), 20)
        self.assertEqual(sizes[0], "14 AWG")
        self.assertEqual(sizes[-1], "750 kcmil")

        amps = [self.tables.get_ampacity(s) for s in sizes]
        self.assertEqual(amps, sorted(amps))

    def test_conduit_sizes_in_ascending_order(self):
        sizes = self.tables.conduit_sizes
        self.assertEqual(len(sizes), 12)
        self.assertEqual(sizes[0], '1/2"')
        self.assertEqual(sizes[-1], '6"')

        areas = [self.tables.get_conduit_area(s) for s in sizes]
        self.assertEqual(areas, sorted(areas))

    def test_known_values(self):
        """Test known values from NEC Table 310.16 and Chapter 9."""
        self.assertEqual(self.tables.get_ampacity("10 AWG"), 30)
        self.assertEqual(self.tables.get_ampacity("3/0 AWG"), 200)
        self.assertEqual(self.tables.get_ampacity("750 kcmil"), 475)
        self.assertEqual(self.tables.get_wire_area("10 AWG"), 0.0211)
        self.assertEqual(self.tables.get_conduit_area('1/2"'), 0.12)
        self.assertEqual(self.tables.get_conduit_area('2-1/2"'), 2.34)

    def test_unknown_labels_return_none(self):
        self.assertIsNone(self.tables.get_ampacity("11 AWG"))
        self.assertIsNone(self.tables.get_wire_area(""))
        self.assertIsNone(self.tables.get_conduit_area('7"'))

    def test_tables_are_read_only(self):
        with self.assertRaises(TypeError):
            self.tables.ampacity["10 AWG"] = 40


class TestNECTablesDataDir(unittest.TestCase):
    """Test loading from a custom data directory."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        source = Path(NECTables().data_dir)
        for name in ("wire_ampacity.json", "wire_cross_section.json", "conduit_fill.json"):
            shutil.copy(source / name, self.temp_dir)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_missing_file(self):
        os.remove(os.path.join(self.temp_dir, "conduit_fill.json"))
        with self.assertRaises(FileNotFoundError):
            NECTables(self.temp_dir)

    def test_mismatched_gauges(self):
        path = os.path.join(self.temp_dir, "wire_cross_section.json")
        with open(path, 'w') as f:
            json.dump({"thhn": {"14 AWG": 0.0097}}, f)

        with self.assertRaises(ValueError):
            NECTables(self.temp_dir)

    def test_invalid_json(self):
        with open(os.path.join(self.temp_dir, "wire_ampacity.json"), 'w') as f:
            f.write("{not json")

        with self.assertRaises(ValueError):
            NECTables(self.temp_dir)


if __name__ == '__main__':
    unittest.main()
