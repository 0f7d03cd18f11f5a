import unittest

import support  # noqa: F401

from utils.formatting import format_duration, format_number, format_percentage, get_time_range_label


class TestFormatting(unittest.TestCase):
    def test_format_number(self):
        self.assertEqual(format_number(999), "999")
        self.assertEqual(format_number(1500), "1.5K")
        self.assertEqual(format_number(2_300_000), "2.3M")

    def test_format_duration(self):
        self.assertEqual(format_duration(215_000), "3:35")
        self.assertEqual(format_duration(5_999), "0:05")

    def test_format_percentage(self):
        self.assertEqual(format_percentage(66.6666), "66.7%")
        self.assertEqual(format_percentage(50, decimals=0), "50%")

    def test_time_range_labels(self):
        self.assertEqual(get_time_range_label("short_term"), "Last 4 weeks")
        self.assertEqual(get_time_range_label("custom"), "custom")


if __name__ == "__main__":
    unittest.main(verbosity=2)
