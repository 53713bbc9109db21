"""
Tests for tracking/suggestions.py.
"""

import sys
import unittest
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tracking.suggestions import get_break_suggestions


class TestBreakSuggestions(unittest.TestCase):

    def test_tiers_grow_with_focus_time(self):
        self.assertEqual(len(get_break_suggestions(5)), 3)
        self.assertEqual(len(get_break_suggestions(20)), 4)
        self.assertEqual(len(get_break_suggestions(30)), 5)
        self.assertEqual(get_break_suggestions(90)[0]["activity"], "Go for a walk outside")

    def test_suggestion_shape(self):
        for suggestion in get_break_suggestions(25):
            self.assertEqual(set(suggestion), {"activity", "duration", "type"})

    def test_returns_fresh_list(self):
        first = get_break_suggestions(10)
        first.clear()
        self.assertTrue(get_break_suggestions(10))


if __name__ == "__main__":
    unittest.main()
