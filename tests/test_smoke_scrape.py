"""Tests for the /scrape smoke checker's contract validation."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts.smoke_scrape import check_document


def row(platform, position, url, price=None, mrp=None, discount=None):
    return {
        "platform": platform,
        "list_position": position,
        "product_url": url,
        "price": price,
        "mrp": mrp,
        "discount_percent": discount,
    }


class TestCheckDocument(unittest.TestCase):
    def test_valid_document(self):
        document = {
            "ok": True,
            "count": 3,
            "captcha": {"amazon": False, "flipkart": False},
            "rows": [
                row("flipkart", 1, "f1", 900.0, 1000.0, 10.0),
                row("flipkart", 2, "f2"),
                row("amazon", 1, "a1", 500.0),
            ],
        }
        self.assertEqual(check_document(document), [])

    def test_reports_violations(self):
        document = {
            "ok": True,
            "count": 4,
            "rows": [
                row("amazon", 2, "a1"),
                row("amazon", 1, "a2"),
                row("amazon", 3, "a2"),
                row("amazon", 4, "a3", 1200.0, 1000.0, 5.0),
            ],
        }
        errors = check_document(document)

        self.assertIn("missing field: captcha", errors)
        self.assertTrue(any("duplicate identity key" in e for e in errors))
        self.assertTrue(any("not increasing" in e for e in errors))
        self.assertTrue(any("discount_percent" in e for e in errors))

    def test_cap(self):
        rows = [row("amazon", i + 1, f"a{i}") for i in range(13)]
        errors = check_document({"ok": True, "count": 13, "captcha": {}, "rows": rows})
        self.assertTrue(any("exceeds cap" in e for e in errors))


if __name__ == "__main__":
    unittest.main()
