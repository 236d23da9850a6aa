"""Contract tests for the Amazon and Flipkart extraction strategies."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from playwright.sync_api import Error as PlaywrightError

from marketlens.diagnostics import DiagnosticTrail
from marketlens.extractors import AmazonExtractor, FlipkartExtractor, first_resolved, get_extractor
from marketlens.extractors import amazon as amazon_mod
from marketlens.extractors import flipkart as flipkart_mod
from tests.fakes import FakeElement, FakePage


AMAZON_SOURCE = "https://www.amazon.in/s?k=phone"
FLIPKART_SOURCE = "https://www.flipkart.com/search?q=phone"


def amazon_card(name=None, href=None, asin=None, price=None, mrp=None, image=None, fail=False):
    children = {}
    if name:
        children["h2 a span.a-size-medium"] = FakeElement(text=name)
    if href:
        children["h2 a"] = FakeElement(attrs={"href": href})
    if image:
        children["img.s-image"] = FakeElement(attrs={"src": image})
    if price:
        children[amazon_mod.PRICE_SELECTOR] = FakeElement(text=price)
    if mrp:
        children[amazon_mod.MRP_SELECTOR] = FakeElement(text=mrp)
    return FakeElement(attrs={"data-asin": asin} if asin else {}, children=children, fail=fail)


def amazon_page(cards):
    return FakePage(
        ready={amazon_mod.RESULTS_CONTAINER},
        elements={amazon_mod.RESULT_CARD: cards},
    )


def flipkart_anchor(href, card):
    return FakeElement(attrs={"href": href}, closest=card)


class TestFirstResolved(unittest.TestCase):
    def test_short_circuits_on_first_value(self):
        calls = []

        def tier(value):
            def _run():
                calls.append(value)
                return value
            return _run

        self.assertEqual(first_resolved([tier(None), tier("b"), tier("c")]), "b")
        self.assertEqual(calls, [None, "b"])

    def test_playwright_error_counts_as_unresolved(self):
        def broken():
            raise PlaywrightError("element detached")

        self.assertEqual(first_resolved([broken, lambda: 42.0]), 42.0)
        self.assertIsNone(first_resolved([broken, lambda: ""]))


class TestRegistry(unittest.TestCase):
    def test_platform_tags_select_strategies(self):
        self.assertIsInstance(get_extractor("amazon"), AmazonExtractor)
        self.assertIsInstance(get_extractor("flipkart"), FlipkartExtractor)

    def test_unknown_platform(self):
        with self.assertRaises(ValueError):
            get_extractor("myntra")

    def test_domain_checks(self):
        self.assertTrue(get_extractor("amazon").accepts_url("https://www.amazon.com/s?k=tv"))
        self.assertFalse(get_extractor("amazon").accepts_url("https://www.flipkart.com/search"))
        self.assertTrue(get_extractor("flipkart").accepts_url("https://m.flipkart.com/search"))
        self.assertFalse(get_extractor("flipkart").accepts_url("https://flipkart.evil.io/"))


class TestAmazonExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = AmazonExtractor()
        self.trail = DiagnosticTrail(enabled=True)

    def test_full_card(self):
        page = amazon_page([
            amazon_card(
                name="Samsung Galaxy M34 5G",
                href="/Samsung-Galaxy/dp/B0C7?ref=sr_1_1",
                price="₹16,999",
                mrp="₹24,499",
                image="https://m.media-amazon.com/images/I/abc.jpg",
            )
        ])
        rows, position = self.extractor.extract(page, AMAZON_SOURCE, 0, 12, self.trail)

        self.assertEqual(len(rows), 1)
        self.assertEqual(position, 1)
        row = rows[0]
        self.assertEqual(row.platform, "amazon")
        self.assertEqual(row.list_position, 1)
        self.assertEqual(row.product_name, "Samsung Galaxy M34 5G")
        self.assertEqual(row.brand_guess, "Samsung")
        self.assertEqual(row.price, 16999.0)
        self.assertEqual(row.mrp, 24499.0)
        self.assertEqual(row.discount_percent, 30.6)
        self.assertEqual(row.product_url, "https://www.amazon.in/Samsung-Galaxy/dp/B0C7?ref=sr_1_1")
        self.assertEqual(row.image_url, "https://m.media-amazon.com/images/I/abc.jpg")
        self.assertEqual(row.source_url, AMAZON_SOURCE)
        self.assertIsNone(row.rating)
        self.assertIsNone(row.review_count)

    def test_canonical_url_built_from_asin_on_source_domain(self):
        page = amazon_page([amazon_card(asin="B0XYZ12345", price="₹999")])
        rows, _ = self.extractor.extract(page, "https://www.amazon.com/s?k=cable", 0, 12, self.trail)

        self.assertEqual(rows[0].product_url, "https://www.amazon.com/dp/B0XYZ12345")
        self.assertIsNone(rows[0].product_name)
        self.assertIsNone(rows[0].discount_percent)

    def test_empty_and_broken_cards_are_skipped(self):
        page = amazon_page([
            amazon_card(name="Phone A", asin="A1"),
            amazon_card(),
            amazon_card(name="Broken", asin="B2", fail=True),
            amazon_card(name="Phone C", asin="C3"),
        ])
        rows, position = self.extractor.extract(page, AMAZON_SOURCE, 0, 12, self.trail)

        self.assertEqual([r.product_name for r in rows], ["Phone A", "Phone C"])
        self.assertEqual([r.list_position for r in rows], [1, 2])
        self.assertEqual(position, 2)
        self.assertTrue(any("card parse error" in line for line in self.trail.dump()))

    def test_limit_and_start_position(self):
        cards = [amazon_card(name=f"Phone {i}", asin=f"A{i}") for i in range(20)]
        rows, position = self.extractor.extract(amazon_page(cards), AMAZON_SOURCE, 5, 12, self.trail)

        self.assertEqual(len(rows), 12)
        self.assertEqual(rows[0].list_position, 6)
        self.assertEqual(position, 17)

    def test_missing_results_container(self):
        page = FakePage(ready=set())
        rows, position = self.extractor.extract(page, AMAZON_SOURCE, 3, 12, self.trail)

        self.assertEqual(rows, [])
        self.assertEqual(position, 3)


class TestFlipkartExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = FlipkartExtractor({"scraping": {"price_floor": 3000}})
        self.trail = DiagnosticTrail(enabled=True)

    def _page(self, anchors, dismiss=None):
        elements = {flipkart_mod.PRODUCT_ANCHORS: anchors}
        if dismiss is not None:
            elements[flipkart_mod.DISMISS_CONTROL] = dismiss
        return FakePage(elements=elements)

    def test_class_signature_lookup(self):
        card = FakeElement(
            children={
                "div._4rR01T": FakeElement(text="  Redmi 13C (Starlight Black, 128 GB) "),
                "div._30jeq3": FakeElement(text="₹7,999"),
                "div._3I9_wc": FakeElement(text="₹13,999"),
                "img": FakeElement(attrs={"src": "https://rukminim.flixcart.com/x.jpg", "alt": "alt"}),
            }
        )
        page = self._page([flipkart_anchor("/redmi-13c/p/itm123?pid=MOB1", card)])
        rows, position = self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(len(rows), 1)
        row = rows[0]
        self.assertEqual(row.product_name, "Redmi 13C (Starlight Black, 128 GB)")
        self.assertEqual(row.brand_guess, "Xiaomi")
        self.assertEqual(row.price, 7999.0)
        self.assertEqual(row.mrp, 13999.0)
        self.assertEqual(row.discount_percent, 42.9)
        self.assertEqual(row.product_url, "https://www.flipkart.com/redmi-13c/p/itm123?pid=MOB1")
        self.assertEqual(row.image_url, "https://rukminim.flixcart.com/x.jpg")
        self.assertEqual(position, 1)

    def test_text_scan_fallback_ignores_emi_noise(self):
        card = FakeElement(
            text="vivo T3 5G ₹19,999 ₹24,999 20% off EMI from ₹1,667/month",
            children={"img": FakeElement(attrs={"alt": "vivo T3 5G"})},
        )
        page = self._page([flipkart_anchor("/vivo-t3/p/itm9", card)])
        rows, _ = self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(rows[0].product_name, "vivo T3 5G")
        self.assertEqual(rows[0].price, 19999.0)
        self.assertEqual(rows[0].mrp, 24999.0)
        self.assertEqual(rows[0].discount_percent, 20.0)

    def test_single_scanned_value_is_price(self):
        card = FakeElement(text="USB cable ₹299", children={"a.s1Q9rs": FakeElement(text="USB cable")})
        page = self._page([flipkart_anchor("/cable/p/itm1", card)])
        rows, _ = self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(rows[0].price, 299.0)
        self.assertIsNone(rows[0].mrp)
        self.assertIsNone(rows[0].discount_percent)

    def test_duplicate_anchors_and_unusable_cards(self):
        good = FakeElement(children={"div.KzDlHZ": FakeElement(text="POCO X6")}, text="₹18,999")
        empty = FakeElement(text="Sponsored")
        page = self._page([
            flipkart_anchor("/poco-x6/p/itm1", good),
            flipkart_anchor("/poco-x6/p/itm1", good),
            flipkart_anchor("/ad/p/itm2", empty),
            flipkart_anchor(None, good),
            FakeElement(attrs={"href": "/x/p/itm3"}, fail=True),
            flipkart_anchor("/poco-x6-pro/p/itm4", good),
        ])
        rows, position = self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(
            [r.product_url for r in rows],
            ["https://www.flipkart.com/poco-x6/p/itm1", "https://www.flipkart.com/poco-x6-pro/p/itm4"],
        )
        self.assertEqual([r.list_position for r in rows], [1, 2])
        self.assertEqual(position, 2)

    def test_anchor_without_card_ancestor_uses_itself(self):
        anchor = FakeElement(attrs={"href": "/tv/p/itm5"}, text="Smart TV ₹21,999", closest=None)
        rows, _ = self.extractor.extract(self._page([anchor]), FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(rows[0].price, 21999.0)

    def test_dismisses_overlay_and_scrolls(self):
        dismiss = FakeElement()
        page = self._page([], dismiss=dismiss)
        self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail, scroll_steps=3)

        self.assertTrue(dismiss.clicked)
        self.assertEqual(page.keyboard.pressed, ["Escape"])
        self.assertEqual(page.scrolls, 3)

    def test_failed_escape_is_recorded(self):
        page = self._page([])

        def broken_press(key):
            raise PlaywrightError("Target page, context or browser has been closed")

        page.keyboard.press = broken_press
        rows, _ = self.extractor.extract(page, FLIPKART_SOURCE, 0, 12, self.trail)

        self.assertEqual(rows, [])
        self.assertTrue(any("flipkart: escape failed" in line for line in self.trail.dump()))

    def test_limit(self):
        anchors = [
            flipkart_anchor(f"/phone-{i}/p/itm{i}", FakeElement(text=f"₹{1000 + i}"))
            for i in range(15)
        ]
        rows, position = self.extractor.extract(self._page(anchors), FLIPKART_SOURCE, 0, 10, self.trail)

        self.assertEqual(len(rows), 10)
        self.assertEqual(position, 10)

    def test_mobile_url(self):
        self.assertEqual(
            self.extractor.mobile_url("https://www.flipkart.com/search?q=tv&otracker=search"),
            "https://m.flipkart.com/search?q=tv",
        )


if __name__ == "__main__":
    unittest.main()
