# tests/test_price_extractor.py

"""Tests for the prioritised HTML price extractor."""

import unittest

from price_tracker.models.price_point import MSRP, SALE
from price_tracker.scrapers.price_extractor import (
    GENERIC,
    LABELED,
    STRUCTURED,
    ExtractionRules,
    PriceExtractor,
    parse_amount,
)

SHOPIFY_PAGE = """
<html><head>
<meta property="og:price:amount" content="225.00">
<meta property="og:price:currency" content="USD">
</head><body>
<div class="price">
  <span class="visually-hidden">Regular price</span>
  <s>$ 260.00</s>
  <span>Sale price</span> $ 225.00
</div>
<footer>SKU 1234567 | page 2 of 9</footer>
</body></html>
"""

JSON_LD_PAGE = """
<html><head>
<script type="application/ld+json">
{"@context": "https://schema.org", "@graph": [
  {"@type": "Product", "name": "Bucket Hat",
   "offers": [{"@type": "Offer", "price": "199.00", "priceCurrency": "CAD"},
              {"@type": "Offer", "price": "199.00", "priceCurrency": "CAD"}]}
]}
</script>
</head><body>Regular price C$ 250.00</body></html>
"""


def _rules(**overrides: object) -> ExtractionRules:
    """Build rules for a USD source with optional overrides."""
    params: dict[str, object] = {"currency": "USD"}
    params.update(overrides)
    return ExtractionRules(**params)  # type: ignore[arg-type]


class TestParseAmount(unittest.TestCase):
    """parse_amount normalisation."""

    def test_strips_thousands_separator(self) -> None:
        """Comma separators are removed."""
        self.assertEqual(parse_amount("1,299.50"), 1299.5)

    def test_rejects_non_positive_and_garbage(self) -> None:
        """Zero, negatives, booleans and text yield None."""
        for raw in ("0", "-5", "abc", "", None, True, "nan"):
            with self.subTest(raw=raw):
                self.assertIsNone(parse_amount(raw))


class TestStructuredExtraction(unittest.TestCase):
    """Structured metadata has the highest priority."""

    def test_og_meta_sale_and_labeled_msrp(self) -> None:
        """A Shopify page yields the og sale price and the regular price."""
        extractor = PriceExtractor(_rules(strategies=(STRUCTURED, LABELED)))
        found = extractor.extract(SHOPIFY_PAGE)

        sale = [p for p in found if p.kind == SALE]
        msrp = [p for p in found if p.kind == MSRP]
        self.assertEqual(len(sale), 1)
        self.assertEqual(sale[0].amount, 225.0)
        self.assertEqual(sale[0].currency, "USD")
        self.assertEqual(sale[0].method, STRUCTURED)
        self.assertEqual(len(msrp), 1)
        self.assertEqual(msrp[0].amount, 260.0)
        self.assertEqual(msrp[0].method, LABELED)

    def test_json_ld_offers_deduplicated(self) -> None:
        """Repeated JSON-LD offers collapse to one candidate."""
        extractor = PriceExtractor(_rules(strategies=(STRUCTURED,)))
        found = extractor.extract(JSON_LD_PAGE)
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].amount, 199.0)
        self.assertEqual(found[0].currency, "CAD")

    def test_aggregate_offer_children(self) -> None:
        """Offers nested in an AggregateOffer inherit its currency."""
        html = (
            '<script type="application/ld+json">'
            '{"@type": "Product", "offers": {"@type": "AggregateOffer",'
            ' "priceCurrency": "CAD", "offers": ['
            '{"@type": "Offer", "price": "120.00"},'
            '{"@type": "Offer", "price": "150.00"}]}}'
            "</script>"
        )
        found = PriceExtractor(_rules(strategies=(STRUCTURED,))).extract(html)
        self.assertEqual(
            sorted((p.amount, p.currency) for p in found),
            [(120.0, "CAD"), (150.0, "CAD")],
        )

    def test_item_list_of_bare_offers(self) -> None:
        """Offers listed directly under itemListElement are read."""
        html = (
            '<script type="application/ld+json">'
            '{"@type": "ItemList", "itemListElement": ['
            '{"@type": "Offer", "price": 99, "priceCurrency": "USD"},'
            '{"@type": "Offer", "price": 105, "priceCurrency": "USD"}]}'
            "</script>"
        )
        found = PriceExtractor(_rules(strategies=(STRUCTURED,))).extract(html)
        self.assertEqual(sorted(p.amount for p in found), [99.0, 105.0])

    def test_labeled_symbol_sets_currency(self) -> None:
        """A C$ label amount is tagged CAD."""
        extractor = PriceExtractor(_rules(strategies=(LABELED,)))
        found = extractor.extract(JSON_LD_PAGE)
        self.assertEqual(len(found), 1)
        self.assertEqual(found[0].kind, MSRP)
        self.assertEqual(found[0].currency, "CAD")
        self.assertEqual(found[0].amount, 250.0)

    def test_microdata_price(self) -> None:
        """itemprop=price is used when no meta or JSON-LD exists."""
        html = (
            '<div itemscope><meta itemprop="priceCurrency" content="EUR">'
            '<span itemprop="price" content="149.90">149,90 €</span></div>'
        )
        found = PriceExtractor(_rules(strategies=(STRUCTURED,))).extract(html)
        self.assertEqual([(p.amount, p.currency) for p in found], [(149.9, "EUR")])


class TestFallbackOrder(unittest.TestCase):
    """Lower-priority strategies only fill missing kinds."""

    def test_generic_skipped_when_structured_found_sale(self) -> None:
        """Generic numbers are ignored once structured data gave a sale."""
        extractor = PriceExtractor(
            _rules(strategies=(STRUCTURED, GENERIC), min_amount=1)
        )
        found = extractor.extract(SHOPIFY_PAGE)
        self.assertEqual([p.method for p in found], [STRUCTURED])

    def test_generic_used_without_structured_data(self) -> None:
        """Pages without metadata fall back to symbol matches."""
        html = "<li>$120.00</li><li>$95</li><li>$120.00</li>"
        extractor = PriceExtractor(
            _rules(strategies=(STRUCTURED, GENERIC), min_amount=50)
        )
        found = extractor.extract(html)
        self.assertEqual(sorted(p.amount for p in found), [95.0, 120.0])
        self.assertTrue(all(p.method == GENERIC for p in found))


class TestPlausibilityFilter(unittest.TestCase):
    """Generic matches outside the sane range are discarded."""

    def test_rejects_out_of_range_json_price(self) -> None:
        """Only 199.99 survives a [80, 350] range."""
        html = '{"items": [{"price":"5"}, {"price":"199.99"}]}'
        extractor = PriceExtractor(
            _rules(strategies=(GENERIC,), min_amount=80, max_amount=350)
        )
        found = extractor.extract(html)
        self.assertEqual([p.amount for p in found], [199.99])

    def test_filter_all_applies_to_structured(self) -> None:
        """filter_all extends the range check to structured data."""
        extractor = PriceExtractor(
            _rules(
                strategies=(STRUCTURED,),
                min_amount=300,
                filter_all=True,
            )
        )
        self.assertEqual(extractor.extract(SHOPIFY_PAGE), [])


class TestSourceRules(unittest.TestCase):
    """Rules loaded from extraction_rules.json."""

    def test_grailed_rules_have_range(self) -> None:
        """Grailed uses the 80-350 plausibility range."""
        rules = ExtractionRules.for_source("grailed", "USD")
        self.assertEqual(rules.min_amount, 80)
        self.assertEqual(rules.max_amount, 350)
        self.assertIn(GENERIC, rules.strategies)

    def test_unknown_source_gets_defaults(self) -> None:
        """A source without an entry uses every strategy."""
        rules = ExtractionRules.for_source("nowhere", "EUR")
        self.assertEqual(rules.strategies, (STRUCTURED, LABELED, GENERIC))
        self.assertEqual(rules.currency, "EUR")

    def test_ebay_listing_markup(self) -> None:
        """eBay rules pick listing prices and drop shipping noise."""
        html = (
            '<span class="s-item__price">$189.99</span>'
            '<span class="s-item__shipping">+$12.00 shipping</span>'
            '<span class="s-item__price">$210.50</span>'
        )
        rules = ExtractionRules.for_source("ebay", "USD")
        found = PriceExtractor(rules).extract(html)
        self.assertEqual(sorted(p.amount for p in found), [189.99, 210.5])


class TestMalformedInput(unittest.TestCase):
    """The extractor never raises on bad markup."""

    def test_empty_and_none(self) -> None:
        """Empty input yields no candidates."""
        extractor = PriceExtractor(_rules())
        self.assertEqual(extractor.extract(""), [])
        self.assertEqual(extractor.extract(None), [])

    def test_broken_markup_and_json_ld(self) -> None:
        """Unclosed tags and invalid JSON-LD are tolerated."""
        html = (
            '<html><script type="application/ld+json">{not json'
            "</script><div><p>no prices here"
        )
        self.assertEqual(PriceExtractor(_rules()).extract(html), [])


if __name__ == "__main__":
    unittest.main()
