"""Tests for the SKU table token helpers."""

from decimal import Decimal

from models import LineItem
from sku_fields import (
    FieldStage,
    FieldWalker,
    LineCursor,
    QuantitySplit,
    decompose_left,
    decompose_quantities,
    find_prices,
    is_color_name,
    is_small_qty,
    is_sku_line,
    is_upc,
    match_sku_start,
    normalize_price,
    price_value,
    read_packs_ordered,
    repair_price_text,
    split_digit_run,
    split_style_color,
    to_int,
)


class TestPrices:
    """Tests for price recognition and normalisation."""

    def test_one_digit_fraction_is_padded(self):
        assert normalize_price("$12.3") == "$12.30"
        assert normalize_price("$12.30") == "$12.30"

    def test_normalisation_is_idempotent(self):
        for price in ("$5.4", "$1,234.56", "$0.5"):
            assert normalize_price(normalize_price(price)) == normalize_price(price)

    def test_find_prices_in_order(self):
        assert find_prices("cost $5.4 retail $1,234.56") == ["$5.40", "$1,234.56"]

    def test_price_value(self):
        assert price_value("$1,234.50") == Decimal("1234.50")
        assert price_value("") is None
        assert price_value(None) is None

    def test_repair_glued_prices(self):
        assert repair_price_text("$5.00$7.00") == "$5.00 $7.00"
        assert repair_price_text("$5.004") == "$5.00 4"


class TestTokenShapes:
    """Tests for SKU, UPC and colour predicates."""

    def test_sku_line(self):
        assert is_sku_line("12345678")
        assert is_sku_line("123456789")
        assert not is_sku_line("1234567")
        assert not is_sku_line("1234567890")

    def test_upc(self):
        assert is_upc("UPC: 012345678905")
        assert is_upc("012345678905")
        assert not is_upc("12345678")

    def test_color_name_is_whole_word(self):
        assert is_color_name("Red")
        assert is_color_name("no color")
        assert not is_color_name("RedStyle")

    def test_match_sku_start_with_pack_letter(self):
        assert match_sku_start("B 123456789 STYLE Red") == ("B", "123456789", "STYLE Red")

    def test_match_sku_start_rejects_longer_digit_runs(self):
        assert match_sku_start("012345678905") is None


class TestLeftSide:
    """Tests for splitting the text between a SKU and its prices."""

    def test_split_style_color(self):
        assert split_style_color("AB123 Black 10X8 Mug") == ("AB123", "Black", "10X8 Mug")

    def test_split_without_color_takes_first_token(self):
        assert split_style_color("Widget 10X8") == ("Widget", "", "10X8")

    def test_dimension_size(self):
        side = decompose_left("Widget Red 10X8")
        assert side.style == "Widget"
        assert side.color == "Red"
        assert side.size_desc == "10X8"
        assert side.description == ""
        assert side.pack_qty is None

    def test_word_size_and_pack_qty(self):
        side = decompose_left("AB12 Blue NO SIZE 3 MUG SET")
        assert side.style == "AB12"
        assert side.color == "Blue"
        assert side.size_desc == "NO SIZE"
        assert side.pack_qty == 3
        assert side.description == "MUG SET"

    def test_dotted_pack_qty(self):
        side = decompose_left("STYLE Black .2.MUG SET", dotted=True)
        assert side.style == "STYLE"
        assert side.color == "Black"
        assert side.size_desc == "."
        assert side.pack_qty == 2
        assert side.description == "MUG SET"

    def test_dotted_inline_pack_qty(self):
        side = decompose_left("CUP Red .46PK MUG", dotted=True)
        assert side.size_desc == "."
        assert side.pack_qty == 4
        assert side.description == "6PK MUG"

    def test_generic_numeric_size_in_dotted_mode(self):
        side = decompose_left("GH78 Grey 12 PLATE", dotted=True)
        assert side.size_desc == "12"
        assert side.description == "PLATE"


class TestQuantities:
    """Tests for reading quantities after the prices."""

    def test_three_tokens(self):
        assert decompose_quantities("2 3 4") == QuantitySplit(2, 3, 4)

    def test_two_tokens(self):
        assert decompose_quantities("2 6") == QuantitySplit(pack_qty=2, qty=6)

    def test_glued_run_splits(self):
        assert decompose_quantities("2510") == QuantitySplit(2, 5, 10)

    def test_short_run_is_qty(self):
        assert decompose_quantities("236") == QuantitySplit(qty=236)

    def test_empty(self):
        assert decompose_quantities("") == QuantitySplit()

    def test_superscript_digits_are_not_quantities(self):
        assert not is_small_qty("²")
        assert to_int("³") is None
        assert decompose_quantities("2 ³ 4") == QuantitySplit(pack_qty=2, qty=4)

    def test_one_digit_prefix_tried_first(self):
        assert split_digit_run("2510") == QuantitySplit(2, 5, 10)

    def test_two_digit_prefix(self):
        assert split_digit_run("12560") == QuantitySplit(12, 5, 60)

    def test_implausible_run(self):
        assert split_digit_run("1234") is None
        assert split_digit_run("123") is None


class TestPacksOrdered:
    """Tests for the "Number Of Packs Ordered" label."""

    def test_full_label(self):
        lines = ["Number Of Packs Ordered: 3 Units: 2"]
        assert read_packs_ordered(lines, 0) == QuantitySplit(2, 3, 6)

    def test_units_only(self):
        lines = ["Number of packs ordered: Units: 4"]
        assert read_packs_ordered(lines, 0) == QuantitySplit(pack_qty=4)

    def test_units_on_next_line(self):
        lines = ["Number Of Packs Ordered: 5 Units:", "6"]
        assert read_packs_ordered(lines, 0) == QuantitySplit(6, 5, 30)

    def test_not_a_label(self):
        assert read_packs_ordered(["Ship Via UPS"], 0) is None


class TestLineCursor:
    """Tests for the line cursor."""

    def test_ahead_is_bounded(self):
        cursor = LineCursor(["a", "b", "c", "d"], 1)
        assert list(cursor.ahead(5)) == [(2, "c"), (3, "d")]
        assert list(cursor.ahead(1, start=0)) == [(1, "b")]

    def test_find(self):
        cursor = LineCursor(["x", "12345678", "y"])
        assert cursor.find(is_sku_line) == 1
        assert cursor.find(is_sku_line, start=2) == -1

    def test_line_at_out_of_range(self):
        cursor = LineCursor(["a"])
        assert cursor.line_at(5) == ""
        cursor.advance()
        assert cursor.exhausted
        assert cursor.current == ""


class TestFieldWalker:
    """Tests for positional field assignment."""

    def test_fields_in_arrival_order(self):
        item = LineItem(sku="12345678")
        walker = FieldWalker(item)
        for line in ("RedStyle", "Red", "10X8", "Widget", "Large"):
            walker.feed(line)
        assert item.mfg_style == "RedStyle"
        assert item.mfg_color == "Red"
        assert item.size_desc == "10X8"
        assert item.description == "Widget Large"
        assert walker.stage is FieldStage.DESCRIPTION

    def test_leading_color_skips_style(self):
        item = LineItem(sku="12345678")
        walker = FieldWalker(item)
        walker.feed("Red")
        assert item.mfg_style == ""
        assert item.mfg_color == "Red"
        assert walker.stage is FieldStage.SIZE
