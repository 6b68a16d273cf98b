"""
SKU table parsing for purchase-order PDFs.

Vendor PO templates lay the SKU table out in (at least) four different ways
once the PDF text has been flattened into lines. Each layout has its own
strategy class below; they run in a fixed order over the same lines and the
first strategy to recognise a SKU owns that row.
"""

import logging
import re
from typing import List, Optional, Sequence, Set, Tuple, Union

from models import LineItem
from sku_fields import (
    GLUED_QTY_RE,
    HAS_PRICE_RE,
    NO_OF_PACKS_RE,
    ORDERED_BARE_RE,
    PACKS_ANY_RE,
    PACKS_BARE_RE,
    PACKS_LABEL_RE,
    PAGE_RE,
    TOTAL_OR_PACK_RE,
    TOTAL_RE,
    UPC_DIGITS_RE,
    UPC_LINE_RE,
    FieldWalker,
    LineCursor,
    QuantitySplit,
    decompose_left,
    decompose_quantities,
    digits_outside_prices,
    find_prices,
    is_pack_letter,
    is_price,
    is_small_qty,
    is_sku_line,
    is_upc,
    match_sku_start,
    read_packs_ordered,
    repair_price_text,
    split_around_prices,
    split_digit_run,
    tail_half,
    upc_from,
)

logger = logging.getLogger(__name__)

# Lines (including the SKU line itself) searched for "MFG" and "STYLE"
HEADER_WINDOW = 6

UNITS_ARTIFACT_RE = re.compile(r"^Units\d*", re.IGNORECASE)
DIGIT_START_RE = re.compile(r"^[\d$.]")
STANDALONE_NUMBER_RE = re.compile(r"^\d{2,4}$")
NUMBER_LABEL_RE = re.compile(r"^number", re.IGNORECASE)


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in re.split(r"\r?\n", text)]


def find_header(lines: Sequence[str]) -> int:
    """
    Locate the SKU table header.

    The header is the first line mentioning SKU whose surrounding window
    also mentions MFG and STYLE (the column titles are often split over
    several lines). Returns -1 when there is no such line.
    """
    for index, line in enumerate(lines):
        if "SKU" not in line.upper():
            continue
        window = " ".join(lines[index:index + HEADER_WINDOW]).upper()
        if "MFG" in window and "STYLE" in window:
            return index
    return -1


def pull_data_line(cursor: LineCursor, after_sku: str) -> Tuple[str, int]:
    """
    Return the text describing the SKU at the cursor and the index of the
    line it came from.

    When nothing follows the SKU on its own line, the next line is used
    instead unless it is a UPC, price, SKU or label line.
    """
    if after_sku:
        return after_sku, cursor.pos
    following = cursor.line_at(cursor.pos + 1).strip()
    if (
        following
        and not UPC_LINE_RE.match(following)
        and not following.startswith("$")
        and not match_sku_start(following)
        and not NUMBER_LABEL_RE.match(following)
    ):
        return following, cursor.pos + 1
    return after_sku, cursor.pos


def assign_prices(
    prices: List[str], two_means_retail: bool = False
) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Map prices in row order onto (cost, comp, retail)."""
    cost = prices[0] if prices else None
    # Comp stays empty; the second price is only copied to retail
    if two_means_retail and len(prices) == 2:
        return cost, None, prices[1]
    comp = prices[1] if len(prices) > 1 else None
    retail = prices[2] if len(prices) > 2 else None
    return cost, comp, retail


class SkuStrategy:
    """Base class for the SKU table layouts."""

    name = ""

    @staticmethod
    def applies(lines: Sequence[str], header_idx: int, items: List[LineItem]) -> bool:
        return True

    @staticmethod
    def try_parse(
        lines: Sequence[str], header_idx: int, seen_skus: Set[str]
    ) -> List[LineItem]:
        raise NotImplementedError


class StackedFieldsParser(SkuStrategy):
    """
    Every field on its own line below the SKU.

    Format:
        12345678
        STYLE
        COLOUR
        SIZE
        DESCRIPTION (may continue over several lines)
        UPC: 012345678905
        $COST / $COMP / $RETAIL
        PACK QTY / TOTAL PACKS / QTY
    """

    name = "stacked"

    @staticmethod
    def applies(lines: Sequence[str], header_idx: int, items: List[LineItem]) -> bool:
        return LineCursor(lines, header_idx + 1).find(is_sku_line) != -1

    @staticmethod
    def try_parse(
        lines: Sequence[str], header_idx: int, seen_skus: Set[str]
    ) -> List[LineItem]:
        items = []
        cursor = LineCursor(lines, header_idx + 1)

        while True:
            # Pack letters and label residue between blocks are skipped here
            start = cursor.find(is_sku_line)
            if start == -1:
                break
            cursor.seek(start + 1)
            item = StackedFieldsParser._read_block(cursor, lines[start])
            # A bare SKU with no price below it belongs to another layout
            if item and item.sku not in seen_skus:
                items.append(item)

        return items

    @staticmethod
    def _read_block(cursor: LineCursor, sku: str) -> Optional[LineItem]:
        item = LineItem(sku=sku)
        walker = FieldWalker(item)
        prices: List[str] = []
        quantities: List[int] = []

        while not cursor.exhausted:
            line = cursor.current.strip()
            if not line:
                cursor.advance()
                continue

            if (
                is_sku_line(line)
                or PACKS_BARE_RE.match(line)
                or TOTAL_RE.match(line)
                or PAGE_RE.match(line)
            ):
                break
            if PACKS_LABEL_RE.match(line):
                cursor.advance()
                break
            if is_pack_letter(line) and is_sku_line(cursor.line_at(cursor.pos + 1).strip()):
                break

            if is_upc(line):
                item.upc = item.upc or upc_from(line)
            elif is_price(line):
                if len(prices) < 3:
                    prices.append(line)
            elif prices and is_small_qty(line):
                if len(quantities) < 3:
                    quantities.append(int(line))
            elif not prices:
                walker.feed(line)
            cursor.advance()

        if not prices:
            return None
        item.cost, item.comp, item.retail = assign_prices(prices)
        if quantities:
            item.pack_qty = quantities[0]
            item.qty = quantities[min(len(quantities), 3) - 1]
        return item


class MultiLineBlockParser(SkuStrategy):
    """
    SKU, style, colour, size and description on one line, with the prices
    either on the same line or on the lines that follow.

    Inline format:
        A 12345678 STYLE Black 10X8 2 MUG SET $5.00 $7.00 $10.00 2 3 6
    Deferred format:
        12345678 STYLE Black .2.MUG SET
        UPC: 012345678905
        $5.00$7.00$10.0
        0236
        Number Of Packs Ordered: 3 Units: 2
    """

    name = "multi_line_block"

    LABEL_LOOKAHEAD = 3
    DEFERRED_WINDOW = 9

    @staticmethod
    def applies(lines: Sequence[str], header_idx: int, items: List[LineItem]) -> bool:
        return not items

    @staticmethod
    def try_parse(
        lines: Sequence[str], header_idx: int, seen_skus: Set[str]
    ) -> List[LineItem]:
        items = []
        cursor = LineCursor(lines, header_idx + 1)

        while not cursor.exhausted:
            line = cursor.current
            if TOTAL_RE.match(line) or PACKS_BARE_RE.match(line):
                break

            parts = match_sku_start(line) if line else None
            if parts and parts[1] not in seen_skus:
                _, sku, remainder = parts
                remainder = " ".join(remainder.split())
                if HAS_PRICE_RE.search(remainder) and find_prices(remainder):
                    item = MultiLineBlockParser._parse_inline(cursor, sku, remainder)
                else:
                    item = MultiLineBlockParser._parse_deferred(cursor, sku, remainder)
                if item:
                    items.append(item)
            cursor.advance()

        return items

    @staticmethod
    def _find_label(cursor: LineCursor) -> Optional[QuantitySplit]:
        for index, line in cursor.ahead(MultiLineBlockParser.LABEL_LOOKAHEAD):
            if match_sku_start(line) or TOTAL_RE.match(line):
                break
            label = read_packs_ordered(cursor.lines, index)
            if label is not None:
                return label
        return None

    @staticmethod
    def _parse_inline(cursor: LineCursor, sku: str, remainder: str) -> LineItem:
        prices = find_prices(remainder)
        left, right = split_around_prices(remainder)
        side = decompose_left(left)
        quantities = decompose_quantities(right)
        label = MultiLineBlockParser._find_label(cursor) or QuantitySplit()

        cost, comp, retail = assign_prices(prices)
        qty = label.qty if label.qty is not None else quantities.qty
        if qty is None:
            qty = quantities.total_packs
        return LineItem(
            sku=sku,
            mfg_style=side.style,
            mfg_color=side.color,
            size_desc=side.size_desc,
            description=side.description,
            cost=cost,
            comp=comp,
            retail=retail,
            pack_qty=label.pack_qty or side.pack_qty or quantities.pack_qty,
            qty=qty,
        )

    @staticmethod
    def _parse_deferred(
        cursor: LineCursor, sku: str, remainder: str
    ) -> Optional[LineItem]:
        remainder, data_idx = pull_data_line(cursor, remainder)
        side = decompose_left(remainder, dotted=True)
        description = side.description
        upc = None
        price_text = ""
        label = None

        for index, line in LineCursor(cursor.lines, data_idx).ahead(
            MultiLineBlockParser.DEFERRED_WINDOW
        ):
            if match_sku_start(line) or TOTAL_RE.match(line):
                break
            label = read_packs_ordered(cursor.lines, index)
            if label is not None:
                break

            if UPC_LINE_RE.match(line) or UPC_DIGITS_RE.match(line):
                upc = upc_from(line)
                continue
            if HAS_PRICE_RE.search(line):
                price_text += " " + line
                continue
            if price_text and DIGIT_START_RE.match(line):
                glued = GLUED_QTY_RE.search(price_text)
                standalone = STANDALONE_NUMBER_RE.match(line)
                if not glued and not standalone:
                    # Tail of a price that wrapped onto the next line
                    price_text += line
                    continue
                if glued and standalone:
                    break
            if not upc and not price_text and line:
                description = f"{description} {line}".strip()

        price_text = repair_price_text(price_text.strip())
        prices = find_prices(price_text)
        if not prices:
            return None

        pack_qty, qty = None, None
        digits = digits_outside_prices(price_text)
        split = split_digit_run(digits)
        if split:
            pack_qty, qty = split.pack_qty, split.qty
        elif len(digits) >= 4:
            qty = int(tail_half(digits))
        elif digits:
            qty = int(digits)

        label = label or QuantitySplit()
        cost, comp, retail = assign_prices(prices)
        return LineItem(
            sku=sku,
            mfg_style=side.style,
            mfg_color=side.color,
            size_desc=side.size_desc,
            description=description,
            cost=cost,
            comp=comp,
            retail=retail,
            pack_qty=side.pack_qty or label.pack_qty or pack_qty,
            qty=label.qty if label.qty is not None else qty,
            upc=upc,
        )


class SingleLineParser(SkuStrategy):
    """
    One complete row per line.

    Format: [PACK] SKU STYLE COLOUR SIZE [PACK QTY] DESC $COST [$COMP] $RETAIL PACK PACKS QTY
    Example: "12345678 Widget Red 10X8 $5.00 $7.00 2 3 4"
    """

    name = "single_line"

    @staticmethod
    def try_parse(
        lines: Sequence[str], header_idx: int, seen_skus: Set[str]
    ) -> List[LineItem]:
        items = []

        for line in lines[header_idx + 1:]:
            if not line:
                continue
            if (
                TOTAL_RE.match(line)
                or PACKS_BARE_RE.match(line)
                or ORDERED_BARE_RE.match(line)
                or NO_OF_PACKS_RE.match(line)
            ):
                break

            parts = match_sku_start(line)
            if not parts or parts[1] in seen_skus:
                continue
            _, sku, after_sku = parts

            # Without a price the row is too likely to be noise
            prices = find_prices(after_sku)
            if not prices:
                continue

            left, right = split_around_prices(after_sku)
            side = decompose_left(left)
            quantities = decompose_quantities(right)
            cost, comp, retail = assign_prices(prices, two_means_retail=True)
            qty = quantities.qty if quantities.qty is not None else quantities.total_packs

            items.append(
                LineItem(
                    sku=sku,
                    mfg_style=side.style,
                    mfg_color=side.color,
                    size_desc=side.size_desc,
                    description=side.description,
                    cost=cost,
                    comp=comp,
                    retail=retail,
                    pack_qty=side.pack_qty or quantities.pack_qty,
                    qty=qty,
                )
            )

        return items


class DeferredPriceParser(SkuStrategy):
    """
    SKU near the top of a block with the prices several lines further down.

    Format:
        12345678
        STYLE Black .2.MUG SET
        BLUE GLAZE
        UPC: 012345678905
        $5.00 $10.00
        2
        Number Of Packs Ordered: 3 Units: 2
    """

    name = "deferred_price"

    DESCRIPTION_WINDOW = 5
    PRICE_WINDOW = 8

    @staticmethod
    def try_parse(
        lines: Sequence[str], header_idx: int, seen_skus: Set[str]
    ) -> List[LineItem]:
        items = []
        cursor = LineCursor(lines, header_idx + 1)

        while not cursor.exhausted:
            parts = match_sku_start(cursor.current) if cursor.current else None
            if parts and parts[1] not in seen_skus and not HAS_PRICE_RE.search(parts[2]):
                parsed = DeferredPriceParser._parse_block(cursor, parts[1], parts[2])
                if parsed:
                    item, price_idx = parsed
                    items.append(item)
                    cursor.seek(price_idx)
            cursor.advance()

        return items

    @staticmethod
    def _is_block_end(line: str) -> bool:
        return bool(
            PACKS_BARE_RE.match(line)
            or ORDERED_BARE_RE.match(line)
            or NO_OF_PACKS_RE.match(line)
            or TOTAL_OR_PACK_RE.match(line)
            or match_sku_start(line)
        )

    @staticmethod
    def _parse_block(
        cursor: LineCursor, sku: str, after_sku: str
    ) -> Optional[Tuple[LineItem, int]]:
        after_sku, data_idx = pull_data_line(cursor, after_sku)
        side = decompose_left(after_sku, dotted=True)
        desc_parts = [side.description] if side.description else []
        upc = None

        price_idx = -1
        for index, line in LineCursor(cursor.lines, data_idx).ahead(
            DeferredPriceParser.DESCRIPTION_WINDOW
        ):
            line = line.strip()
            if not line:
                continue
            if DeferredPriceParser._is_block_end(line):
                break
            if HAS_PRICE_RE.search(line):
                price_idx = index
                break
            if is_upc(line):
                upc = upc or upc_from(line)
                continue
            desc_parts.append(line)

        if price_idx == -1:
            return None

        price_text, label, price_upc = DeferredPriceParser._collect_prices(cursor.lines, price_idx)
        price_text = repair_price_text(price_text)
        prices = find_prices(price_text)

        pack_qty, qty = None, None
        if label and label.qty is not None:
            qty = label.qty
        else:
            digits = digits_outside_prices(price_text)
            split = split_digit_run(digits)
            if split:
                pack_qty, qty = split.pack_qty, split.qty
            elif len(digits) >= 4:
                pack_qty, qty = int(digits[0]), int(tail_half(digits[1:]))
            elif digits:
                qty = int(digits)

        cost, comp, retail = assign_prices(prices, two_means_retail=True)
        item = LineItem(
            sku=sku,
            mfg_style=side.style,
            mfg_color=side.color,
            size_desc=side.size_desc,
            description=" ".join(desc_parts).strip(),
            cost=cost,
            comp=comp,
            retail=retail,
            pack_qty=side.pack_qty or (label.pack_qty if label else None) or pack_qty,
            qty=qty,
            upc=upc or price_upc,
        )
        return item, price_idx

    @staticmethod
    def _collect_prices(
        lines: Sequence[str], price_idx: int
    ) -> Tuple[str, Optional[QuantitySplit], Optional[str]]:
        """
        Gather the price line and any continuation lines after it.

        Returns the joined price text, the packs-ordered label if one closed
        the block, and a UPC seen among the price lines.
        """
        price_text = ""
        label = None
        upc = None
        found_price = False

        for index, line in LineCursor(lines, price_idx).ahead(
            DeferredPriceParser.PRICE_WINDOW, start=0
        ):
            line = line.strip()
            if not line:
                continue
            if PACKS_ANY_RE.match(line):
                label = read_packs_ordered(lines, index)
                break
            if TOTAL_OR_PACK_RE.match(line) or match_sku_start(line):
                break
            if is_upc(line):
                upc = upc or upc_from(line)
                continue

            complete = GLUED_QTY_RE.search(price_text)
            if HAS_PRICE_RE.search(line):
                if complete:
                    break
                found_price = True
                price_text += " " + line
            elif found_price and line.isdecimal():
                if len(line) == 1 and not complete:
                    price_text += line
                elif len(line) >= 4 and not complete:
                    price_text += " " + line
            else:
                break

        return price_text.strip(), label, upc


# Priority order; earlier strategies own the SKUs they find
SKU_STRATEGIES = [
    StackedFieldsParser,
    MultiLineBlockParser,
    SingleLineParser,
    DeferredPriceParser,
]


def filter_line_items(items: List[LineItem]) -> List[LineItem]:
    """
    Drop rows that are not real line items: styles that are bare numbers or
    "Units<N>" label residue, and rows with neither a cost nor a quantity.
    """
    kept = []
    for item in items:
        style = item.mfg_style.strip()
        if UNITS_ARTIFACT_RE.match(style) or style.isdecimal():
            continue
        if not item.cost and item.qty is None:
            continue
        kept.append(item)
    return kept


def parse_sku_table(source: Union[str, Sequence[str]]) -> List[LineItem]:
    """
    Extract line items from a PO's text.

    ``source`` is either the full text or its lines in reading order.
    Never raises on odd input; an unrecognised layout gives an empty list.
    """
    if isinstance(source, str):
        lines = split_lines(source)
    else:
        lines = [line.strip() for line in source]

    header_idx = find_header(lines)
    if header_idx == -1:
        logger.debug("No SKU table header found")
        return []

    items: List[LineItem] = []
    seen_skus: Set[str] = set()

    for strategy in SKU_STRATEGIES:
        if not strategy.applies(lines, header_idx, items):
            continue
        added = 0
        for item in strategy.try_parse(lines, header_idx, seen_skus):
            if item.sku in seen_skus:
                continue
            seen_skus.add(item.sku)
            items.append(item)
            added += 1
        logger.debug("%s strategy added %d item(s)", strategy.name, added)

    return filter_line_items(items)
