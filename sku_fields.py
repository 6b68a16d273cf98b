"""
Token-shape helpers shared by the SKU table strategies.

PO tables come out of the text layout step with no reliable column
boundaries, so every field is recognised by what it looks like: prices are
dollar amounts, SKUs are 8-9 digit runs, sizes are dimensions or phrases
ending in SIZE, and styles are split from colours with a fixed vocabulary.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from models import LineItem

# Colour names used to split "STYLE COLOUR" text; order matters for ties
COLOR_NAMES = (
    "White", "Black", "Red", "Blue", "Green", "Yellow", "Grey", "Gray",
    "Pink", "Brown", "Purple", "Navy", "Silver", "Gold", "Orange", "Multi",
    "Ivory", "Cream", "Beige", "Khaki", "Tan", "Bone", "Natural", "Royal",
    "Teal", "Turquoise", "Maroon", "Olive", "Charcoal", "Burgundy", "No Color",
)
COLOR_RE = re.compile("(" + "|".join(COLOR_NAMES) + ")", re.IGNORECASE)

SKU_LINE_RE = re.compile(r"^\d{8,9}$")
SKU_START_RE = re.compile(r"^([A-Z]?)\s*(\d{8,9})(?!\d)(.*)$", re.DOTALL)
PACK_LETTER_RE = re.compile(r"^[A-Z]$")
UPC_LINE_RE = re.compile(r"^upc:", re.IGNORECASE)
UPC_DIGITS_RE = re.compile(r"^\d{12,14}$")
UPC_IN_TEXT_RE = re.compile(r"(\d{12,14})")
PRICE_LINE_RE = re.compile(r"^\$[\d,]+\.\d{2}$")
PRICE_RE = re.compile(r"\$[\d,]+\.\d{1,2}")
HAS_PRICE_RE = re.compile(r"\$\d")
# A complete price immediately followed by more digits, e.g. "$5.0012"
GLUED_QTY_RE = re.compile(r"\$[\d,]+\.\d{2}\d+")
GLUED_PRICES_RE = re.compile(r"(\$[\d,]+\.\d{2})(\$)")
PRICE_THEN_DIGIT_RE = re.compile(r"(\$[\d,]+\.\d{2})(\d)")

TOTAL_RE = re.compile(r"^total\s+(cost|qty)", re.IGNORECASE)
TOTAL_OR_PACK_RE = re.compile(r"^total\s+(cost|qty|pack)", re.IGNORECASE)
PACKS_LABEL_RE = re.compile(r"^number\s+of\s+packs\s+ordered:", re.IGNORECASE)
PACKS_BARE_RE = re.compile(r"^number\s+of\s+packs\s*$", re.IGNORECASE)
PACKS_ANY_RE = re.compile(r"^number\s+of\s+packs", re.IGNORECASE)
ORDERED_BARE_RE = re.compile(r"^ordered:\s*$", re.IGNORECASE)
NO_OF_PACKS_RE = re.compile(r"^no\.\s+of\s+\w+\s+packs\s+ordered:\s*$", re.IGNORECASE)
PAGE_RE = re.compile(r"^page", re.IGNORECASE)

PACKS_FULL_RE = re.compile(
    r"number\s+of\s+packs\s+ordered:\s*(\d+)\s*units:\s*(\d+)", re.IGNORECASE
)
PACKS_UNITS_RE = re.compile(
    r"number\s+of\s+packs\s+ordered:\s*\d*\s*units:\s*(\d+)", re.IGNORECASE
)
UNITS_TRAILING_RE = re.compile(r"units:\s*$", re.IGNORECASE)
ORDERED_COUNT_RE = re.compile(r"ordered:\s*(\d+)", re.IGNORECASE)
UNITS_COUNT_RE = re.compile(r"units:\s*(\d+)", re.IGNORECASE)
SHORT_NUMBER_RE = re.compile(r"^\d{1,2}$")

DOTTED_PACK_RE = re.compile(r"^\.(\d{1,2})\.(.*)$")
TEXT_SIZE_PACK_RE = re.compile(r"^([A-Z\s]+)(\d{1,2})\.(.*)$", re.IGNORECASE)
DOTTED_INLINE_PACK_RE = re.compile(r"^\.(\d)(\d[A-Z].*)$", re.IGNORECASE)
DOTTED_DIMENSION_RE = re.compile(r"^\.\d+X\d+", re.IGNORECASE)
SIZE_RE = re.compile(r"^(\d+X\d+X\d+|\d+X\d+|\.)", re.IGNORECASE)
SIZE_WORD_RE = re.compile(r"^([A-Z\s]*SIZE)(?:\s+|$)", re.IGNORECASE)
GENERIC_SIZE_RE = re.compile(r"^\.?(\d+(?:\.\d+)?[A-Z]?)\s*", re.IGNORECASE)
LEADING_PACK_RE = re.compile(r"^(\d+\.?\d*)\s+")
DESCRIPTION_LEAD_RE = re.compile(r"^[.\-\s]+")

# (prefix length, largest believable pack size) tried in this order
PACK_PREFIXES = ((1, 12), (2, 24))


def is_sku_line(text: str) -> bool:
    return bool(SKU_LINE_RE.match(text))


def is_pack_letter(text: str) -> bool:
    return bool(PACK_LETTER_RE.match(text))


def is_upc(text: str) -> bool:
    return bool(UPC_LINE_RE.match(text) or UPC_DIGITS_RE.match(text))


def is_price(text: str) -> bool:
    return bool(PRICE_LINE_RE.match(text))


def is_small_qty(text: str) -> bool:
    return text.isdecimal() and 1 <= int(text) <= 9999


def is_color_name(text: str) -> bool:
    match = COLOR_RE.fullmatch(text.strip())
    return match is not None


def match_sku_start(text: str) -> Optional[Tuple[str, str, str]]:
    """
    Split a row that begins with an optional pack letter and a SKU.

    Example: "B 123456789 STYLE Red" -> ("B", "123456789", "STYLE Red")
    """
    match = SKU_START_RE.match(text)
    if not match:
        return None
    return match.group(1), match.group(2), match.group(3).strip()


def upc_from(text: str) -> Optional[str]:
    match = UPC_IN_TEXT_RE.search(text)
    return match.group(1) if match else None


def normalize_price(price: str) -> str:
    """
    Pad a one-digit fraction to two digits.

    Example: "$5.4" -> "$5.40", "$12.30" -> "$12.30"
    """
    whole, dot, cents = price.partition(".")
    if dot and len(cents) == 1:
        cents += "0"
    return f"{whole}{dot}{cents}"


def find_prices(text: str) -> List[str]:
    """Return every $ amount in ``text`` in order, normalised."""
    return [normalize_price(p) for p in PRICE_RE.findall(text)]


def price_value(price: Optional[str]) -> Optional[Decimal]:
    """Numeric value of a "$1,234.50" style price, or None."""
    if not price:
        return None
    try:
        return Decimal(price.replace("$", "").replace(",", "").strip())
    except InvalidOperation:
        return None


def strip_prices(text: str) -> str:
    """Replace each $ amount (first occurrence per match) with a space."""
    for price in PRICE_RE.findall(text):
        text = text.replace(price, " ", 1)
    return text


def repair_price_text(text: str) -> str:
    """
    Separate prices that the text layout glued to their neighbours.

    Example: "$5.00$7.00" -> "$5.00 $7.00", "$5.004" -> "$5.00 4"
    """
    text = GLUED_PRICES_RE.sub(r"\1 \2", text)
    return PRICE_THEN_DIGIT_RE.sub(r"\1 \2", text)


def digits_outside_prices(text: str) -> str:
    return re.sub(r"\D", "", strip_prices(text))


def split_around_prices(text: str) -> Tuple[str, str]:
    """Return the text left of the first price and right of the last one."""
    matches = list(PRICE_RE.finditer(text))
    if not matches:
        return text.strip(), ""
    return text[: matches[0].start()].strip(), text[matches[-1].end():].strip()


def to_int(token: Optional[str]) -> Optional[int]:
    if token is None:
        return None
    token = token.replace(",", "").strip()
    return int(token) if token.isdecimal() else None


def split_style_color(text: str) -> Tuple[str, str, str]:
    """
    Split leading text into (style, colour, rest).

    The leftmost colour word divides style from the rest; without one the
    first token is the style.
    Example: "AB123 Black 10X8 Mug" -> ("AB123", "Black", "10X8 Mug")
    """
    text = text.strip()
    match = COLOR_RE.search(text)
    if match:
        return text[: match.start()].strip(), match.group(1), text[match.end():].strip()
    tokens = text.split()
    style = tokens[0] if tokens else ""
    return style, "", text[len(style):].strip()


@dataclass
class LeftSide:
    style: str = ""
    color: str = ""
    size_desc: str = ""
    description: str = ""
    pack_qty: Optional[int] = None


def decompose_left(text: str, dotted: bool = False) -> LeftSide:
    """
    Break the text between a SKU and its prices into style, colour, size,
    pack quantity and description.

    ``dotted`` turns on the compact size/pack forms used by the multi-line
    layouts, such as ".2.WIDGET" (size ".", pack 2) or "NO SIZE 3.WIDGET".
    """
    style, color, working = split_style_color(text)
    result = LeftSide(style=style, color=color)

    sized = False
    if dotted:
        match = DOTTED_PACK_RE.match(working)
        text_size = TEXT_SIZE_PACK_RE.match(working)
        inline = DOTTED_INLINE_PACK_RE.match(working)
        if match:
            result.size_desc, result.pack_qty = ".", int(match.group(1))
            working, sized = match.group(2).strip(), True
        elif text_size:
            result.size_desc = text_size.group(1).strip()
            result.pack_qty = int(text_size.group(2))
            working, sized = text_size.group(3).strip(), True
        elif inline and not DOTTED_DIMENSION_RE.match(working):
            result.size_desc, result.pack_qty = ".", int(inline.group(1))
            working, sized = inline.group(2).strip(), True

    if not sized:
        match = SIZE_RE.match(working)
        word = SIZE_WORD_RE.match(working)
        generic = GENERIC_SIZE_RE.match(working) if dotted else None
        if match:
            result.size_desc = match.group(1)
            working = working[match.end():].strip()
        elif word:
            result.size_desc = word.group(1).strip()
            working = working[word.end():].strip()
        elif generic:
            result.size_desc = generic.group(1)
            working = working[generic.end():].strip()

    if result.pack_qty is None:
        match = LEADING_PACK_RE.match(working)
        if match:
            number = Decimal(match.group(1).rstrip("."))
            if 1 <= number <= 99:
                result.pack_qty = int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
                working = working[match.end():].strip()

    result.description = DESCRIPTION_LEAD_RE.sub("", working).strip()
    return result


@dataclass
class QuantitySplit:
    pack_qty: Optional[int] = None
    total_packs: Optional[int] = None
    qty: Optional[int] = None


def split_digit_run(digits: str) -> Optional[QuantitySplit]:
    """
    Split a glued run like "2510" into pack qty, total packs and qty.

    A 1-digit pack prefix is tried before a 2-digit one; the remaining
    digits are halved into packs and units, and the first split where
    packs * pack qty == units is accepted.
    Example: "2510" -> pack 2, packs 5, qty 10
    """
    if len(digits) < 4:
        return None
    for prefix_len, largest in PACK_PREFIXES:
        rest = digits[prefix_len:]
        if len(rest) < 2:
            continue
        half = len(rest) // 2
        pack_qty, packs, units = int(digits[:prefix_len]), int(rest[:half]), int(rest[half:])
        if 0 < pack_qty <= largest and packs > 0 and packs * pack_qty == units:
            return QuantitySplit(pack_qty=pack_qty, total_packs=packs, qty=units)
    return None


def tail_half(digits: str) -> str:
    return digits[len(digits) // 2:]


def decompose_quantities(text: str) -> QuantitySplit:
    """
    Read pack qty / total packs / qty from the text after the last price.

    Three tokens map positionally; two are pack qty and qty; a single token
    is the qty unless it is a glued run of 4+ digits that splits cleanly.
    """
    tokens = (text or "").split()
    if len(tokens) >= 3:
        return QuantitySplit(to_int(tokens[0]), to_int(tokens[1]), to_int(tokens[2]))
    if len(tokens) == 2:
        return QuantitySplit(pack_qty=to_int(tokens[0]), qty=to_int(tokens[1]))
    if len(tokens) == 1:
        digits = re.sub(r"\D", "", tokens[0])
        split = split_digit_run(digits)
        if split:
            return split
        return QuantitySplit(qty=to_int(digits))
    return QuantitySplit()


def read_packs_ordered(lines: Sequence[str], index: int) -> Optional[QuantitySplit]:
    """
    Parse a "Number Of Packs Ordered: N Units: M" label at ``lines[index]``.

    Returns None when the line is not such a label. A label whose numbers
    could not be read still returns an (empty) QuantitySplit so callers can
    stop scanning at it. The units value may sit alone on the next line.
    """
    line = lines[index]
    match = PACKS_FULL_RE.search(line)
    if match:
        packs, units = int(match.group(1)), int(match.group(2))
        return QuantitySplit(pack_qty=units, total_packs=packs, qty=packs * units)
    match = PACKS_UNITS_RE.search(line)
    if match:
        return QuantitySplit(pack_qty=int(match.group(1)))
    if UNITS_TRAILING_RE.search(line):
        following = lines[index + 1].strip() if index + 1 < len(lines) else ""
        if not SHORT_NUMBER_RE.match(following):
            return QuantitySplit()
        units = int(following)
        match = ORDERED_COUNT_RE.search(line)
        if match:
            packs = int(match.group(1))
            return QuantitySplit(pack_qty=units, total_packs=packs, qty=packs * units)
        return QuantitySplit(pack_qty=units)
    if PACKS_ANY_RE.match(line):
        units_match = UNITS_COUNT_RE.search(line)
        packs_match = ORDERED_COUNT_RE.search(line)
        if units_match and packs_match:
            units, packs = int(units_match.group(1)), int(packs_match.group(1))
            return QuantitySplit(pack_qty=units, total_packs=packs, qty=packs * units)
        if units_match:
            return QuantitySplit(pack_qty=int(units_match.group(1)))
        return QuantitySplit()
    return None


class LineCursor:
    """A position over a document's lines with bounded look-ahead."""

    def __init__(self, lines: Sequence[str], pos: int = 0):
        self.lines = lines
        self.pos = pos

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def exhausted(self) -> bool:
        return self.pos >= len(self.lines)

    @property
    def current(self) -> str:
        return "" if self.exhausted else self.lines[self.pos]

    def advance(self, step: int = 1) -> None:
        self.pos += step

    def seek(self, pos: int) -> None:
        self.pos = pos

    def line_at(self, index: int) -> str:
        if 0 <= index < len(self.lines):
            return self.lines[index]
        return ""

    def ahead(self, count: int, start: int = 1) -> Iterator[Tuple[int, str]]:
        """Yield (index, line) for at most ``count`` lines from pos + start."""
        first = self.pos + start
        for index in range(first, min(first + count, len(self.lines))):
            yield index, self.lines[index]

    def find(self, predicate: Callable[[str], bool], start: Optional[int] = None) -> int:
        """Index of the first line at or after ``start`` matching, else -1."""
        begin = self.pos if start is None else start
        for index in range(begin, len(self.lines)):
            if predicate(self.lines[index]):
                return index
        return -1


class FieldStage(Enum):
    STYLE = 1
    COLOR = 2
    SIZE = 3
    DESCRIPTION = 4


class FieldWalker:
    """
    Assigns unlabelled lines to style, colour, size and then description
    in arrival order.

    A bare colour word arriving while the style is still expected is taken
    as the colour, which moves the walker straight on to size.
    """

    def __init__(self, item: LineItem):
        self.item = item
        self.stage = FieldStage.STYLE

    def feed(self, text: str) -> None:
        if self.stage is FieldStage.STYLE:
            if is_color_name(text):
                self.item.mfg_color = text
                self.stage = FieldStage.SIZE
            else:
                self.item.mfg_style = text
                self.stage = FieldStage.COLOR
        elif self.stage is FieldStage.COLOR:
            self.item.mfg_color = text
            self.stage = FieldStage.SIZE
        elif self.stage is FieldStage.SIZE:
            self.item.size_desc = text
            self.stage = FieldStage.DESCRIPTION
        elif self.item.description:
            self.item.description += " " + text
        else:
            self.item.description = text
