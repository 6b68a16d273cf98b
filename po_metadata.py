"""
Header fields of a purchase order: vendor, PO and department numbers,
dates, store and ship-to state.
"""

import re
from datetime import date
from typing import List, Optional

from models import PoMetadata

DATE_RX = r"(\d{1,2}/\d{1,2}/\d{4})"

# "DEPT. NUMBER:ORDER NUMBER:7761665367" - both values run together
DEPT_ORDER_GLUED_RE = re.compile(
    r"DEPT\.\s*NUMBER:\s*ORDER\s*NUMBER:\s*(\d{3,4}?)(\d{6,7})", re.IGNORECASE
)
DEPT_ORDER_SPACED_RE = re.compile(
    r"DEPT\.\s*NUMBER:\s*(\d+)\s*ORDER\s*NUMBER:\s*(\d+)", re.IGNORECASE
)
DEPT_FALLBACK_RE = re.compile(r"DEPT\.?\s*(?:NUMBER|#)?:?\s*(\d{3,4})", re.IGNORECASE)
ORDER_FALLBACK_RE = re.compile(r"ORDER\s*NUMBER:?\s*(\d{6,7})", re.IGNORECASE)
PO_FALLBACK_RE = re.compile(r"PO\s*#?\s*:?\s*(\d{6,7})", re.IGNORECASE)

CANCEL_DATE_RE = re.compile(rf"Cancel\s*Date:?\s*{DATE_RX}", re.IGNORECASE)
SHIP_DATE_RE = re.compile(rf"Ship\s*Date:?\s*{DATE_RX}", re.IGNORECASE)
ORDER_DATE_RE = re.compile(rf"Order\s*Date:?\s*{DATE_RX}", re.IGNORECASE)
CANCEL_LABEL_RE = re.compile(r"Cancel\s*Date", re.IGNORECASE)
DATE_LINE_RE = re.compile(rf"^{DATE_RX}$")

STORE_PATTERNS = [
    re.compile(r"Store:?\s*(\d+)", re.IGNORECASE),
    re.compile(r"Mark\s*For:?\s*(\d+)", re.IGNORECASE),
    re.compile(r"DIST\s*CENTER\s*#?\s*(\d+)", re.IGNORECASE),
    re.compile(r"Support\s*Center\s*#?\s*(\d+)", re.IGNORECASE),
]
VENDOR_PATTERNS = [
    re.compile(r"([\w \t]+)\s+Outlet\s+Stores", re.IGNORECASE),
    re.compile(r"([\w \t]+)\s+DIST\s*CENTER", re.IGNORECASE),
]
STATE_RE = re.compile(r",\s*([A-Z]{2})\s+\d{5}")

# Lines after "Cancel Date" that may hold the ship and order dates
TRAILING_DATE_LINES = 4


def _split_glued_numbers(dept: str, po: str):
    """
    Re-split a dept/PO pair that was read as one digit run.

    A 9 or 10 digit run is a 3 digit dept plus the PO; 11 digits means a
    4 digit dept.
    """
    full = dept + po
    if len(full) in (9, 10):
        return full[:3], full[3:]
    if len(full) == 11:
        return full[:4], full[4:]
    return dept, po


def _dept_and_po(lines: List[str], text: str, metadata: PoMetadata) -> None:
    for line in lines:
        match = DEPT_ORDER_GLUED_RE.search(line)
        if match:
            dept, po = _split_glued_numbers(match.group(1), match.group(2))
            metadata.dept, metadata.po_number = int(dept), po
            return
        match = DEPT_ORDER_SPACED_RE.search(line)
        if match:
            metadata.dept, metadata.po_number = int(match.group(1)), match.group(2)
            return

    # Labels on their own lines, values on the lines below them
    dept_label = order_label = False
    for raw in lines:
        line = raw.strip()
        if "DEPT. NUMBER:" in line:
            dept_label = True
        elif "ORDER NUMBER:" in line and dept_label:
            order_label = True
        elif dept_label and order_label and line.isdecimal():
            if metadata.dept is None:
                metadata.dept = int(line)
            else:
                metadata.po_number = line
                return

    dept_match = DEPT_FALLBACK_RE.search(text)
    po_match = ORDER_FALLBACK_RE.search(text) or PO_FALLBACK_RE.search(text)
    if dept_match:
        metadata.dept = int(dept_match.group(1))
    if po_match:
        metadata.po_number = po_match.group(1)


def _dates(lines: List[str], text: str, metadata: PoMetadata) -> None:
    for pattern, attr in (
        (CANCEL_DATE_RE, "cancel_date"),
        (SHIP_DATE_RE, "ship_date"),
        (ORDER_DATE_RE, "order_date"),
    ):
        match = pattern.search(text)
        if match:
            setattr(metadata, attr, match.group(1))

    if not metadata.cancel_date or (metadata.ship_date and metadata.order_date):
        return

    # Some templates print the three dates on the lines after the labels
    for index, line in enumerate(lines):
        if not CANCEL_LABEL_RE.search(line):
            continue
        for following in lines[index + 1:index + 1 + TRAILING_DATE_LINES]:
            match = DATE_LINE_RE.match(following.strip())
            if not match:
                continue
            if not metadata.ship_date:
                metadata.ship_date = match.group(1)
            elif not metadata.order_date:
                metadata.order_date = match.group(1)
                break
        break


def extract_po_metadata(text: str) -> PoMetadata:
    """
    Read the PO header fields from a document's full text.

    Fields that cannot be found stay empty; nothing here raises on
    unexpected text.
    """
    metadata = PoMetadata()
    lines = text.split("\n")

    _dept_and_po(lines, text, metadata)
    _dates(lines, text, metadata)

    for pattern in STORE_PATTERNS:
        match = pattern.search(text)
        if match:
            metadata.store = int(match.group(1))
            break

    for pattern in VENDOR_PATTERNS:
        match = pattern.search(text)
        if match:
            metadata.vendor = match.group(1).strip().upper()
            break

    match = STATE_RE.search(text)
    if match:
        metadata.state = match.group(1)

    return metadata


def parse_po_date(value: str) -> Optional[date]:
    """
    Convert an M/D/YYYY string to a date.

    Example: "3/14/2025" -> date(2025, 3, 14); anything unreadable -> None
    """
    if not value:
        return None
    parts = value.split("/")
    if len(parts) != 3:
        return None
    try:
        month, day, year = (int(part) for part in parts)
        return date(year, month, day)
    except ValueError:
        return None
