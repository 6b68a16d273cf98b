"""
Main entry point for purchase-order PDF documents
"""

import io
import json
import logging
import os
from pathlib import Path
import re
import sys
from typing import List, Sequence, Union
import warnings

import pdfplumber

from models import MergeResult, PoLineRecord
from po_merge import merge_records
from po_metadata import extract_po_metadata
from po_workbook import write_po_workbook
from sku_strategies import parse_sku_table, split_lines

# Suppress Pillow warnings about invalid ICC profiles
warnings.filterwarnings("ignore", message=".*Invalid profile.*")
warnings.filterwarnings("ignore", category=UserWarning, module="PIL")

# Suppress logging noise from pdfminer
logging.getLogger("pdfminer").setLevel(logging.ERROR)

logger = logging.getLogger(__name__)

# Words whose tops are within this many points share a line
LINE_TOLERANCE = 5

CID_RE = re.compile(r"\(cid:(\d+)\)")


class NoItemsExtractedError(ValueError):
    """Raised when no document in a batch produced a single line item."""


def decode_cid_references(text: str) -> str:
    """
    Decode PDF CID (Character ID) references to actual characters.

    PDFs sometimes use CID notation like (cid:54) when character encoding
    fails. For the standard fonts PO templates use, printable ASCII codes
    map straight to their characters: (cid:36) is "$", (cid:54) is "6".
    """
    if not text or "(cid:" not in text:
        return text

    def replace_cid(match: re.Match) -> str:
        code = int(match.group(1))
        if 32 <= code < 127:
            return chr(code)
        return match.group(0)  # Return original if not printable

    return CID_RE.sub(replace_cid, text)


def page_lines(page) -> List[str]:
    """
    Rebuild a page's text lines in reading order.

    Words are ordered top to bottom; a word starts a new line when its top
    is more than LINE_TOLERANCE away from the first word of the current line.
    Within a line words are ordered left to right.
    """
    words = sorted(page.extract_words(), key=lambda w: (w["top"], w["x0"]))
    lines: List[str] = []
    current: List[dict] = []
    anchor = None

    for word in words:
        if anchor is not None and abs(word["top"] - anchor) > LINE_TOLERANCE:
            lines.append(" ".join(w["text"] for w in sorted(current, key=lambda w: w["x0"])))
            current = []
            anchor = None
        if anchor is None:
            anchor = word["top"]
        current.append(word)

    if current:
        lines.append(" ".join(w["text"] for w in sorted(current, key=lambda w: w["x0"])))

    return [decode_cid_references(line).strip() for line in lines]


def lines_of(source: Union[str, Path, bytes]) -> List[str]:
    """
    Text lines of every page of a PDF, one page after another.

    ``source`` is a file path or the raw PDF bytes.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    lines: List[str] = []
    with pdfplumber.open(source) as pdf:
        for page in pdf.pages:
            lines.extend(page_lines(page))
    return lines


def records_from_lines(lines: Sequence[str], source_file: str = "") -> List[PoLineRecord]:
    """Parse one document's lines into records tagged with its metadata."""
    metadata = extract_po_metadata("\n".join(lines))
    items = parse_sku_table(lines)
    return [PoLineRecord(metadata=metadata, item=item, source_file=source_file) for item in items]


def records_from_text(text: str, source_file: str = "") -> List[PoLineRecord]:
    return records_from_lines(split_lines(text), source_file)


class PurchaseOrderParser:
    """Parse a purchase-order PDF into line-item records."""

    def __init__(self, pdf_path: Union[str, Path]):
        self.pdf_path = Path(pdf_path)
        if not self.pdf_path.exists():
            raise FileNotFoundError(f"PDF not found: {pdf_path}")

    def extract_lines(self) -> List[str]:
        return lines_of(self.pdf_path)

    def extract_records(self) -> List[PoLineRecord]:
        """
        Extract the PO's line items, each joined with the PO header fields
        and tagged with the PDF's file name.
        """
        return records_from_lines(self.extract_lines(), self.pdf_path.name)


def convert_documents(pdf_paths: Sequence[Union[str, Path]]) -> List[PoLineRecord]:
    """
    Parse a batch of PO PDFs in the order given.

    A document that fails to open or parse is logged and skipped so the rest
    of the batch still goes through. Raises NoItemsExtractedError when the
    whole batch yields nothing.
    """
    all_records: List[PoLineRecord] = []

    for pdf_path in pdf_paths:
        try:
            records = PurchaseOrderParser(pdf_path).extract_records()
        except Exception:
            logger.exception("Error processing %s", pdf_path)
            continue

        logger.info("%s: %d line item(s)", Path(pdf_path).name, len(records))
        all_records.extend(records)

    if not all_records:
        raise NoItemsExtractedError("No data extracted from any PDF")

    return all_records


# ============================================================================
# Command Line Interface
# ============================================================================


def convert_to_table_format(result: MergeResult) -> List[List[str]]:
    """
    Convert merged rows to table format.

    Returns a table with headers + data rows, one quantity column per PO:
    [
        ["SKU", "MFG Style", "Cost/Unit", "Retail", "Pack Qty", "TTL Units", "PO 1001", "Source Files"],
        ["12345678", "AB123", "5.00", "10.00", "2", "15", "15", "a.pdf, b.pdf"],
        ...
    ]
    """
    if not result.records:
        return []

    headers = ["SKU", "MFG Style", "Cost/Unit", "Retail", "Pack Qty", "TTL Units"]
    headers += [f"PO {po}" for po in result.po_numbers]
    headers.append("Source Files")

    rows = [headers]
    for merged in result.records:
        row = [
            merged.sku,
            merged.mfg_style,
            f"{merged.cost:.2f}" if merged.cost is not None else "",
            f"{merged.retail:.2f}" if merged.retail is not None else "",
            str(merged.pack_qty or ""),
            str(merged.total_units),
        ]
        row += [str(merged.po_quantities.get(po, "")) for po in result.po_numbers]
        row.append(", ".join(sorted(merged.source_files)))
        rows.append(row)

    return rows


def main():
    """
    Main entry point.

    Usage: po_parse.py <pdf_path> [<pdf_path> ...] <output>

    An output path ending in .xlsx gets the PO Data workbook; anything else
    gets JSON:
    {
        "success": true,
        "vendor": "VENDOR NAME" or "",
        "po_numbers": ["1001", ...],
        "table": [["SKU", "MFG Style", ...], ...],
        "raw_items": [{"SKU": "12345678", "PO #": "1001", ...}, ...],
        "merged": [{"sku": "12345678", "po_quantities": {...}, ...}, ...],
        "item_count": 12
    }
    """
    logging.basicConfig(
        level=logging.INFO if os.environ.get("PO_PARSER_VERBOSE") else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if len(sys.argv) < 3:
        print("Usage: po_parse.py <pdf_path> [<pdf_path> ...] <output>", file=sys.stderr)
        sys.exit(1)

    pdf_paths = sys.argv[1:-1]
    output_path = Path(sys.argv[-1])
    to_workbook = output_path.suffix.lower() == ".xlsx"

    try:
        records = convert_documents(pdf_paths)
        result = merge_records(records)

        if to_workbook:
            write_po_workbook(result, records, output_path)
            return

        response = {
            "success": True,
            "vendor": records[0].metadata.vendor,
            "po_numbers": result.po_numbers,
            "table": convert_to_table_format(result),
            "raw_items": [record.as_row() for record in records],
            "merged": [merged.as_dict() for merged in result.records],
            "item_count": len(records),
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(response, f, indent=2)

    except (OSError, ValueError, KeyError) as e:
        if not to_workbook:
            error_result = {
                "success": False,
                "error": str(e),
                "error_type": type(e).__name__,
            }
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(error_result, f, indent=2)

        print(f"Error converting purchase orders: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
