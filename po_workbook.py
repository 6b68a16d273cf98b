"""
Write merged PO rows to an Excel workbook.

Layout of the "PO Data" sheet:
- G1:G8 hold the PO info labels; each PO gets a column from H onwards with
  its dates, dept, DC state, store and PO number in rows 2-8.
- Row 9 holds the column headers, data starts on row 10.
- TTL AMT and TTL UNITS are formulas so edits to the sheet keep totals right.
"""

from pathlib import Path
from typing import Dict, List, Union

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from models import MergeResult, PoLineRecord, PoMetadata
from po_metadata import parse_po_date

SHEET_TITLE = "PO Data"
INFO_COLUMN = 7
FIRST_PO_COLUMN = 8
HEADER_ROW = 9
FIRST_DATA_ROW = 10
TOTALS_ROW = 8
CURRENCY_FORMAT = "$#,##0.00"
DATE_FORMAT = "mm/dd/yyyy"

HEADERS = ["SKU #", "MFG STYLE", "COST / UNIT", "RETAIL", "TTL AMT", "TTL UNITS", "PACK QTY"]
COLUMN_WIDTHS = {"A": 12, "B": 15, "C": 12, "D": 10, "E": 12, "F": 10, "G": 10}


def _po_metadata_by_number(records: List[PoLineRecord]) -> Dict[str, PoMetadata]:
    found: Dict[str, PoMetadata] = {}
    for record in records:
        po_number = record.metadata.po_number
        if po_number and po_number not in found:
            found[po_number] = record.metadata
    return found


def _write_po_columns(ws, result: MergeResult, records: List[PoLineRecord], vendor: str) -> None:
    labels = [
        f"{vendor} PO INFO",
        "ORDER DATE",
        "SHIP DATE",
        "CANCEL DATE",
        "DEPT#",
        "DC",
        "STORE #",
        f"{vendor} PO#",
    ]
    for row, label in enumerate(labels, 1):
        ws.cell(row=row, column=INFO_COLUMN).value = label

    metadata_by_po = _po_metadata_by_number(records)
    for offset, po_number in enumerate(result.po_numbers):
        col = FIRST_PO_COLUMN + offset
        metadata = metadata_by_po.get(po_number)
        if metadata:
            ws.cell(row=8, column=col).value = f"PO# {po_number}"
            for row, value in ((2, metadata.order_date), (3, metadata.ship_date), (4, metadata.cancel_date)):
                parsed = parse_po_date(value)
                if parsed:
                    cell = ws.cell(row=row, column=col)
                    cell.value = parsed
                    cell.number_format = DATE_FORMAT
            if metadata.dept is not None:
                ws.cell(row=5, column=col).value = metadata.dept
            if metadata.state:
                ws.cell(row=6, column=col).value = metadata.state
            if metadata.store is not None:
                ws.cell(row=7, column=col).value = metadata.store

        cell = ws.cell(row=HEADER_ROW, column=col)
        cell.value = "TTL UNITS"
        cell.font = Font(bold=True)


def build_po_workbook(result: MergeResult, records: List[PoLineRecord]) -> Workbook:
    """
    Build the PO Data workbook for a merged batch.

    ``records`` are the per-document records the merge was built from; they
    supply each PO column's dates, dept, state and store.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    vendor = (records[0].metadata.vendor if records else "") or "VENDOR"
    _write_po_columns(ws, result, records, vendor)

    for col, header in enumerate(HEADERS, 1):
        cell = ws.cell(row=HEADER_ROW, column=col)
        cell.value = header
        cell.font = Font(bold=True)

    source_col = FIRST_PO_COLUMN + len(result.po_numbers)
    cell = ws.cell(row=HEADER_ROW, column=source_col)
    cell.value = "SOURCE FILE"
    cell.font = Font(bold=True)

    first_po_letter = get_column_letter(FIRST_PO_COLUMN)
    last_po_letter = get_column_letter(FIRST_PO_COLUMN + len(result.po_numbers) - 1)

    row = FIRST_DATA_ROW
    for merged in result.records:
        ws.cell(row=row, column=1).value = merged.sku
        ws.cell(row=row, column=2).value = merged.mfg_style
        if merged.cost is not None:
            ws.cell(row=row, column=3).value = float(merged.cost)
        if merged.retail is not None:
            ws.cell(row=row, column=4).value = float(merged.retail)
        ws.cell(row=row, column=5).value = f"=C{row}*F{row}"
        if result.po_numbers:
            ws.cell(row=row, column=6).value = f"=SUM({first_po_letter}{row}:{last_po_letter}{row})"
        ws.cell(row=row, column=7).value = merged.pack_qty or ""

        for offset, po_number in enumerate(result.po_numbers):
            qty = merged.po_quantities.get(po_number)
            if qty and qty > 0:
                ws.cell(row=row, column=FIRST_PO_COLUMN + offset).value = qty

        ws.cell(row=row, column=source_col).value = ", ".join(sorted(merged.source_files))
        row += 1

    last_row = row - 1
    if last_row >= FIRST_DATA_ROW:
        ws.cell(row=TOTALS_ROW, column=5).value = f"=SUM(E{FIRST_DATA_ROW}:E{last_row})"
        ws.cell(row=TOTALS_ROW, column=6).value = f"=SUM(F{FIRST_DATA_ROW}:F{last_row})"

    for r in range(HEADER_ROW, last_row + 1):
        for col in (3, 4, 5):
            ws.cell(row=r, column=col).number_format = CURRENCY_FORMAT
    ws.cell(row=TOTALS_ROW, column=5).number_format = CURRENCY_FORMAT

    for letter, width in COLUMN_WIDTHS.items():
        ws.column_dimensions[letter].width = width

    return wb


def write_po_workbook(
    result: MergeResult, records: List[PoLineRecord], path: Union[str, Path]
) -> Path:
    """Build the workbook and save it to ``path``."""
    path = Path(path)
    build_po_workbook(result, records).save(path)
    return path
