"""
Combine line items from many PO documents into one row per (SKU, style).
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from models import MergedRecord, MergeResult, PoLineRecord
from sku_fields import price_value

logger = logging.getLogger(__name__)


def _po_sort_key(po_number: str) -> int:
    return int(po_number) if po_number.isdecimal() else 0


def _positive(value: Optional[Decimal]) -> Optional[Decimal]:
    return value if value is not None and value > 0 else None


def merge_records(records: Iterable[PoLineRecord]) -> MergeResult:
    """
    Fold per-document records into merged rows.

    Records are applied in the order given. Cost, retail and pack qty keep
    the first value above zero seen for a key; quantities are summed per PO
    number. Rows come out in first-seen order and PO numbers in ascending
    numeric order.
    """
    merged: Dict[str, MergedRecord] = {}
    po_numbers: List[str] = []

    for record in records:
        item = record.item
        entry = MergedRecord(sku=item.sku, mfg_style=item.mfg_style)
        entry = merged.setdefault(entry.key, entry)

        if entry.cost is None:
            entry.cost = _positive(price_value(item.cost))
        if entry.retail is None:
            entry.retail = _positive(price_value(item.retail))
        if not entry.pack_qty and item.pack_qty and item.pack_qty > 0:
            entry.pack_qty = item.pack_qty

        po_number = record.metadata.po_number
        if po_number:
            entry.po_quantities[po_number] = entry.po_quantities.get(po_number, 0) + (item.qty or 0)
            if po_number not in po_numbers:
                po_numbers.append(po_number)

        if record.source_file:
            entry.source_files.add(record.source_file)

    po_numbers.sort(key=_po_sort_key)
    logger.debug("Merged %d row(s) across %d PO(s)", len(merged), len(po_numbers))
    return MergeResult(records=list(merged.values()), po_numbers=po_numbers)
