"""
Record types shared by the PO parser, the merge step and the workbook writer.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Set


@dataclass
class LineItem:
    """One SKU row recovered from a purchase-order table."""

    sku: str
    mfg_style: str = ""
    mfg_color: str = ""
    size_desc: str = ""
    description: str = ""
    cost: Optional[str] = None
    comp: Optional[str] = None
    retail: Optional[str] = None
    pack_qty: Optional[int] = None
    qty: Optional[int] = None
    upc: Optional[str] = None

    def as_row(self) -> dict:
        return {
            "SKU": self.sku,
            "MFG Style": self.mfg_style,
            "MFG Color": self.mfg_color,
            "Size Desc.": self.size_desc,
            "Description": self.description,
            "Cost/Unit": self.cost or "",
            "Comp": self.comp or "",
            "Retail": self.retail or "",
            "Pack Qty.": self.pack_qty if self.pack_qty is not None else "",
            "Qty": self.qty if self.qty is not None else "",
            "UPC": self.upc or "",
        }


@dataclass
class PoMetadata:
    """Header fields read once per PO document."""

    vendor: str = ""
    po_number: str = ""
    dept: Optional[int] = None
    store: Optional[int] = None
    state: str = ""
    order_date: str = ""
    ship_date: str = ""
    cancel_date: str = ""

    def as_row(self) -> dict:
        return {
            "VENDOR": self.vendor,
            "PO #": self.po_number,
            "DEPT #": self.dept if self.dept is not None else "",
            "STORE #": self.store if self.store is not None else "",
            "STATE": self.state,
            "ORDER DATE": self.order_date,
            "SHIP DATE": self.ship_date,
            "CANCEL DATE": self.cancel_date,
        }


@dataclass
class PoLineRecord:
    """A line item joined with the metadata of the document it came from."""

    metadata: PoMetadata
    item: LineItem
    source_file: str = ""

    def as_row(self) -> dict:
        row = self.metadata.as_row()
        row.update(self.item.as_row())
        row["SourceFile"] = self.source_file
        return row


@dataclass
class MergedRecord:
    """All sightings of one (SKU, MFG style) pair across a batch of POs."""

    sku: str
    mfg_style: str
    cost: Optional[Decimal] = None
    retail: Optional[Decimal] = None
    pack_qty: Optional[int] = None
    po_quantities: Dict[str, int] = field(default_factory=dict)
    source_files: Set[str] = field(default_factory=set)

    @property
    def key(self) -> str:
        return f"{self.sku}|{self.mfg_style}"

    @property
    def total_units(self) -> int:
        return sum(self.po_quantities.values())

    def as_dict(self) -> dict:
        return {
            "sku": self.sku,
            "mfg_style": self.mfg_style,
            "cost": f"{self.cost:.2f}" if self.cost is not None else None,
            "retail": f"{self.retail:.2f}" if self.retail is not None else None,
            "pack_qty": self.pack_qty,
            "po_quantities": dict(self.po_quantities),
            "total_units": self.total_units,
            "source_files": sorted(self.source_files),
        }


@dataclass
class MergeResult:
    records: List[MergedRecord] = field(default_factory=list)
    po_numbers: List[str] = field(default_factory=list)
