"""Tests for merging line items across PO documents."""

from decimal import Decimal

from models import LineItem, PoLineRecord, PoMetadata
from po_merge import merge_records


def record(sku, po_number, qty, source_file="", style="AB123", cost=None, retail=None, pack_qty=None):
    return PoLineRecord(
        metadata=PoMetadata(po_number=po_number),
        item=LineItem(
            sku=sku, mfg_style=style, cost=cost, retail=retail, pack_qty=pack_qty, qty=qty
        ),
        source_file=source_file,
    )


class TestMergeRecords:
    """Tests for merge_records."""

    def test_same_po_quantities_are_summed(self):
        result = merge_records([
            record("99999999", "1001", 10, "a.pdf"),
            record("99999999", "1001", 5, "b.pdf"),
        ])

        (merged,) = result.records
        assert merged.po_quantities == {"1001": 15}
        assert merged.total_units == 15
        assert merged.source_files == {"a.pdf", "b.pdf"}
        assert result.po_numbers == ["1001"]

    def test_quantities_do_not_depend_on_order(self):
        records = [
            record("99999999", "1001", 10),
            record("99999999", "1002", 3),
            record("99999999", "1001", 5),
        ]
        forward = merge_records(records).records[0].po_quantities
        backward = merge_records(list(reversed(records))).records[0].po_quantities
        assert forward == backward == {"1001": 15, "1002": 3}

    def test_first_cost_wins(self):
        a = record("99999999", "1001", 1, cost="$5.00", retail="$9.00")
        b = record("99999999", "1002", 1, cost="$7.00", retail="$12.00")

        assert merge_records([a, b]).records[0].cost == Decimal("5.00")
        assert merge_records([b, a]).records[0].cost == Decimal("7.00")
        assert merge_records([b, a]).records[0].retail == Decimal("12.00")

    def test_missing_cost_filled_later(self):
        result = merge_records([
            record("99999999", "1001", 1, cost=None, pack_qty=None),
            record("99999999", "1001", 1, cost="$3.00", pack_qty=4),
        ])
        merged = result.records[0]
        assert merged.cost == Decimal("3.00")
        assert merged.pack_qty == 4

    def test_key_includes_style(self):
        result = merge_records([
            record("99999999", "1001", 1, style="AB123"),
            record("99999999", "1001", 2, style="CD456"),
        ])
        assert [m.key for m in result.records] == ["99999999|AB123", "99999999|CD456"]

    def test_rows_in_first_seen_order_and_pos_sorted(self):
        result = merge_records([
            record("22222222", "200", 1),
            record("11111111", "1001", 1),
            record("22222222", "30", 1),
        ])
        assert [m.sku for m in result.records] == ["22222222", "11111111"]
        assert result.po_numbers == ["30", "200", "1001"]

    def test_non_numeric_po_sorts_first(self):
        result = merge_records([
            record("99999999", "200", 1),
            record("99999999", "²", 1),
        ])
        assert result.po_numbers == ["²", "200"]

    def test_record_without_po_adds_no_quantity(self):
        result = merge_records([record("99999999", "", 7, "a.pdf")])
        merged = result.records[0]
        assert merged.po_quantities == {}
        assert merged.source_files == {"a.pdf"}
        assert result.po_numbers == []

    def test_missing_qty_counts_as_zero(self):
        result = merge_records([
            record("99999999", "1001", None),
            record("99999999", "1001", 4),
        ])
        assert result.records[0].po_quantities == {"1001": 4}
