#!/usr/bin/env python3
"""
Tests for tag selection, sheet packing and print documents.
"""

from unittest.mock import Mock, patch

import pytest
from PIL import Image

from tagprint.exceptions import TagPrintError
from tagprint.print_label import ItemLabel
from tagprint.sheet import (
    LabelSheet,
    OrderCardDocument,
    OrderDetails,
    PackMode,
    PrintDocument,
    combine_labels,
    download_filename,
    format_delivery_date,
    format_total,
    grid_position,
    grid_size,
    pack,
    print_order_card,
    print_sheet,
    print_title,
)

W, H = 280, 160


def make_labels(count, order_number="ORD-1042"):
    return [
        ItemLabel(tag_code=f"IT1042{i:06d}", order_number=order_number,
                  item_number=i, total_items=count)
        for i in range(1, count + 1)
    ]


def make_surfaces(count):
    # distinct fill per surface so positions can be checked
    return [Image.new("RGB", (W, H), (i * 40, 0, 0)) for i in range(1, count + 1)]


class TestLabelSheet:
    def test_all_selected_by_default(self):
        sheet = LabelSheet(make_labels(3))
        assert len(sheet.selected) == 3
        assert sheet.summary == "3 of 3 selected"
        assert not sheet.is_empty

    def test_toggle(self):
        sheet = LabelSheet(make_labels(3))
        assert sheet.toggle(1) is False
        assert sheet.summary == "2 of 3 selected"
        assert sheet.toggle(1) is True

    def test_toggle_out_of_range(self):
        with pytest.raises(IndexError):
            LabelSheet(make_labels(2)).toggle(2)

    def test_selected_in_listing_order(self):
        labels = make_labels(4)
        sheet = LabelSheet(labels, select_all=False)
        sheet.toggle(3)
        sheet.toggle(0)
        sheet.toggle(2)
        assert sheet.selected == [labels[0], labels[2], labels[3]]

    def test_deselect_all_is_empty(self):
        sheet = LabelSheet(make_labels(2))
        sheet.deselect_all()
        assert sheet.is_empty
        assert sheet.summary == "0 of 2 selected"
        sheet.select_all()
        assert len(sheet.selected) == 2

    def test_set_selected(self):
        sheet = LabelSheet(make_labels(2))
        sheet.set_selected(0, False)
        sheet.set_selected(0, False)
        assert not sheet.is_selected(0)
        assert sheet.is_selected(1)

    def test_columns_must_be_positive(self):
        with pytest.raises(ValueError):
            LabelSheet(make_labels(1), columns=0)


class TestGrid:
    def test_five_labels_two_columns(self):
        width, height, rows = grid_size(5, 2, W, H)
        assert rows == 3
        assert width == 2 * W + 10 + 20
        assert height == 3 * H + 2 * 10 + 20

    def test_fifth_label_on_third_row_first_column(self):
        assert grid_position(4, 2, W, H) == (10, 10 + 2 * (H + 10))
        assert grid_position(1, 2, W, H) == (10 + W + 10, 10)


class TestCombine:
    def test_empty_returns_none_without_allocating(self):
        with patch("tagprint.sheet.Image.new") as new, \
                patch("tagprint.sheet.allocate_surface") as allocate:
            assert combine_labels([]) is None
            assert pack([]) is None
            new.assert_not_called()
            allocate.assert_not_called()

    def test_single_label_returned_unchanged(self):
        surface = make_surfaces(1)[0]
        assert combine_labels([surface]) is surface
        assert pack([surface], mode=PackMode.COMBINE) is surface

    def test_grid_layout(self):
        surfaces = make_surfaces(5)
        sheet = combine_labels(surfaces, columns=2)
        assert sheet.size == grid_size(5, 2, W, H)[:2]
        x, y = grid_position(4, 2, W, H)
        assert sheet.getpixel((x + 1, y + 1)) == surfaces[4].getpixel((0, 0))
        x, y = grid_position(1, 2, W, H)
        assert sheet.getpixel((x + 1, y + 1)) == surfaces[1].getpixel((0, 0))
        # empty slot next to the fifth label stays white
        assert sheet.getpixel((10 + W + 10 + 1, 10 + 2 * (H + 10) + 1)) == (255, 255, 255)

    def test_fewer_labels_than_columns(self):
        sheet = combine_labels(make_surfaces(2), columns=3)
        assert sheet.size == (3 * W + 2 * 10 + 20, H + 20)


class TestPrintDocument:
    def test_one_tile_per_label_in_order(self):
        surfaces = make_surfaces(3)
        document = pack(surfaces, mode=PackMode.PRINT_DOCUMENT, title=print_title("ORD-1042"))
        assert isinstance(document, PrintDocument)
        assert len(document) == 3
        assert document.tiles == surfaces
        assert document.html.count('class="label"') == 3
        assert document.html.count("data:image/png;base64,") == 3
        assert "<title>Item Tags - Order ORD-1042</title>" in document.html
        assert "page-break-inside: avoid" in document.html
        assert "window.print()" in document.html
        assert f'width="{W}" height="{H}"' in document.html

    def test_release(self):
        document = PrintDocument("t", make_surfaces(1))
        document.release()
        assert document.released
        assert document.tiles == []
        assert document.html == ""

    def test_title_escaped(self):
        document = PrintDocument("Order <1>", make_surfaces(1))
        assert "Order &lt;1&gt;" in document.html

    def test_print_sheet_releases_after_pipeline(self):
        pipeline = Mock()
        seen = {}
        pipeline.print_document.side_effect = lambda doc: seen.update(
            tiles=len(doc.tiles), released=doc.released)
        assert print_sheet(make_surfaces(2), pipeline) is True
        assert seen == {"tiles": 2, "released": False}
        document = pipeline.print_document.call_args[0][0]
        assert document.released

    def test_print_sheet_releases_on_failure(self):
        pipeline = Mock()
        pipeline.print_document.side_effect = RuntimeError("no printer")
        with pytest.raises(RuntimeError):
            print_sheet(make_surfaces(1), pipeline)
        assert pipeline.print_document.call_args[0][0].released

    def test_print_sheet_empty(self):
        pipeline = Mock()
        assert print_sheet([], pipeline) is False
        pipeline.print_document.assert_not_called()


class TestFilenames:
    def test_single_tag(self):
        assert download_filename(make_labels(1)) == "tag-IT1042000001.png"

    def test_sheet(self):
        assert download_filename(make_labels(3)) == "tags-order-ORD-1042.png"

    def test_empty(self):
        with pytest.raises(ValueError):
            download_filename([])


class TestOrderCard:
    DETAILS = OrderDetails(status="in_progress", item_count=2, total=1250.0,
                           estimated_delivery="2026-10-18T00:00:00.000Z")

    @pytest.fixture
    def card(self):
        return Image.new("RGB", (250, 80), "white")

    def test_header_and_single_tile(self, card):
        document = OrderCardDocument("#ord-2024-1042", card)
        assert document.title == "Order - ORD-2024-1042"
        assert len(document) == 1
        assert '<div class="order">#ORD-2024-1042</div>' in document.html
        assert 'width="250" height="80"' in document.html
        assert "window.print()" in document.html

    def test_details_rows(self, card):
        document = OrderCardDocument("ORD-2024-1042", card, self.DETAILS)
        assert 'class="order-details"' in document.html
        assert "status-in_progress" in document.html
        assert ">IN PROGRESS<" in document.html
        assert ">2 item(s)<" in document.html
        assert ">₹1250<" in document.html
        assert ">18 Oct<" in document.html

    def test_without_details(self, card):
        document = OrderCardDocument("ORD-2024-1042", card)
        assert 'class="order-details"' not in document.html
        assert "Est. Delivery" not in document.html

    def test_partial_details(self, card):
        document = OrderCardDocument("ORD-2024-1042", card, OrderDetails(item_count=0))
        assert ">0 item(s)<" in document.html
        assert "Status:" not in document.html
        assert "Total:" not in document.html

    @pytest.mark.parametrize("value, shown", [
        ("2026-10-18", "18 Oct"),
        ("2026-01-05T09:30:00Z", "5 Jan"),
        ("next week", "next week"),
    ])
    def test_delivery_date(self, value, shown):
        assert format_delivery_date(value) == shown

    def test_total_keeps_fractions(self):
        assert format_total(1250.0) == "₹1250"
        assert format_total(99.5) == "₹99.5"

    def test_print_order_card_releases_document(self):
        pipeline = Mock()
        pages = []
        pipeline.print_document.side_effect = lambda document: pages.append(document.html)
        document = print_order_card("ORD-2024-1042", pipeline, self.DETAILS)

        pipeline.print_document.assert_called_once_with(document)
        assert document.released
        assert document.tiles == []
        assert "#ORD-2024-1042" in pages[0]
        assert ">18 Oct<" in pages[0]

    def test_print_order_card_releases_on_failure(self):
        pipeline = Mock()
        pipeline.print_document.side_effect = TagPrintError("No browser available")
        with pytest.raises(TagPrintError):
            print_order_card("ORD-2024-1042", pipeline)
        assert pipeline.print_document.call_args[0][0].released

    def test_card_size_options(self):
        pipeline = Mock()
        sizes = []
        pipeline.print_document.side_effect = lambda document: sizes.append(document.tiles[0].size)
        print_order_card("ORD-2024-1042", pipeline, width=300, height=100)
        assert sizes == [(300, 100)]
