#!/usr/bin/env python3
"""
Tests for print/download sessions: partial failures, ordering and
cancellation.
"""

import threading
import time
from unittest.mock import Mock

import pytest
from PIL import Image

from tagprint import config
from tagprint.barcode import WHITE
from tagprint.exceptions import LayoutTooSmall, PrintDismissed, SessionCancelled
from tagprint.print_label import PADDING, ItemLabel
from tagprint.session import TagPrintSession
from tagprint.sheet import combine_labels


def make_labels(count, order_number="ORD-1042"):
    return [
        ItemLabel(tag_code=f"IT1042{i:06d}", order_number=order_number,
                  item_type="Shirt", service="Wash", qr_data=f"QR-{i}",
                  item_number=i, total_items=count)
        for i in range(1, count + 1)
    ]


def solid_encoder(payload, size):
    return Image.new("RGB", (size, size), (0, 0, 0))


def failing_for(bad_payload):
    def encoder(payload, size):
        if payload == bad_payload:
            raise RuntimeError("QR service unavailable")
        return solid_encoder(payload, size)
    return encoder


@pytest.fixture
def labels():
    return make_labels(5)


class TestCompose:
    def test_all_selected_in_order(self, labels):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            batch = session.compose()
        assert batch.requested == 5
        assert batch.labels == labels
        assert len(batch.surfaces) == 5
        assert batch.ok
        assert batch.summary() == "5 of 5 labels printed"

    def test_surface_size_follows_preset(self, labels):
        with TagPrintSession(labels, size="large", matrix_encoder=solid_encoder) as session:
            batch = session.compose()
        assert {s.size for s in batch.surfaces} == {(380, 220)}

    def test_qr_failure_leaves_region_blank(self, labels):
        preset = config.LABEL_SIZES["medium"]
        with TagPrintSession(labels, matrix_encoder=failing_for("QR-3")) as session:
            batch = session.compose()

        assert len(batch.surfaces) == 5
        assert batch.ok
        assert batch.missing_matrix == [labels[2]]

        x = preset.width - preset.qr_size - PADDING
        y = PADDING + preset.font_size + 10
        box = (x, y, x + preset.qr_size, y + preset.qr_size)
        area = preset.qr_size * preset.qr_size
        assert batch.surfaces[2].crop(box).getcolors() == [(area, WHITE)]
        assert batch.surfaces[1].crop(box).getcolors() == [(area, (0, 0, 0))]

    def test_compose_failure_skips_label(self, labels):
        broken = ItemLabel(tag_code="--", order_number="ORD-1042", qr_data="QR-x")
        mixed = labels[:2] + [broken] + labels[2:4]
        with TagPrintSession(mixed, matrix_encoder=solid_encoder) as session:
            batch = session.compose()
        assert batch.requested == 5
        assert len(batch.surfaces) == 4
        assert [f.label for f in batch.failures] == [broken]
        assert batch.labels == labels[:4]
        assert batch.summary() == "4 of 5 labels printed, 1 failed"
        assert not batch.ok

    def test_respects_selection(self, labels):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            session.sheet.toggle(0)
            session.sheet.toggle(3)
            batch = session.compose()
        assert batch.labels == [labels[1], labels[2], labels[4]]

    def test_preview(self, labels):
        with TagPrintSession(labels, size="small", matrix_encoder=solid_encoder) as session:
            assert session.preview(0).size == (200, 120)

    def test_set_size(self, labels):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            session.set_size("small")
            assert session.preset.name == "small"
            with pytest.raises(ValueError):
                session.set_size("poster")
    def test_code_too_long_for_size_is_reported(self):
        labels = make_labels(2)
        labels.append(ItemLabel(tag_code="LP1234567890ABCDEF12", order_number="ORD-1042",
                                qr_data="QR-3"))
        with TagPrintSession(labels, size="small", matrix_encoder=solid_encoder) as session:
            batch = session.compose()
        assert batch.labels == labels[:2]
        assert [f.label for f in batch.failures] == [labels[2]]
        assert isinstance(batch.failures[0].error, LayoutTooSmall)



def payload_colour(payload):
    i = int(payload.split("-")[1])
    return (40 * i, 0, 255 - 40 * i)


def qr_box(preset, left=0, top=0):
    x = left + preset.width - preset.qr_size - PADDING
    y = top + PADDING + preset.font_size + 10
    return (x, y, x + preset.qr_size, y + preset.qr_size)


class TestOrdering:
    def test_tags_keep_order_when_qr_jobs_finish_out_of_order(self, labels):
        preset = config.LABEL_SIZES["medium"]
        finished = []
        lock = threading.Lock()

        def reversed_encoder(payload, size):
            # Earlier tags take longest
            i = int(payload.split("-")[1])
            time.sleep((len(labels) - i + 1) * 0.1)
            with lock:
                finished.append(payload)
            return Image.new("RGB", (size, size), payload_colour(payload))

        with TagPrintSession(labels, matrix_encoder=reversed_encoder,
                             max_workers=len(labels)) as session:
            batch = session.compose()

        payloads = [label.qr_data for label in labels]
        assert sorted(finished) == payloads
        assert finished != payloads
        assert batch.labels == labels

        area = preset.qr_size * preset.qr_size
        for label, surface in zip(labels, batch.surfaces):
            assert surface.crop(qr_box(preset)).getcolors() == [
                (area, payload_colour(label.qr_data))]

        sheet = combine_labels(batch.surfaces, columns=2)
        for index, label in enumerate(labels):
            row, column = divmod(index, 2)
            left = config.SHEET_MARGIN + column * (preset.width + config.SHEET_GAP)
            top = config.SHEET_MARGIN + row * (preset.height + config.SHEET_GAP)
            assert sheet.crop(qr_box(preset, left, top)).getcolors() == [
                (area, payload_colour(label.qr_data))]


class TestDownload:
    def test_sheet_saved(self, labels, tmp_path):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            result = session.download(tmp_path)
        assert result.path == tmp_path / "tags-order-ORD-1042.png"
        assert result.path.exists()
        with Image.open(result.path) as img:
            assert img.size == (2 * 280 + 10 + 20, 3 * 160 + 2 * 10 + 20)

    def test_single_tag_saved_unframed(self, labels, tmp_path):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            session.sheet.deselect_all()
            session.sheet.toggle(1)
            result = session.download(tmp_path)
        assert result.path.name == "tag-IT1042000002.png"
        with Image.open(result.path) as img:
            assert img.size == (280, 160)

    def test_empty_selection(self, labels, tmp_path):
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            session.sheet.deselect_all()
            assert session.download(tmp_path) is None
        assert list(tmp_path.iterdir()) == []


class TestPrint:
    def test_document_handed_to_pipeline(self, labels):
        pipeline = Mock()
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            batch = session.print(pipeline)
        assert batch.summary() == "5 of 5 labels printed"
        document = pipeline.print_document.call_args[0][0]
        assert document.title == "Item Tags - Order ORD-1042"
        assert document.released

    def test_empty_selection_does_not_print(self, labels):
        pipeline = Mock()
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            session.sheet.deselect_all()
            assert session.print(pipeline) is None
        pipeline.print_document.assert_not_called()

    def test_dismissed_dialog_is_not_reported_as_printed(self, labels):
        pipeline = Mock()
        pipeline.print_document.side_effect = PrintDismissed()
        with TagPrintSession(labels, matrix_encoder=solid_encoder) as session:
            with pytest.raises(PrintDismissed):
                session.print(pipeline)
        document = pipeline.print_document.call_args[0][0]
        assert document.released


class TestCancel:
    def test_cancelled_session_produces_nothing(self, labels, tmp_path):
        pipeline = Mock()
        session = TagPrintSession(labels, matrix_encoder=solid_encoder)
        session.cancel()
        with pytest.raises(SessionCancelled):
            session.download(tmp_path)
        with pytest.raises(SessionCancelled):
            session.print(pipeline)
        pipeline.print_document.assert_not_called()
        assert list(tmp_path.iterdir()) == []

    def test_cancel_while_waiting_for_qr(self, labels):
        started = threading.Event()
        release = threading.Event()

        def slow_encoder(payload, size):
            started.set()
            release.wait(5)
            return solid_encoder(payload, size)

        session = TagPrintSession(labels, matrix_encoder=slow_encoder, max_workers=1)
        errors = []

        def run():
            try:
                session.compose()
            except SessionCancelled as e:
                errors.append(e)

        worker = threading.Thread(target=run)
        worker.start()
        assert started.wait(5)
        session.cancel()
        release.set()
        worker.join(5)
        assert not worker.is_alive()
        assert len(errors) == 1

    def test_cancel_is_idempotent(self, labels):
        session = TagPrintSession(labels, matrix_encoder=solid_encoder)
        session.cancel()
        session.cancel()
        assert session.cancelled
        session.close()
