#!/usr/bin/env python3
"""
Tests for the browser and Brother QL print pipelines.
"""

import sys
from unittest.mock import Mock, patch

import pytest
from PIL import Image

from tagprint.exceptions import TagPrintError
from tagprint.printing import BrowserPrintPipeline, QLPrintPipeline, scale_to_tape, silenced_stderr
from tagprint.sheet import PrintDocument


@pytest.fixture
def document():
    tiles = [Image.new("RGB", (280, 160), "white") for _ in range(2)]
    return PrintDocument("Item Tags - Order ORD-1042", tiles)


class TestBrowserPipeline:
    def test_writes_page_and_opens_it(self, document, tmp_path):
        opener = Mock(return_value=True)
        pipeline = BrowserPrintPipeline(directory=str(tmp_path), opener=opener, cleanup_delay=None)
        pipeline.print_document(document)

        assert pipeline.last_path.parent == tmp_path
        assert pipeline.last_path.read_text(encoding="utf-8") == document.html
        opener.assert_called_once_with(pipeline.last_path.as_uri())

    def test_no_browser(self, document, tmp_path):
        pipeline = BrowserPrintPipeline(directory=str(tmp_path), opener=Mock(return_value=False))
        with pytest.raises(TagPrintError, match="No browser"):
            pipeline.print_document(document)
        assert list(tmp_path.iterdir()) == []

    def test_released_document(self, document, tmp_path):
        document.release()
        opener = Mock(return_value=True)
        with pytest.raises(TagPrintError):
            BrowserPrintPipeline(directory=str(tmp_path), opener=opener).print_document(document)
        opener.assert_not_called()

    def test_page_removed_after_delay(self, document, tmp_path):
        pipeline = BrowserPrintPipeline(directory=str(tmp_path), opener=Mock(return_value=True),
                                        cleanup_delay=0.05)
        pipeline.print_document(document)
        page = pipeline.last_path
        assert page.exists()

        for timer in pipeline._timers:
            timer.join(timeout=5)
        assert not page.exists()
        assert list(tmp_path.iterdir()) == []

    def test_cleanup_removes_pages_now(self, document, tmp_path):
        pipeline = BrowserPrintPipeline(directory=str(tmp_path), opener=Mock(return_value=True),
                                        cleanup_delay=60)
        pipeline.print_document(document)
        pipeline.print_document(PrintDocument("Order - ORD-1042", document.tiles[:1]))
        assert len(list(tmp_path.iterdir())) == 2

        pipeline.cleanup()
        assert list(tmp_path.iterdir()) == []
        assert pipeline._timers == []

    def test_page_already_gone(self, document, tmp_path):
        pipeline = BrowserPrintPipeline(directory=str(tmp_path), opener=Mock(return_value=True),
                                        cleanup_delay=None)
        pipeline.print_document(document)
        pipeline.last_path.unlink()
        pipeline.cleanup()
        assert list(tmp_path.iterdir()) == []


class TestSilencedStderr:
    def test_stderr_discarded(self, capsys):
        with silenced_stderr():
            print("operating mode could not be set", file=sys.stderr)
        print("after", file=sys.stderr)
        assert capsys.readouterr().err == "after\n"

    def test_stderr_restored_after_error(self):
        original = sys.stderr
        with pytest.raises(RuntimeError):
            with silenced_stderr():
                raise RuntimeError("printer unplugged")
        assert sys.stderr is original


class TestScaleToTape:
    def test_width_matches_tape(self):
        img = scale_to_tape(Image.new("RGB", (280, 160)), 62)
        assert img.size == (696, round(160 * 696 / 280))

    def test_unsupported_tape(self):
        with pytest.raises(ValueError):
            scale_to_tape(Image.new("RGB", (280, 160)), 12)


class TestQLPipeline:
    def test_unsupported_tape(self):
        with pytest.raises(ValueError):
            QLPrintPipeline(tape_width_mm=12)

    @patch("tagprint.printing.send")
    @patch("tagprint.printing.convert")
    def test_converts_and_sends_all_tiles(self, convert, send, document):
        convert.return_value = b"raster"
        pipeline = QLPrintPipeline(tape_width_mm=29, printer="usb://test", backend="pyusb")
        pipeline.print_document(document)

        kwargs = convert.call_args.kwargs
        assert kwargs["label"] == "29"
        assert kwargs["cut"] is True
        assert [img.width for img in kwargs["images"]] == [306, 306]
        send.assert_called_once_with(
            instructions=b"raster", printer_identifier="usb://test",
            backend_identifier="pyusb", blocking=True)

    @patch("tagprint.printing.send")
    @patch("tagprint.printing.convert")
    def test_released_document(self, convert, send, document):
        document.release()
        with pytest.raises(TagPrintError):
            QLPrintPipeline().print_document(document)
        send.assert_not_called()
