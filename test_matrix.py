#!/usr/bin/env python3
"""
Tests for QR generation and the per-label QR job collection.
"""

from concurrent.futures import Future, ThreadPoolExecutor

import pytest
from PIL import Image

from tagprint.exceptions import MatrixImageUnavailable
from tagprint.matrix import collect_matrix_results, create_qr_image, submit_matrix_jobs


def done_future(result=None, exception=None):
    future = Future()
    if exception is not None:
        future.set_exception(exception)
    else:
        future.set_result(result)
    return future


class TestCreateQrImage:
    def test_size(self):
        img = create_qr_image("https://laundry.example.com/t/IT1042000002", 70)
        assert img.size == (70, 70)
        assert img.mode == "RGB"

    def test_black_and_white_only(self):
        img = create_qr_image("IT1042000002", 100)
        colors = {color for _, color in img.getcolors()}
        assert colors <= {(0, 0, 0), (255, 255, 255)}
        assert (0, 0, 0) in colors

    def test_empty_payload(self):
        with pytest.raises(ValueError):
            create_qr_image("", 70)


class TestCollect:
    def test_results_in_order(self):
        images = [Image.new("RGB", (5, 5)) for _ in range(3)]
        futures = [done_future(img) for img in images]
        results = collect_matrix_results(["A", "B", "C"], futures)
        assert [r.tag_code for r in results] == ["A", "B", "C"]
        assert [r.image for r in results] == images
        assert all(r.ok for r in results)

    def test_failure_isolated_to_its_label(self):
        futures = [
            done_future(Image.new("RGB", (5, 5))),
            done_future(exception=RuntimeError("encoder offline")),
            done_future(Image.new("RGB", (5, 5))),
        ]
        results = collect_matrix_results(["A", "B", "C"], futures)
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, MatrixImageUnavailable)
        assert results[1].error.tag_code == "B"
        assert "encoder offline" in results[1].error.reason

    def test_cancelled_returns_none(self):
        futures = [done_future(Image.new("RGB", (5, 5)))]
        assert collect_matrix_results(["A"], futures, is_cancelled=lambda: True) is None

    def test_cancelled_future_returns_none(self):
        future = Future()
        future.cancel()
        assert collect_matrix_results(["A"], [future]) is None

    def test_submit_runs_encoder_per_payload(self):
        calls = []

        def encoder(payload, size):
            calls.append((payload, size))
            return Image.new("RGB", (size, size))

        with ThreadPoolExecutor(max_workers=2) as executor:
            futures = submit_matrix_jobs(executor, ["p1", "p2"], 50, encoder)
            results = collect_matrix_results(["A", "B"], futures)
        assert sorted(calls) == [("p1", 50), ("p2", 50)]
        assert [r.image.size for r in results] == [(50, 50), (50, 50)]
