"""
One print/download session for the tags of an order.

Work happens in two phases:
1. resolve the QR images of the selected tags on a thread pool
   (one future per tag, cancellable)
2. compose the tags and pack them on the calling thread

A tag that cannot be composed is reported and skipped; the others still
print. Cancelling the session discards outstanding work and no artifact
is produced afterwards.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from PIL import Image

from . import config
from .config import LabelSizePreset, get_label_size
from .exceptions import SessionCancelled, TagPrintError
from .logging_config import get_logger
from .matrix import MatrixEncoder, collect_matrix_results, create_qr_image, submit_matrix_jobs
from .print_label import ItemLabel, create_item_tag_image
from .sheet import (LabelSheet, PackMode, download_filename, pack, print_sheet,
                    print_title)

logger = get_logger(__name__)


@dataclass
class LabelFailure:
    label: ItemLabel
    error: Exception

    def __str__(self) -> str:
        return f"{self.label.tag_code}: {self.error}"


@dataclass
class BatchResult:
    """Composed tags of a batch plus the ones that failed."""
    requested: int
    labels: List[ItemLabel] = field(default_factory=list)
    surfaces: List[Image.Image] = field(default_factory=list)
    failures: List[LabelFailure] = field(default_factory=list)
    missing_matrix: List[ItemLabel] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self, verb: str = "printed") -> str:
        """E.g. "4 of 5 labels printed, 1 failed"."""
        text = f"{len(self.surfaces)} of {self.requested} labels {verb}"
        if self.failures:
            text += f", {len(self.failures)} failed"
        return text


@dataclass
class DownloadResult:
    path: Optional[Path]
    batch: BatchResult


class TagPrintSession:
    """
    Print/download session over the tags of one order.

    Usage:
        with TagPrintSession(labels, size="small") as session:
            session.sheet.toggle(2)
            result = session.download("/tmp")
            print(result.batch.summary("saved"))
    """

    def __init__(self, labels: Sequence[ItemLabel],
                 size: Union[str, LabelSizePreset] = config.DEFAULT_LABEL_SIZE,
                 columns: int = config.DEFAULT_COLUMNS,
                 matrix_encoder: MatrixEncoder = create_qr_image,
                 max_workers: int = config.MAX_WORKERS,
                 strict: bool = False):
        self.sheet = LabelSheet(labels, columns)
        self.preset = get_label_size(size) if isinstance(size, str) else size
        self.matrix_encoder = matrix_encoder
        self.strict = strict
        self._cancelled = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers),
                                            thread_name_prefix="tagprint-matrix")
        self._futures = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def set_size(self, size: Union[str, LabelSizePreset]):
        self.preset = get_label_size(size) if isinstance(size, str) else size

    def cancel(self):
        """Abandon the session; pending QR jobs are dropped."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        for future in self._futures:
            future.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Tag printing session cancelled")

    def close(self):
        if not self._cancelled.is_set():
            self._executor.shutdown(wait=True)

    def _check_cancelled(self):
        if self._cancelled.is_set():
            raise SessionCancelled()

    def compose(self, labels: Optional[Sequence[ItemLabel]] = None) -> BatchResult:
        """
        Compose ``labels`` (default: the selected ones) in order.

        Raises:
            SessionCancelled: the session was cancelled before composition finished
        """
        self._check_cancelled()
        labels = self.sheet.selected if labels is None else list(labels)
        batch = BatchResult(requested=len(labels))
        if not labels:
            return batch

        logger.info(f"Composing {len(labels)} tag(s) at {self.preset.name} size")

        # Phase 1: QR images, concurrently
        self._futures = submit_matrix_jobs(
            self._executor, [label.matrix_payload for label in labels],
            self.preset.qr_size, self.matrix_encoder)
        matrices = collect_matrix_results(
            [label.tag_code for label in labels], self._futures, self._cancelled.is_set)
        self._futures = []
        if matrices is None:
            raise SessionCancelled()

        # Phase 2: composition, in selection order
        for label, matrix in zip(labels, matrices):
            self._check_cancelled()
            if not matrix.ok:
                batch.missing_matrix.append(label)
            try:
                surface = create_item_tag_image(label, self.preset, matrix.image,
                                                strict=self.strict)
            except (TagPrintError, ValueError) as e:
                logger.error(f"Tag {label.tag_code} could not be composed: {e}")
                batch.failures.append(LabelFailure(label, e))
                continue
            batch.labels.append(label)
            batch.surfaces.append(surface)

        return batch

    def preview(self, index: int) -> Image.Image:
        """Compose the tag at ``index`` for display."""
        batch = self.compose([self.sheet.labels[index]])
        if batch.failures:
            raise batch.failures[0].error
        return batch.surfaces[0]

    def download(self, directory: Union[str, Path]) -> Optional[DownloadResult]:
        """
        Save the selected tags as one PNG in ``directory``.

        Returns:
            None for an empty selection; otherwise the saved path (None if
            every tag failed) and the batch result
        """
        if self.sheet.is_empty:
            logger.info("Download requested with no tags selected")
            return None

        batch = self.compose()
        self._check_cancelled()
        image = pack(batch.surfaces, self.sheet.columns, PackMode.COMBINE)
        if image is None:
            return DownloadResult(None, batch)

        path = Path(directory) / download_filename(batch.labels)
        path.parent.mkdir(parents=True, exist_ok=True)
        image.save(path, format="PNG")
        logger.info(f"Saved {path} ({batch.summary('saved')})")
        return DownloadResult(path, batch)

    def print(self, pipeline) -> Optional[BatchResult]:
        """
        Print the selected tags through ``pipeline``.

        Returns:
            None for an empty selection, otherwise the batch result
        """
        if self.sheet.is_empty:
            logger.info("Print requested with no tags selected")
            return None

        batch = self.compose()
        self._check_cancelled()
        if batch.surfaces:
            print_sheet(batch.surfaces, pipeline, title=print_title(batch.labels[0].order_number))
        logger.info(batch.summary())
        return batch
