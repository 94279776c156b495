"""
Host print pipelines for item tag print documents.

A pipeline takes a PrintDocument in one call to print_document(); the
sheet packer releases the document afterwards.

- BrowserPrintPipeline: writes the HTML page and opens it in the default
  browser, where it opens the print dialog on load and closes itself
- QLPrintPipeline: sends each tile straight to a Brother QL printer
"""

import os
import tempfile
import threading
import webbrowser
from contextlib import contextmanager, redirect_stderr
from pathlib import Path
from typing import Callable, Optional

from PIL import Image
from brother_ql.backends.helpers import send
from brother_ql.conversion import convert
from brother_ql.raster import BrotherQLRaster

from . import config
from .exceptions import TagPrintError
from .logging_config import get_logger
from .sheet import PrintDocument

logger = get_logger(__name__)


@contextmanager
def silenced_stderr():
    """Send anything written to stderr inside the block to the null device."""
    with open(os.devnull, "w") as devnull, redirect_stderr(devnull):
        yield


class BrowserPrintPipeline:
    """
    Hand the print page to the system browser.

    The page is deleted ``cleanup_delay`` seconds after it was opened,
    which leaves the browser time to load it. The timer keeps the process
    alive until then; call cleanup() to delete the pages right away.

    Args:
        directory: Where to write the page (default: a temp directory)
        opener: Called with the page's file URL (default: webbrowser.open)
        cleanup_delay: Seconds to keep the page; None keeps it
    """

    def __init__(self, directory: Optional[str] = None,
                 opener: Callable[[str], bool] = webbrowser.open,
                 cleanup_delay: Optional[float] = config.PRINT_PAGE_TTL):
        self.directory = directory
        self.opener = opener
        self.cleanup_delay = cleanup_delay
        self.last_path: Optional[Path] = None
        self._pages = []
        self._timers = []
        self._lock = threading.Lock()

    def print_document(self, document: PrintDocument):
        if document.released:
            raise TagPrintError("Print document was already released")

        fd, path = tempfile.mkstemp(prefix="tagprint-", suffix=".html", dir=self.directory)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(document.html)
        page = Path(path)
        self.last_path = page
        with self._lock:
            self._pages.append(page)

        url = page.as_uri()
        logger.info(f"Opening print page {url} ({len(document)} tiles)")
        if not self.opener(url):
            self.remove_page(page)
            raise TagPrintError("No browser available to print the tags", {"path": str(page)})

        if self.cleanup_delay is not None:
            timer = threading.Timer(self.cleanup_delay, self.remove_page, args=(page,))
            with self._lock:
                self._timers.append(timer)
            timer.start()

    def remove_page(self, page: Path):
        with self._lock:
            if page not in self._pages:
                return
            self._pages.remove(page)
        page.unlink(missing_ok=True)
        logger.debug(f"Removed print page {page}")

    def cleanup(self):
        """Delete every page written so far, without waiting for the timers."""
        with self._lock:
            timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        for page in list(self._pages):
            self.remove_page(page)


def scale_to_tape(image: Image.Image, tape_width_mm: int) -> Image.Image:
    """
    Scale a tag so its width matches the tape width in printer pixels.

    Nearest-neighbour keeps the barcode modules sharp.
    """
    if tape_width_mm not in config.TAPE_WIDTHS:
        raise ValueError(f"Unsupported tape width: {tape_width_mm}mm. "
                         f"Supported: {list(config.TAPE_WIDTHS.keys())}")
    target_width = config.TAPE_WIDTHS[tape_width_mm]
    target_height = round(image.height * target_width / image.width)
    return image.convert("RGB").resize((target_width, target_height), Image.Resampling.NEAREST)


class QLPrintPipeline:
    """Print each tile of the document on a Brother QL continuous tape."""

    def __init__(self, tape_width_mm: int = config.DEFAULT_TAPE_WIDTH,
                 printer: str = config.DEFAULT_PRINTER,
                 backend: str = config.DEFAULT_BACKEND,
                 model: str = config.PRINTER_MODEL,
                 rotate: int = 0):
        if tape_width_mm not in config.TAPE_WIDTHS:
            raise ValueError(f"Unsupported tape width: {tape_width_mm}mm. "
                             f"Supported: {list(config.TAPE_WIDTHS.keys())}")
        self.tape_width_mm = tape_width_mm
        self.printer = printer
        self.backend = backend
        self.model = model
        self.rotate = rotate

    def print_document(self, document: PrintDocument):
        if document.released:
            raise TagPrintError("Print document was already released")

        qlr = BrotherQLRaster(self.model)
        images = [scale_to_tape(tile, self.tape_width_mm) for tile in document.tiles]

        instructions = convert(
            qlr=qlr,
            images=images,
            label=str(self.tape_width_mm),
            rotate=self.rotate,
            threshold=70,
            dither=False,
            compress=False,
            red=False,
            cut=True,
        )

        logger.info(f"Sending {len(images)} tag(s) to {self.model} at {self.printer}")
        # brother_ql warns about the operating mode on stderr
        with silenced_stderr():
            send(
                instructions=instructions,
                printer_identifier=self.printer,
                backend_identifier=self.backend,
                blocking=True
            )
