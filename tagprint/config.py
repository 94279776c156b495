"""
Configuration for the tag printer.

Label geometry is fixed in code; deployment specifics (API location,
fonts, printer) can be overridden from the environment or a .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class LabelSizePreset:
    """Canvas size, QR size and base font size of one tag size."""
    name: str
    width: int
    height: int
    qr_size: int
    font_size: int
    description: str


# Item tag sizes (pixels)
LABEL_SIZES = {
    "small": LabelSizePreset("small", 200, 120, 50, 8, 'Small (2" x 1")'),
    "medium": LabelSizePreset("medium", 280, 160, 70, 10, 'Medium (2.5" x 1.5")'),
    "large": LabelSizePreset("large", 380, 220, 100, 12, 'Large (3.5" x 2")'),
}
DEFAULT_LABEL_SIZE = "medium"


def get_label_size(name: str) -> LabelSizePreset:
    """Look up a size preset by name ("small", "medium" or "large")."""
    if name not in LABEL_SIZES:
        raise ValueError(f"Unsupported label size: {name}. "
                         f"Supported: {list(LABEL_SIZES.keys())}")
    return LABEL_SIZES[name]


# ── Sheet geometry ─────────────────────────────────────────────────────
DEFAULT_COLUMNS = 2
SHEET_GAP = 10
SHEET_MARGIN = 10

# ── Barcode geometry ───────────────────────────────────────────────────
QUIET_ZONE_PX = 15          # order barcode card
TAG_QUIET_ZONE_PX = 6       # barcode band on item tags
TAG_BAR_HEIGHT = 20
ORDER_BARCODE_WIDTH = 250
ORDER_BARCODE_HEIGHT = 80

# ── Fonts ──────────────────────────────────────────────────────────────
# Pillow's bundled font is used when these cannot be loaded
FONT_PATH = os.environ.get(
    "TAGPRINT_FONT", "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf")
BOLD_FONT_PATH = os.environ.get(
    "TAGPRINT_BOLD_FONT", "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf")
MONO_FONT_PATH = os.environ.get(
    "TAGPRINT_MONO_FONT", "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf")
MONO_BOLD_FONT_PATH = os.environ.get(
    "TAGPRINT_MONO_BOLD_FONT", "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf")

# ── REST API ───────────────────────────────────────────────────────────
API_BASE_URL = os.environ.get("TAGPRINT_API_BASE_URL", "http://localhost:5000")
API_TOKEN = os.environ.get("TAGPRINT_API_TOKEN") or None
API_TIMEOUT = float(os.environ.get("TAGPRINT_API_TIMEOUT", "15"))

# Shown before order totals on printed order cards
CURRENCY_SYMBOL = os.environ.get("TAGPRINT_CURRENCY", "₹")

# Seconds a browser print page stays on disk after it was opened
PRINT_PAGE_TTL = float(os.environ.get("TAGPRINT_PRINT_PAGE_TTL", "20"))

# ── Workers ────────────────────────────────────────────────────────────
MAX_WORKERS = int(os.environ.get("TAGPRINT_WORKERS", "4"))

# ── Logging ────────────────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("TAGPRINT_LOG_LEVEL", "INFO").upper()
LOG_DIR = os.environ.get("TAGPRINT_LOG_DIR") or None

# ── Brother QL direct printing ─────────────────────────────────────────
PRINTER_MODEL = os.environ.get("TAGPRINT_PRINTER_MODEL", "QL-700")
DEFAULT_PRINTER = os.environ.get("TAGPRINT_PRINTER", "usb://0x04f9:0x2042")
DEFAULT_BACKEND = os.environ.get("TAGPRINT_BACKEND", "pyusb")
DEFAULT_TAPE_WIDTH = int(os.environ.get("TAGPRINT_TAPE_WIDTH", "62"))

# Tape width specifications (at 300 DPI)
TAPE_WIDTHS = {
    29: 306,   # 29mm = 306 pixels
    38: 413,   # 38mm = 413 pixels
    50: 554,   # 50mm = 554 pixels
    62: 696,   # 62mm = 696 pixels
}
