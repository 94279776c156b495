"""
Rasterize encoded symbols onto Pillow images.

The bars of a symbol are scaled to fill the requested width minus a quiet
zone on each side. The human-readable text is drawn centered under the
bars.
"""

import math
from functools import lru_cache
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from . import config
from .exceptions import CanvasUnavailable, LayoutTooSmall
from .logging_config import get_logger
from .symbology import EncodedSymbol, encode, normalize_identifier

logger = get_logger(__name__)

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)

# Space between the bottom of the bars and the text line
TEXT_GAP = 1

# Narrower modules collapse when rounded to pixels and drop bars
MIN_MODULE_PX = 1


@lru_cache(maxsize=32)
def load_font(font_path: Optional[str], size: int) -> ImageFont.FreeTypeFont:
    """
    Load a TrueType font, falling back to Pillow's bundled font.

    Args:
        font_path: Path to a .ttf file, or None for the bundled font
        size: Font size in pixels
    """
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError:
            logger.debug(f"Font {font_path} not loadable, using bundled font")
    return ImageFont.load_default(size)


def allocate_surface(width: int, height: int) -> Image.Image:
    """
    Create a white RGB drawing surface.

    Raises:
        CanvasUnavailable: the size is invalid or the image cannot be allocated
    """
    if width <= 0 or height <= 0:
        raise CanvasUnavailable(f"Invalid surface size {width}x{height}", width, height)
    try:
        return Image.new("RGB", (width, height), WHITE)
    except (ValueError, MemoryError, Image.DecompressionBombError) as e:
        raise CanvasUnavailable(f"Cannot allocate {width}x{height} surface: {e}",
                                width, height) from e


def get_draw(surface: Optional[Image.Image]) -> ImageDraw.ImageDraw:
    """Drawing context for ``surface``, or CanvasUnavailable."""
    if surface is None:
        raise CanvasUnavailable("No drawing surface supplied")
    try:
        return ImageDraw.Draw(surface)
    except (ValueError, AttributeError) as e:
        raise CanvasUnavailable(f"Cannot draw on surface: {e}") from e


def to_pixel(x: float) -> int:
    """Round half up, so a run of one module or more always covers a pixel."""
    return math.floor(x + 0.5)


def text_line_height(font: ImageFont.FreeTypeFont) -> int:
    ascent, descent = font.getmetrics()
    return ascent + descent


def module_width(symbol: EncodedSymbol, width: float, padding: float) -> float:
    """
    Pixel width of one module when ``symbol`` fills ``width``.

    Raises:
        LayoutTooSmall: a module would be narrower than MIN_MODULE_PX
    """
    unit_width = (width - 2 * padding) / symbol.units_total
    if unit_width <= 0:
        raise LayoutTooSmall(width, padding, symbol.units_total)
    if unit_width < MIN_MODULE_PX:
        raise LayoutTooSmall(
            width, padding, symbol.units_total,
            message=f"Barcode width {width}px gives {unit_width:.2f}px modules for "
                    f"{symbol.text!r}; at least {MIN_MODULE_PX}px is needed"
        )
    return unit_width


def render_barcode(symbol: EncodedSymbol, width: int, height: int,
                   display_text: Optional[str] = None,
                   surface: Optional[Image.Image] = None,
                   origin: Tuple[int, int] = (0, 0),
                   padding: float = config.QUIET_ZONE_PX,
                   top: int = 0,
                   font: Optional[ImageFont.FreeTypeFont] = None,
                   font_size: int = 12) -> Image.Image:
    """
    Draw ``symbol`` into the ``width`` x ``height`` box at ``origin``.

    Layout (top to bottom): ``top`` px blank, bars, text line.

    Args:
        symbol: Encoded symbol from symbology.encode()
        width: Box width in pixels, quiet zones included
        height: Box height in pixels
        display_text: Text under the bars (default: the symbol text,
            "" for none)
        surface: Image to draw on; a white one is allocated if None
        origin: Top-left corner of the box on ``surface``
        padding: Quiet zone on each side, in pixels
        top: Blank space above the bars
        font: Font for the text (default: monospace at ``font_size``)
        font_size: Size of the default font

    Returns:
        The surface that was drawn on

    Raises:
        LayoutTooSmall: the box cannot hold the modules or the bars
        CanvasUnavailable: no surface could be allocated or drawn on
    """
    unit_width = module_width(symbol, width, padding)

    if display_text is None:
        display_text = symbol.text
    if display_text and font is None:
        font = load_font(config.MONO_FONT_PATH, font_size)
    text_height = text_line_height(font) + TEXT_GAP if display_text else 0

    bar_height = height - top - text_height
    if bar_height <= 0:
        raise LayoutTooSmall(
            width, padding, symbol.units_total,
            message=f"Barcode height {height}px leaves no room for bars under "
                    f"{top}px top margin and {text_height}px text line"
        )

    if surface is None:
        surface = allocate_surface(origin[0] + width, origin[1] + height)
    draw = get_draw(surface)

    ox, oy = origin
    bar_top = oy + top
    bar_bottom = bar_top + bar_height - 1

    x = ox + padding
    for module, is_bar in symbol.modules():
        run = module * unit_width
        if is_bar:
            x0 = to_pixel(x)
            x1 = to_pixel(x + run) - 1
            if x1 >= x0:
                draw.rectangle([(x0, bar_top), (x1, bar_bottom)], fill=BLACK)
        x += run

    if display_text:
        draw.text((ox + width / 2, oy + height - 1), display_text,
                  font=font, fill=BLACK, anchor="md")

    return surface


def create_order_barcode_image(order_number: str,
                               width: int = config.ORDER_BARCODE_WIDTH,
                               height: int = config.ORDER_BARCODE_HEIGHT) -> Image.Image:
    """
    Create the order barcode card: the order number as a barcode with the
    number printed underneath in bold monospace.

    Only the alphanumeric characters of ``order_number`` are encoded.
    """
    symbol = encode(order_number)
    font = load_font(config.MONO_BOLD_FONT_PATH, 12)
    surface = allocate_surface(width, height)
    render_barcode(symbol, width, height, display_text=format_order_number(order_number),
                   surface=surface, padding=config.QUIET_ZONE_PX, top=8, font=font)
    return surface


def format_order_number(order_number: str) -> str:
    """Order number as shown to people: trimmed, uppercased, without a leading "#"."""
    return order_number.strip().lstrip("#").strip().upper()


def order_barcode_filename(order_number: str) -> str:
    return f"barcode-order-{normalize_identifier(order_number) or 'unknown'}.png"
