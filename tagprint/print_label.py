"""
Compose item tags for laundry orders.

One tag per garment/item of an order. Fixed canvas per size preset:

    +--------------------------------------+
    | Order: ORD-1042              [ 2/5 ] |
    | Customer Name               +------+ |
    | Shirt - Dry Clean           |  QR  | |
    | Category: Formal            |      | |
    | Starch lightly, no fold...  +------+ |
    |  ||| |||| || ||| | |||| || ||| |||   |
    |            IT1042000002              |
    +--------------------------------------+

The QR image is produced beforehand (see tagprint.matrix); composition
itself is synchronous and deterministic.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from PIL import Image, ImageDraw, ImageFont

from . import config
from .barcode import (BLACK, TEXT_GAP, allocate_surface, get_draw, load_font,
                      render_barcode, text_line_height)
from .config import LabelSizePreset, get_label_size
from .logging_config import get_logger
from .symbology import encode

logger = get_logger(__name__)

PADDING = 8
BORDER_INSET = 2
BADGE_COLOR = (240, 240, 240)          # #f0f0f0
MUTED_COLOR = (102, 102, 102)          # #666666
ATTENTION_COLOR = (204, 102, 0)        # #cc6600

INSTRUCTIONS_MAX_CHARS = 30
ELLIPSIS = "..."


@dataclass(frozen=True)
class ItemLabel:
    """Everything printed on one item tag."""
    tag_code: str
    order_number: str
    item_type: str = ""
    service: str = ""
    category: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    special_instructions: str = ""
    qr_data: str = ""
    item_number: int = 1
    total_items: int = 1
    order_barcode: str = ""
    created_at: str = ""
    print_date: str = ""

    @property
    def position(self) -> str:
        return f"{self.item_number}/{self.total_items}"

    @property
    def matrix_payload(self) -> str:
        return self.qr_data or self.tag_code

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ItemLabel":
        """
        Build a label from the labels endpoint's JSON (camelCase keys).

        Raises:
            ValueError: tagCode or orderNumber is missing
        """
        tag_code = data.get("tagCode")
        order_number = data.get("orderNumber")
        if not tag_code or not order_number:
            raise ValueError(f"Label record needs tagCode and orderNumber: {data!r}")
        return cls(
            tag_code=str(tag_code),
            order_number=str(order_number),
            item_type=data.get("itemType") or "",
            service=data.get("service") or "",
            category=data.get("category") or "",
            customer_name=data.get("customerName") or "",
            customer_phone=data.get("customerPhone") or "",
            special_instructions=data.get("specialInstructions") or "",
            qr_data=data.get("qrData") or "",
            item_number=int(data.get("itemNumber") or 1),
            total_items=int(data.get("totalItems") or 1),
            order_barcode=data.get("orderBarcode") or "",
            created_at=data.get("createdAt") or "",
            print_date=data.get("printDate") or "",
        )


def truncate_instructions(text: str, limit: int = INSTRUCTIONS_MAX_CHARS) -> str:
    """First ``limit`` characters plus an ellipsis, or the text unchanged."""
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def fit_text(draw: ImageDraw.ImageDraw, text: str, font: ImageFont.FreeTypeFont,
             max_width: float) -> str:
    """Shorten ``text`` with an ellipsis until it fits ``max_width`` pixels."""
    if draw.textlength(text, font=font) <= max_width:
        return text
    base = text[:-len(ELLIPSIS)] if text.endswith(ELLIPSIS) else text
    while base:
        base = base[:-1]
        candidate = base.rstrip() + ELLIPSIS
        if draw.textlength(candidate, font=font) <= max_width:
            return candidate
    return ""


def barcode_band_height(font: ImageFont.FreeTypeFont) -> int:
    """Height of the bars plus the tag code line under them."""
    return config.TAG_BAR_HEIGHT + text_line_height(font) + TEXT_GAP


def create_item_tag_image(label: ItemLabel,
                          preset: Union[str, LabelSizePreset] = config.DEFAULT_LABEL_SIZE,
                          matrix_image: Optional[Image.Image] = None,
                          strict: bool = False) -> Image.Image:
    """
    Create one item tag.

    Args:
        label: Tag contents
        preset: Size preset or its name ("small", "medium", "large")
        matrix_image: QR image for ``label.matrix_payload``; None leaves
            the QR region blank
        strict: Raise UnsupportedCharacter instead of substituting

    Raises:
        LayoutTooSmall: the tag code does not fit the barcode band
        CanvasUnavailable: the tag surface could not be allocated
    """
    if isinstance(preset, str):
        preset = get_label_size(preset)

    width, height = preset.width, preset.height
    font_size = preset.font_size
    qr_size = preset.qr_size

    # Encode first so an unusable tag code fails before any drawing
    symbol = encode(label.tag_code, strict=strict)

    img = allocate_surface(width, height)
    draw = get_draw(img)

    header_font = load_font(config.BOLD_FONT_PATH, font_size + 2)
    bold_font = load_font(config.BOLD_FONT_PATH, font_size)
    regular_font = load_font(config.FONT_PATH, font_size)
    note_font = load_font(config.FONT_PATH, max(font_size - 1, 1))
    mono_font = load_font(config.MONO_FONT_PATH, font_size)

    # Border
    draw.rectangle(
        [(BORDER_INSET, BORDER_INSET),
         (width - BORDER_INSET - 1, height - BORDER_INSET - 1)],
        outline=BLACK,
        width=1
    )

    # Text column ends where the QR code begins
    text_max_width = width - qr_size - PADDING * 3

    # Header: order number and item position badge
    y = PADDING + 5
    draw.text((PADDING, y), f"Order: {label.order_number}",
              font=header_font, fill=BLACK, anchor="ls")

    position = label.position
    position_width = round(draw.textlength(position, font=regular_font))
    badge_x = width - PADDING - position_width - 8
    draw.rectangle(
        [(badge_x, y - font_size), (badge_x + position_width + 8 - 1, y + 4 - 1)],
        fill=BADGE_COLOR
    )
    draw.text((width - PADDING - position_width - 4, y), position,
              font=regular_font, fill=BLACK, anchor="ls")
    y += font_size + 8

    # Customer name
    draw.text((PADDING, y), fit_text(draw, label.customer_name, bold_font, text_max_width),
              font=bold_font, fill=BLACK, anchor="ls")
    y += font_size + 4

    # Item type and service
    item_line = f"{label.item_type} - {label.service}"
    draw.text((PADDING, y), fit_text(draw, item_line, regular_font, text_max_width),
              font=regular_font, fill=BLACK, anchor="ls")
    y += font_size + 4

    # Category
    category_line = f"Category: {label.category}"
    draw.text((PADDING, y), fit_text(draw, category_line, regular_font, text_max_width),
              font=regular_font, fill=MUTED_COLOR, anchor="ls")
    y += font_size + 6

    # Special instructions
    if label.special_instructions:
        note = truncate_instructions(label.special_instructions)
        note = fit_text(draw, note, note_font, text_max_width)
        draw.text((PADDING, y), note, font=note_font, fill=ATTENTION_COLOR, anchor="ls")

    # QR code (right side), blank until available
    if matrix_image is not None:
        qr_x = width - qr_size - PADDING
        qr_y = PADDING + font_size + 10
        if matrix_image.size != (qr_size, qr_size):
            matrix_image = matrix_image.resize((qr_size, qr_size), Image.Resampling.NEAREST)
        img.paste(matrix_image.convert("RGB"), (qr_x, qr_y))

    # Barcode band at the bottom, tag code centered under the bars
    band_height = barcode_band_height(mono_font)
    band_y = height - BORDER_INSET - 1 - band_height
    render_barcode(symbol, width - PADDING * 2, band_height,
                   display_text=label.tag_code, surface=img,
                   origin=(PADDING, band_y), padding=config.TAG_QUIET_ZONE_PX,
                   font=mono_font)

    return img
