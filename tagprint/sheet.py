"""
Pack composed tags into one artifact.

Two outputs:
- COMBINE: one PNG with the tags on a fixed-column grid (download)
- PRINT_DOCUMENT: an HTML page with one image tile per tag that prints
  itself when opened (host print pipeline)

The order barcode card has its own print page (OrderCardDocument) with
an optional order summary under the barcode.

An empty selection produces nothing: pack() returns None and the caller
keeps its download/print actions disabled.
"""

import base64
import enum
import html
import math
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Iterable, List, Optional, Sequence

from PIL import Image

from . import config
from .barcode import allocate_surface, create_order_barcode_image, format_order_number
from .logging_config import get_logger
from .print_label import ItemLabel

logger = get_logger(__name__)


class PackMode(enum.Enum):
    COMBINE = "combine"
    PRINT_DOCUMENT = "print"


class LabelSheet:
    """
    The tags of one order and which of them are selected.

    Selected labels are always reported in the order the labels were
    given, whatever order they were clicked in.
    """

    def __init__(self, labels: Sequence[ItemLabel], columns: int = config.DEFAULT_COLUMNS,
                 select_all: bool = True):
        if columns < 1:
            raise ValueError(f"columns must be at least 1, got {columns}")
        self.labels = list(labels)
        self.columns = columns
        self._selected = set(range(len(self.labels))) if select_all else set()

    def __len__(self) -> int:
        return len(self.labels)

    def is_selected(self, index: int) -> bool:
        return index in self._selected

    def toggle(self, index: int) -> bool:
        """Flip the selection of label ``index``; returns the new state."""
        if not 0 <= index < len(self.labels):
            raise IndexError(f"No label at index {index}")
        if index in self._selected:
            self._selected.discard(index)
            return False
        self._selected.add(index)
        return True

    def set_selected(self, index: int, selected: bool):
        if self.is_selected(index) != selected:
            self.toggle(index)

    def select_all(self):
        self._selected = set(range(len(self.labels)))

    def deselect_all(self):
        self._selected = set()

    @property
    def selected(self) -> List[ItemLabel]:
        return [label for i, label in enumerate(self.labels) if i in self._selected]

    @property
    def is_empty(self) -> bool:
        """True when nothing is selected; download/print stay disabled."""
        return not self._selected

    @property
    def summary(self) -> str:
        return f"{len(self._selected)} of {len(self.labels)} selected"


def grid_size(count: int, columns: int, label_width: int, label_height: int,
              gap: int = config.SHEET_GAP, margin: int = config.SHEET_MARGIN):
    """Pixel size of a sheet holding ``count`` labels; also returns the row count."""
    rows = math.ceil(count / columns)
    width = columns * label_width + (columns - 1) * gap + 2 * margin
    height = rows * label_height + (rows - 1) * gap + 2 * margin
    return width, height, rows


def grid_position(index: int, columns: int, label_width: int, label_height: int,
                  gap: int = config.SHEET_GAP, margin: int = config.SHEET_MARGIN):
    """Top-left corner of label ``index`` (row-major)."""
    col = index % columns
    row = index // columns
    return margin + col * (label_width + gap), margin + row * (label_height + gap)


def combine_labels(surfaces: Sequence[Image.Image], columns: int = config.DEFAULT_COLUMNS,
                   gap: int = config.SHEET_GAP,
                   margin: int = config.SHEET_MARGIN) -> Optional[Image.Image]:
    """
    Lay ``surfaces`` out on a grid, left to right, top to bottom.

    A single label is returned as-is, without a grid around it.
    """
    if not surfaces:
        logger.info("No labels selected, nothing to combine")
        return None
    if columns < 1:
        raise ValueError(f"columns must be at least 1, got {columns}")
    if len(surfaces) == 1:
        return surfaces[0]

    # All tags of a session share one preset; the largest wins otherwise
    label_width = max(s.width for s in surfaces)
    label_height = max(s.height for s in surfaces)

    sheet_width, sheet_height, rows = grid_size(
        len(surfaces), columns, label_width, label_height, gap, margin)
    sheet = allocate_surface(sheet_width, sheet_height)

    for i, surface in enumerate(surfaces):
        sheet.paste(surface, grid_position(i, columns, label_width, label_height, gap, margin))

    logger.debug(f"Combined {len(surfaces)} labels into {columns}x{rows} grid "
                 f"({sheet_width}x{sheet_height}px)")
    return sheet


def image_to_png_bytes(img: Image.Image) -> bytes:
    image_buffer = BytesIO()
    img.save(image_buffer, format="PNG")
    return image_buffer.getvalue()


def image_to_data_url(img: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(image_to_png_bytes(img)).decode("ascii")


PRINT_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <title>{title}</title>
    <style>
      @page {{
        size: auto;
        margin: 5mm;
      }}
      body {{
        margin: 0;
        padding: 10px;
        font-family: Arial, sans-serif;
      }}
      .labels-container {{
        display: flex;
        flex-wrap: wrap;
        gap: 10px;
        justify-content: flex-start;
      }}
      .label {{
        page-break-inside: avoid;
        break-inside: avoid;
        border: 1px dashed #ccc;
        padding: 5px;
      }}
      .label img {{
        display: block;
      }}
      @media print {{
        .label {{
          border: none;
          padding: 2px;
        }}
      }}
    </style>
  </head>
  <body>
    <div class="labels-container">
{tiles}
    </div>
    <script>
      window.onload = function() {{
        setTimeout(function() {{
          window.print();
          window.close();
        }}, 500);
      }}
    </script>
  </body>
</html>
"""

TILE_TEMPLATE = ('      <div class="label"><img src="{src}" '
                 'width="{width}" height="{height}" '
                 'style="width: {width}px; height: {height}px;" /></div>')


class PrintDocument:
    """
    HTML print page with one tile per tag, in selection order.

    The tile images are kept until release() so pipelines that print
    rasters directly (Brother QL) can use them.
    """

    def __init__(self, title: str, tiles: Sequence[Image.Image]):
        self.title = title
        self.tiles = list(tiles)
        self.html = self.render_html()
        self.released = False

    def render_html(self) -> str:
        tile_html = "\n".join(
            TILE_TEMPLATE.format(src=image_to_data_url(tile), width=tile.width, height=tile.height)
            for tile in self.tiles
        )
        return PRINT_TEMPLATE.format(title=html.escape(self.title), tiles=tile_html)

    def __len__(self) -> int:
        return len(self.tiles)

    def release(self):
        """Drop the tiles and markup once the host has taken the document."""
        self.tiles = []
        self.html = ""
        self.released = True


ORDER_CARD_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <title>{title}</title>
    <style>
      body {{
        display: flex;
        flex-direction: column;
        align-items: center;
        justify-content: center;
        min-height: 100vh;
        margin: 0;
        font-family: Arial, sans-serif;
      }}
      .container {{
        text-align: center;
        padding: 30px;
        min-width: 300px;
      }}
      .title {{
        font-size: 14px;
        color: #666;
        margin-bottom: 5px;
      }}
      .order {{
        font-size: 20px;
        font-weight: bold;
        margin-bottom: 15px;
      }}
      img {{
        border: 2px solid #e5e5e5;
        padding: 10px;
      }}
      .order-details {{
        margin-top: 20px;
        padding-top: 15px;
        border-top: 1px dashed #ddd;
        text-align: left;
      }}
      .detail-row {{
        display: flex;
        justify-content: space-between;
        padding: 6px 0;
        font-size: 13px;
      }}
      .label {{ color: #666; }}
      .value {{ font-weight: 600; color: #333; }}
      .total {{ font-size: 16px; }}
    </style>
  </head>
  <body>
    <div class="container">
      <div class="title">Laundry Order</div>
      <div class="order">#{order_number}</div>
      <img src="{src}" width="{width}" height="{height}" alt="Barcode" />
{details}
    </div>
    <script>
      window.onload = function() {{
        setTimeout(function() {{
          window.print();
          window.close();
        }}, 300);
      }}
    </script>
  </body>
</html>
"""

DETAIL_ROW_TEMPLATE = ('        <div class="detail-row"><span class="label">{label}:</span>'
                       '<span class="value{extra_class}">{value}</span></div>')


@dataclass(frozen=True)
class OrderDetails:
    """Optional order summary printed under the order barcode."""
    status: str = ""
    item_count: Optional[int] = None
    total: Optional[float] = None
    estimated_delivery: str = ""


def format_delivery_date(value: str) -> str:
    """ISO date as "18 Oct"; anything unparseable is shown as given."""
    try:
        date = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{date.day} {date:%b}"


def format_total(total: float) -> str:
    if isinstance(total, float) and total.is_integer():
        total = int(total)
    return f"{config.CURRENCY_SYMBOL}{total}"


def order_details_rows(details: OrderDetails) -> List[str]:
    rows = []
    if details.status:
        rows.append(DETAIL_ROW_TEMPLATE.format(
            label="Status", extra_class=f" status-{html.escape(details.status)}",
            value=html.escape(details.status.replace("_", " ").upper())))
    if details.item_count is not None:
        rows.append(DETAIL_ROW_TEMPLATE.format(
            label="Items", extra_class="", value=f"{details.item_count} item(s)"))
    if details.total is not None:
        rows.append(DETAIL_ROW_TEMPLATE.format(
            label="Total", extra_class=" total", value=html.escape(format_total(details.total))))
    if details.estimated_delivery:
        rows.append(DETAIL_ROW_TEMPLATE.format(
            label="Est. Delivery", extra_class="",
            value=html.escape(format_delivery_date(details.estimated_delivery))))
    return rows


class OrderCardDocument(PrintDocument):
    """
    Print page for one order barcode card, with an optional order summary.

    The card image is the only tile, so raster pipelines print just the
    barcode card.
    """

    def __init__(self, order_number: str, card: Image.Image,
                 details: Optional[OrderDetails] = None):
        self.order_number = format_order_number(order_number)
        self.details = details
        super().__init__(order_card_title(order_number), [card])

    def render_html(self) -> str:
        card = self.tiles[0]
        rows = order_details_rows(self.details) if self.details else []
        details_html = ""
        if rows:
            details_html = ('      <div class="order-details">\n' + "\n".join(rows)
                            + "\n      </div>")
        return ORDER_CARD_TEMPLATE.format(
            title=html.escape(self.title),
            order_number=html.escape(self.order_number),
            src=image_to_data_url(card), width=card.width, height=card.height,
            details=details_html,
        )


def print_order_card(order_number: str, pipeline,
                     details: Optional[OrderDetails] = None,
                     width: int = config.ORDER_BARCODE_WIDTH,
                     height: int = config.ORDER_BARCODE_HEIGHT) -> OrderCardDocument:
    """
    Draw the order barcode card and hand its print page to ``pipeline``.

    The document is released after the pipeline returns.
    """
    card = create_order_barcode_image(order_number, width=width, height=height)
    document = OrderCardDocument(order_number, card, details)
    try:
        pipeline.print_document(document)
    finally:
        document.release()
    logger.info(f"Sent order card {document.order_number} to {type(pipeline).__name__}")
    return document


def pack(surfaces: Sequence[Image.Image], columns: int = config.DEFAULT_COLUMNS,
         mode: PackMode = PackMode.COMBINE, title: str = "Item Tags"):
    """
    Pack composed tags.

    Returns:
        COMBINE: the sheet image (the tag itself for a single tag)
        PRINT_DOCUMENT: a PrintDocument
        None when ``surfaces`` is empty
    """
    if not surfaces:
        logger.info("Empty selection, nothing to pack")
        return None
    if mode is PackMode.COMBINE:
        return combine_labels(surfaces, columns)
    if mode is PackMode.PRINT_DOCUMENT:
        return PrintDocument(title, surfaces)
    raise ValueError(f"Unknown pack mode: {mode!r}")


def print_sheet(surfaces: Sequence[Image.Image], pipeline, title: str = "Item Tags") -> bool:
    """
    Build the print document and hand it to ``pipeline``.

    The document is released after the pipeline returns, whether or not
    printing succeeded.

    Returns:
        False for an empty selection, True once the pipeline took the document
    """
    document = pack(surfaces, mode=PackMode.PRINT_DOCUMENT, title=title)
    if document is None:
        return False
    try:
        pipeline.print_document(document)
    finally:
        document.release()
    logger.info(f"Sent {len(surfaces)} tag(s) to {type(pipeline).__name__}")
    return True


def print_title(order_number: str) -> str:
    return f"Item Tags - Order {order_number}"


def tag_filename(label: ItemLabel) -> str:
    return f"tag-{label.tag_code}.png"


def sheet_filename(order_number: str) -> str:
    return f"tags-order-{order_number}.png"


def download_filename(labels: Iterable[ItemLabel]) -> str:
    """Tag code for a single tag, order number for a sheet."""
    labels = list(labels)
    if not labels:
        raise ValueError("No labels to name a download after")
    if len(labels) == 1:
        return tag_filename(labels[0])
    return sheet_filename(labels[0].order_number)


def order_card_title(order_number: str) -> str:
    return f"Order - {format_order_number(order_number)}"
