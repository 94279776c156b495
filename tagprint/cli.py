#!/usr/bin/env python3
"""
Command line for item tags and order barcodes.

Examples:
  tagprint labels 665f1c2e --download ./tags
  tagprint labels --from-json labels.json --size small --print browser
  tagprint order-barcode ORD-2024-1042 --output ./barcodes
  tagprint order-barcode ORD-2024-1042 --print browser --details
  tagprint scan IT1042000002 --set-status ready
"""

import argparse
import json
from pathlib import Path

from . import config
from .api_client import TagApiClient
from .barcode import create_order_barcode_image, order_barcode_filename
from .exceptions import TagPrintError
from .logging_config import get_logger, setup_logging
from .print_label import ItemLabel
from .printing import BrowserPrintPipeline, QLPrintPipeline
from .scan import (ITEM_STATUSES, describe_scan, print_order_card_for_scan, print_tags_for_scan,
                   scan_code, update_item_status)
from .session import TagPrintSession
from .sheet import print_order_card

logger = get_logger(__name__)


def load_labels_json(path: str):
    """Labels from a file holding the labels endpoint's response, its data, or a bare list."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    if isinstance(payload, dict):
        payload = payload.get("data", payload)
        if isinstance(payload, dict):
            payload = payload.get("labels", [])
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a list of labels, got {type(payload).__name__}")
    if not all(isinstance(record, dict) for record in payload):
        raise ValueError(f"{path}: every label must be a JSON object")
    return [ItemLabel.from_dict(record) for record in payload]


def make_client(args) -> TagApiClient:
    return TagApiClient(args.api_url, token=args.token)


def make_pipeline(args):
    if args.print == "ql":
        return QLPrintPipeline(tape_width_mm=args.tape_width, printer=args.printer,
                               backend=args.backend)
    return BrowserPrintPipeline()


def cmd_labels(args) -> int:
    if args.from_json:
        labels = load_labels_json(args.from_json)
    elif args.order_id:
        labels = make_client(args).fetch_labels(args.order_id)
    else:
        print("Error: give an order id or --from-json")
        return 1

    if not labels:
        print("No items found for this order")
        return 1

    if not args.download and not args.print:
        for label in labels:
            print(f"{label.tag_code}  {label.position:>5}  {label.item_type} - {label.service}")
        return 0

    with TagPrintSession(labels, size=args.size, columns=args.columns,
                         strict=args.strict) as session:
        if args.select:
            wanted = {code.strip().upper() for code in args.select.split(",")}
            for i, label in enumerate(session.sheet.labels):
                session.sheet.set_selected(i, label.tag_code.upper() in wanted)
        print(session.sheet.summary)
        if session.sheet.is_empty:
            print("Nothing selected.")
            return 1

        status = 0
        if args.download:
            result = session.download(args.download)
            if result.path:
                print(f"Saved: {result.path}")
            print(result.batch.summary("saved"))
            status = status or (0 if result.batch.ok else 1)
        if args.print:
            batch = session.print(make_pipeline(args))
            print(batch.summary())
            status = status or (0 if batch.ok else 1)
        return status


def cmd_order_barcode(args) -> int:
    if args.output or not args.print:
        img = create_order_barcode_image(args.order_number, width=args.width, height=args.height)
        output = Path(args.output or ".")
        output.mkdir(parents=True, exist_ok=True)
        path = output / order_barcode_filename(args.order_number)
        img.save(path, format="PNG")
        print(f"Saved: {path}")
        print(f"Image size: {img.size[0]} x {img.size[1]} pixels")

    if args.print:
        pipeline = make_pipeline(args)
        if args.details:
            document = print_order_card_for_scan(make_client(args), args.order_number, pipeline,
                                                 width=args.width, height=args.height)
        else:
            document = print_order_card(args.order_number, pipeline,
                                        width=args.width, height=args.height)
        print(f"Printed: {document.title}")
    return 0


def cmd_scan(args) -> int:
    client = make_client(args)
    if args.set_status:
        result = update_item_status(client, args.code, args.set_status)
    else:
        result = scan_code(client, args.code)

    for line in describe_scan(result):
        print(line)

    if args.print_tags:
        batch = print_tags_for_scan(client, result, make_pipeline(args), size=args.size)
        if batch is None:
            print("No items found for this order")
            return 1
        print(batch.summary())
        return 0 if batch.ok else 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tagprint",
        description="Item tags and order barcodes for laundry orders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument("--api-url", default=config.API_BASE_URL,
                        help=f"API base URL (default: {config.API_BASE_URL})")
    parser.add_argument("--token", default=config.API_TOKEN,
                        help="Bearer token for the API")
    parser.add_argument("--log-level", default=config.LOG_LEVEL,
                        help=f"Log level (default: {config.LOG_LEVEL})")

    sizing = argparse.ArgumentParser(add_help=False)
    sizing.add_argument("--size", default=config.DEFAULT_LABEL_SIZE,
                        choices=list(config.LABEL_SIZES.keys()),
                        help=f"Tag size (default: {config.DEFAULT_LABEL_SIZE})")

    printing = argparse.ArgumentParser(add_help=False)
    printing.add_argument("--print", choices=["browser", "ql"],
                          help="Print through the browser or a Brother QL printer")
    printing.add_argument("--tape-width", type=int, default=config.DEFAULT_TAPE_WIDTH,
                          choices=list(config.TAPE_WIDTHS.keys()),
                          help=f"Brother QL tape width in mm (default: {config.DEFAULT_TAPE_WIDTH})")
    printing.add_argument("--printer", default=config.DEFAULT_PRINTER,
                          help=f"Printer URI (default: {config.DEFAULT_PRINTER})")
    printing.add_argument("--backend", default=config.DEFAULT_BACKEND,
                          choices=["pyusb", "linux_kernel", "network"],
                          help=f"Backend (default: {config.DEFAULT_BACKEND})")

    sub = parser.add_subparsers(dest="command", required=True)

    labels = sub.add_parser("labels", parents=[sizing, printing], help="Download or print item tags")
    labels.add_argument("order_id", nargs="?", help="Order id to fetch tags for")
    labels.add_argument("--from-json", help="Read labels from a JSON file instead of the API")
    labels.add_argument("--select", help="Comma separated tag codes (default: all)")
    labels.add_argument("--columns", type=int, default=config.DEFAULT_COLUMNS,
                        help=f"Columns in the downloaded sheet (default: {config.DEFAULT_COLUMNS})")
    labels.add_argument("--download", metavar="DIR", help="Save a PNG into DIR")
    labels.add_argument("--strict", action="store_true",
                        help="Fail tags whose code has unsupported characters")
    labels.set_defaults(func=cmd_labels)

    order_barcode = sub.add_parser("order-barcode", parents=[printing],
                                   help="Save or print an order barcode card")
    order_barcode.add_argument("order_number")
    order_barcode.add_argument("--output", help="Output directory (default: . unless printing)")
    order_barcode.add_argument("--details", action="store_true",
                               help="Look the order up and print its status, items and total")
    order_barcode.add_argument("--width", type=int, default=config.ORDER_BARCODE_WIDTH)
    order_barcode.add_argument("--height", type=int, default=config.ORDER_BARCODE_HEIGHT)
    order_barcode.set_defaults(func=cmd_order_barcode)

    scan = sub.add_parser("scan", parents=[sizing, printing], help="Look up a scanned code")
    scan.add_argument("code")
    scan.add_argument("--set-status", choices=list(ITEM_STATUSES),
                      help="Update the scanned item's processing status")
    scan.add_argument("--print-tags", action="store_true",
                      help="Print all tags of the scanned order")
    scan.set_defaults(func=cmd_scan)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, log_dir=config.LOG_DIR,
                  enable_file_logging=bool(config.LOG_DIR))

    if getattr(args, "print_tags", False) and not args.print:
        args.print = "browser"

    try:
        return args.func(args)
    except TagPrintError as e:
        logger.error(str(e))
        print(f"Error: {e.message}")
        return 1
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
