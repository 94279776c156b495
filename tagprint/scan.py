"""
Scanned code lookups and the "print tags for this order" trigger.

The scan endpoint returns either an order (order barcode scanned) or an
item (tag code scanned). Both are parsed into their own type; the only
place that tells them apart is describe_scan().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from . import config
from .api_client import TagApiClient
from .logging_config import get_logger
from .session import BatchResult, TagPrintSession
from .sheet import OrderCardDocument, OrderDetails, print_order_card

logger = get_logger(__name__)

ITEM_STATUSES = ("pending", "in_progress", "completed", "quality_check", "ready")


@dataclass(frozen=True)
class ScannedItem:
    item_id: str
    tag_code: str
    item_type: str
    service: str
    category: str = ""
    quantity: int = 1
    processing_status: str = ""
    special_instructions: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannedItem":
        return cls(
            item_id=str(data.get("itemId", "")),
            tag_code=str(data.get("tagCode", "")),
            item_type=data.get("itemType") or "",
            service=data.get("service") or "",
            category=data.get("category") or "",
            quantity=int(data.get("quantity") or 1),
            processing_status=data.get("processingStatus") or "",
            special_instructions=data.get("specialInstructions") or "",
        )


@dataclass(frozen=True)
class OrderScan:
    order_id: str
    order_number: str
    status: str
    customer_name: str = ""
    customer_phone: str = ""
    branch_name: str = ""
    items: List[ScannedItem] = field(default_factory=list)
    total: Optional[float] = None
    is_express: bool = False
    estimated_delivery: str = ""


@dataclass(frozen=True)
class ItemScan:
    item: ScannedItem
    order_id: str
    order_number: str
    order_status: str = ""
    total_items: int = 0
    customer_name: str = ""
    open_issues: int = 0


ScanResult = Union[OrderScan, ItemScan]


def parse_scan_result(data: Dict[str, Any]) -> ScanResult:
    """
    Build the scan result from the scan endpoint's ``data`` object.

    Raises:
        ValueError: neither an order nor an item is present
    """
    if data.get("item"):
        record = data["item"]
        order = record.get("order") or {}
        customer = record.get("customer") or {}
        issues = record.get("issues") or []
        return ItemScan(
            item=ScannedItem.from_dict(record),
            order_id=str(order.get("orderId", "")),
            order_number=str(order.get("orderNumber", "")),
            order_status=order.get("status") or "",
            total_items=int(order.get("totalItems") or 0),
            customer_name=customer.get("name") or "",
            open_issues=sum(1 for issue in issues if not issue.get("resolved")),
        )

    if data.get("order"):
        record = data["order"]
        customer = record.get("customer") or {}
        branch = record.get("branch") or {}
        pricing = record.get("pricing") or {}
        return OrderScan(
            order_id=str(record.get("orderId", "")),
            order_number=str(record.get("orderNumber", "")),
            status=record.get("status") or "",
            customer_name=customer.get("name") or "",
            customer_phone=customer.get("phone") or "",
            branch_name=branch.get("name") or "",
            items=[ScannedItem.from_dict(item) for item in record.get("items") or []],
            total=pricing.get("total"),
            is_express=bool(record.get("isExpress")),
            estimated_delivery=record.get("estimatedDeliveryDate") or "",
        )

    raise ValueError("Scan response holds neither an order nor an item")


def _humanize(status: str) -> str:
    return status.replace("_", " ")


def describe_scan(result: ScanResult) -> List[str]:
    """Short text summary of a scan result, one line per entry."""
    if isinstance(result, OrderScan):
        lines = [
            f"Order {result.order_number} ({_humanize(result.status)})",
            f"Customer: {result.customer_name}",
            f"Items: {len(result.items)}",
        ]
        if result.branch_name:
            lines.append(f"Branch: {result.branch_name}")
        if result.total is not None:
            lines.append(f"Total: {result.total}")
        if result.is_express:
            lines.append("Express order")
        for item in result.items:
            lines.append(f"  {item.tag_code}  {item.item_type} - {item.service} "
                         f"[{_humanize(item.processing_status)}]")
        return lines

    if isinstance(result, ItemScan):
        item = result.item
        lines = [
            f"Item {item.tag_code} ({_humanize(item.processing_status)})",
            f"{item.item_type} - {item.service}",
            f"Order {result.order_number} ({_humanize(result.order_status)}), "
            f"{result.total_items} item(s)",
            f"Customer: {result.customer_name}",
        ]
        if item.special_instructions:
            lines.append(f"Note: {item.special_instructions}")
        if result.open_issues:
            lines.append(f"Open issues: {result.open_issues}")
        return lines

    raise TypeError(f"Unknown scan result: {type(result).__name__}")


def scan_code(client: TagApiClient, code: str) -> ScanResult:
    return parse_scan_result(client.scan(code))


def update_item_status(client: TagApiClient, tag_code: str, status: str) -> ScanResult:
    """
    Change an item's processing status and return the refreshed scan.

    Raises:
        ValueError: ``status`` is not one of ITEM_STATUSES
    """
    if status not in ITEM_STATUSES:
        raise ValueError(f"Unknown processing status: {status}. "
                         f"Supported: {list(ITEM_STATUSES)}")
    client.update_item_status(tag_code, status)
    logger.info(f"Item {tag_code} set to {status}")
    return scan_code(client, tag_code)


def print_order_tags(client: TagApiClient, order_id: str, order_number: str, pipeline,
                     size: str = config.DEFAULT_LABEL_SIZE,
                     **session_options) -> Optional[BatchResult]:
    """
    Fetch every tag of an order and print them all.

    Returns:
        None when the order has no items, otherwise the batch result
    """
    labels = client.fetch_labels(order_id)
    if not labels:
        logger.info(f"Order {order_number} has no items to tag")
        return None
    with TagPrintSession(labels, size=size, **session_options) as session:
        return session.print(pipeline)


def print_tags_for_scan(client: TagApiClient, result: ScanResult, pipeline,
                        size: str = config.DEFAULT_LABEL_SIZE,
                        **session_options) -> Optional[BatchResult]:
    """Print the tags of the scanned order, or of the scanned item's order."""
    if not result.order_id:
        raise ValueError("Scan result has no order id")
    return print_order_tags(client, result.order_id, result.order_number, pipeline,
                            size=size, **session_options)


def order_details_for_scan(result: OrderScan) -> OrderDetails:
    """Order summary for the printed order card."""
    return OrderDetails(
        status=result.status,
        item_count=len(result.items),
        total=result.total,
        estimated_delivery=result.estimated_delivery,
    )


def print_order_card_for_scan(client: TagApiClient, order_number: str, pipeline,
                              with_details: bool = True, **card_options) -> OrderCardDocument:
    """
    Print the barcode card of an order, looking up its summary first.

    Raises:
        ValueError: the scanned code is an item, not an order
    """
    details = None
    if with_details:
        result = scan_code(client, order_number)
        if not isinstance(result, OrderScan):
            raise ValueError(f"{order_number} is not an order barcode")
        details = order_details_for_scan(result)
    return print_order_card(order_number, pipeline, details, **card_options)
