"""
Custom exceptions for the tag printer.

Exception Hierarchy:
    TagPrintError (base)
    ├── UnsupportedCharacter    - identifier character missing from the symbol table
    ├── CanvasUnavailable       - no drawing surface could be obtained
    ├── LayoutTooSmall          - pixel size cannot fit the barcode modules
    ├── MatrixImageUnavailable  - QR image for one label could not be produced
    ├── SessionCancelled        - print/download session was abandoned
    ├── PrintDismissed          - the user closed the print dialog without printing
    └── ApiError                - label/scan REST call failed

Usage:
    UnsupportedCharacter is normally recovered by the encoder (fallback
    pattern) and only raised when strict encoding is requested.
    MatrixImageUnavailable is recorded per label; the label still prints
    with a blank matrix region.
    The rest propagate to the caller, which offers a retry.
"""

from typing import Optional, Dict, Any


class TagPrintError(Exception):
    """
    Base exception for all tag printer errors.

    Carries a human-readable message plus an optional details dictionary
    with context for debugging.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class UnsupportedCharacter(TagPrintError):
    """An identifier character has no entry in the symbol table."""

    def __init__(self, identifier: str, character: str, position: int):
        message = f"Unsupported character {character!r} at position {position} in {identifier!r}"
        details = {
            "identifier": identifier,
            "character": character,
            "position": position,
        }
        super().__init__(message, details)
        self.identifier = identifier
        self.character = character
        self.position = position


class CanvasUnavailable(TagPrintError):
    """
    A drawing surface could not be allocated or drawn on.

    Fatal for the current render only; callers surface it with a retry.
    """

    def __init__(self, message: str = "Drawing surface is not available",
                 width: Optional[int] = None, height: Optional[int] = None):
        details = {}
        if width is not None and height is not None:
            details["size"] = f"{width}x{height}"
        super().__init__(message, details)


class LayoutTooSmall(TagPrintError):
    """
    The requested pixel width leaves no room for the barcode modules.

    Raised instead of clamping, since a clamped barcode would not scan.
    """

    def __init__(self, width: float, padding: float, units_total: int,
                 message: Optional[str] = None):
        if message is None:
            message = (
                f"Barcode width {width}px cannot fit {units_total} modules "
                f"with {padding}px quiet zone on each side"
            )
        details = {
            "width": width,
            "padding": padding,
            "units_total": units_total,
        }
        super().__init__(message, details)
        self.width = width
        self.padding = padding
        self.units_total = units_total


class MatrixImageUnavailable(TagPrintError):
    """The QR image for a label could not be generated or fetched."""

    def __init__(self, tag_code: str, reason: str):
        message = f"QR code unavailable for tag {tag_code}: {reason}"
        super().__init__(message, {"tag_code": tag_code})
        self.tag_code = tag_code
        self.reason = reason


class SessionCancelled(TagPrintError):
    """The print/download session was closed before it completed."""

    def __init__(self, message: str = "Tag printing session was cancelled"):
        super().__init__(message)


class PrintDismissed(TagPrintError):
    """The host print dialog was closed without printing."""

    def __init__(self, message: str = "Printing was cancelled in the print dialog"):
        super().__init__(message)


class ApiError(TagPrintError):
    """
    A call to the label/scan REST API failed.

    Covers transport errors, non-2xx responses and envelopes with
    ``success: false``.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 url: Optional[str] = None):
        details = {}
        if status_code is not None:
            details["status_code"] = status_code
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url
