"""
Linear barcode symbology for tag codes and order numbers.

Uses the Code 128 (set B) bar/space widths for the characters 0-9 and
A-Z. A symbol is the start pattern, one pattern per character and the
stop pattern. Each entry of a pattern is a width in modules; even
entries are bars, odd entries are spaces.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Tuple

from .exceptions import UnsupportedCharacter
from .logging_config import get_logger

logger = get_logger(__name__)

Pattern = Tuple[int, ...]

START_PATTERN: Pattern = (2, 1, 1, 2, 1, 4)
STOP_PATTERN: Pattern = (2, 3, 3, 1, 1, 1, 2)

# Not a valid Code 128 character (a 6-module space), so a scanner rejects
# the symbol instead of reading a wrong character
FALLBACK_PATTERN: Pattern = (1, 1, 1, 1, 1, 6)

UNITS_START = sum(START_PATTERN)        # 11
UNITS_PER_CHAR = 11
UNITS_STOP = sum(STOP_PATTERN)          # 13

SYMBOL_TABLE = MappingProxyType({
    "0": (1, 2, 3, 1, 2, 2), "1": (1, 2, 3, 2, 2, 1), "2": (2, 2, 3, 2, 1, 1),
    "3": (2, 2, 1, 1, 3, 2), "4": (2, 2, 1, 2, 3, 1), "5": (2, 1, 3, 2, 1, 2),
    "6": (2, 2, 3, 1, 1, 2), "7": (3, 1, 2, 1, 3, 1), "8": (3, 1, 1, 2, 2, 2),
    "9": (3, 2, 1, 1, 2, 2),
    "A": (1, 1, 1, 3, 2, 3), "B": (1, 3, 1, 1, 2, 3), "C": (1, 3, 1, 3, 2, 1),
    "D": (1, 1, 2, 3, 1, 3), "E": (1, 3, 2, 1, 1, 3), "F": (1, 3, 2, 3, 1, 1),
    "G": (2, 1, 1, 3, 1, 3), "H": (2, 3, 1, 1, 1, 3), "I": (2, 3, 1, 3, 1, 1),
    "J": (1, 1, 2, 1, 3, 3), "K": (1, 1, 2, 3, 3, 1), "L": (1, 3, 2, 1, 3, 1),
    "M": (1, 1, 3, 1, 2, 3), "N": (1, 1, 3, 3, 2, 1), "O": (1, 3, 3, 1, 2, 1),
    "P": (3, 1, 3, 1, 2, 1), "Q": (2, 1, 1, 3, 3, 1), "R": (2, 3, 1, 1, 3, 1),
    "S": (2, 1, 3, 1, 1, 3), "T": (2, 1, 3, 3, 1, 1), "U": (2, 1, 3, 1, 3, 1),
    "V": (3, 1, 1, 1, 2, 3), "W": (3, 1, 1, 3, 2, 1), "X": (3, 3, 1, 1, 2, 1),
    "Y": (3, 1, 2, 1, 1, 3), "Z": (3, 1, 2, 3, 1, 1),
})


def units_total(char_count: int) -> int:
    """Total module count of a symbol encoding ``char_count`` characters."""
    return UNITS_START + UNITS_PER_CHAR * char_count + UNITS_STOP


def normalize_identifier(raw: str) -> str:
    """Strip non-alphanumeric characters and uppercase the rest."""
    return "".join(ch for ch in raw if ch.isalnum()).upper()


@dataclass(frozen=True)
class EncodedSymbol:
    """Start pattern, one pattern per character of ``text``, stop pattern."""
    text: str
    patterns: Tuple[Pattern, ...]
    substituted: Tuple[int, ...] = ()

    @property
    def char_count(self) -> int:
        return len(self.text)

    @property
    def units_total(self) -> int:
        return units_total(self.char_count)

    def modules(self) -> Iterator[Tuple[int, bool]]:
        """Yield ``(width, is_bar)`` for every bar and space, left to right."""
        for pattern in self.patterns:
            for i, width in enumerate(pattern):
                yield width, i % 2 == 0


def encode(identifier: str, strict: bool = False) -> EncodedSymbol:
    """
    Encode an identifier into bar/space patterns.

    Characters missing from the symbol table get FALLBACK_PATTERN and are
    listed in ``substituted``. With ``strict=True`` they raise
    UnsupportedCharacter instead.

    Raises:
        ValueError: identifier is empty after normalization
    """
    text = normalize_identifier(identifier)
    if not text:
        raise ValueError(f"Nothing to encode in identifier {identifier!r}")

    patterns = [START_PATTERN]
    substituted = []
    for position, char in enumerate(text):
        pattern = SYMBOL_TABLE.get(char)
        if pattern is None:
            if strict:
                raise UnsupportedCharacter(text, char, position)
            substituted.append(position)
            pattern = FALLBACK_PATTERN
        patterns.append(pattern)
    patterns.append(STOP_PATTERN)

    if substituted:
        logger.warning(
            f"Identifier {text!r}: {len(substituted)} unsupported character(s) "
            f"replaced with fallback pattern at {substituted}"
        )

    return EncodedSymbol(text, tuple(patterns), tuple(substituted))
