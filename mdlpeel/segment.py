"""
mdlpeel Segments and Parsed Corpora

A parser maps every message to exactly one of:
- Decomposition: contiguous, gap-free Segments (PCI / FIELD / SDU) that
  reassemble the message byte for byte.
- StructuralException: the message does not fit the hypothesis. This is
  data with a reason code, kept in place and charged by the scorer.

Segments hold offsets into the message, not copies; byte accessors slice
the message's memoryview on demand.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class SegmentRole(str, Enum):
    PCI = "pci"
    FIELD = "field"
    SDU = "sdu"


class FieldKind(str, Enum):
    """Closed set of declared field shapes."""
    LENGTH = "length"
    TAG = "tag"
    GAP = "gap"
    BITMAP = "bitmap"
    KEY = "key"
    VARINT = "varint"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    DELIMITER = "delimiter"


class ExceptionReason(str, Enum):
    TRUNCATED_HEADER = "truncated_header"
    LENGTH_OVERFLOW = "length_overflow"
    TRAILING_BYTES = "trailing_bytes"
    LENGTH_UNDERFLOW = "length_underflow"
    VALUE_LENGTH_MISMATCH = "value_length_mismatch"
    MISSING_DELIMITER = "missing_delimiter"
    BITMAP_TRUNCATED = "bitmap_truncated"
    BITMAP_OVERRUN = "bitmap_overrun"
    INDEFINITE_LENGTH = "indefinite_length"
    VARINT_TRUNCATED = "varint_truncated"
    VARINT_OVERLONG = "varint_overlong"
    INVALID_WIRE_TYPE = "invalid_wire_type"
    FIELD_NUMBER_OUT_OF_RANGE = "field_number_out_of_range"
    EMPTY_MESSAGE = "empty_message"


@dataclass(frozen=True)
class Segment:
    """Byte range [start, end) of one message with a structural role.

    FIELD segments name the declared field and carry its decoded value
    (an int for lengths, tags, keys and numeric values; None otherwise).
    """
    start: int
    end: int
    role: SegmentRole
    name: str = ""
    field_kind: Optional[FieldKind] = None
    value: Optional[int] = None

    @property
    def length(self) -> int:
        return self.end - self.start

    def view(self, message: memoryview) -> memoryview:
        return message[self.start:self.end]

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "role": self.role.value,
            "name": self.name,
            "field_kind": self.field_kind.value if self.field_kind else None,
            "value": self.value,
        }

    def __repr__(self) -> str:
        label = self.name or self.role.value
        return f"<{label} [{self.start}:{self.end}]>"


def pci(start: int, end: int, name: str = "pci") -> Segment:
    return Segment(start, end, SegmentRole.PCI, name)


def sdu(start: int, end: int, name: str = "sdu") -> Segment:
    return Segment(start, end, SegmentRole.SDU, name)


def declared(start: int, end: int, kind: FieldKind, value: Optional[int] = None,
             name: Optional[str] = None) -> Segment:
    return Segment(start, end, SegmentRole.FIELD, name or kind.value, kind, value)


@dataclass(frozen=True)
class Decomposition:
    """A message split into positional segments.

    Losslessness is positional: the segments, taken in order, tile
    [0, len(message)) with no gap or overlap, so reassemble() returns the
    message byte for byte. Joining by role (pci_bytes + field_bytes +
    sdu_bytes) preserves the byte count but not the order once a
    mechanism repeats, e.g. records or frames interleave fields and SDUs.
    """
    index: int
    message: memoryview
    segments: tuple[Segment, ...]

    is_exception = False

    def _join(self, role: SegmentRole) -> bytes:
        return b"".join(s.view(self.message) for s in self.segments if s.role is role)

    @property
    def pci_bytes(self) -> bytes:
        return self._join(SegmentRole.PCI)

    @property
    def field_bytes(self) -> bytes:
        return self._join(SegmentRole.FIELD)

    @property
    def sdu_bytes(self) -> bytes:
        return self._join(SegmentRole.SDU)

    def fields(self) -> tuple[Segment, ...]:
        return tuple(s for s in self.segments if s.role is SegmentRole.FIELD)

    def sdu_segments(self) -> tuple[Segment, ...]:
        return tuple(s for s in self.segments if s.role is SegmentRole.SDU)

    def sdu_views(self) -> list[memoryview]:
        return [s.view(self.message) for s in self.segments if s.role is SegmentRole.SDU]

    def reassemble(self) -> bytes:
        return b"".join(s.view(self.message) for s in self.segments)

    def is_lossless(self) -> bool:
        """Segments tile the message exactly, in order."""
        pos = 0
        for s in self.segments:
            if s.start != pos or s.end < s.start:
                return False
            pos = s.end
        return pos == len(self.message)

    def __repr__(self) -> str:
        return f"<Decomposition #{self.index}: {list(self.segments)}>"


@dataclass(frozen=True)
class StructuralException:
    """A message that does not conform to the hypothesis grammar."""
    index: int
    message: memoryview
    reason: ExceptionReason
    detail: str = ""

    is_exception = True

    def __repr__(self) -> str:
        return f"<Exception #{self.index}: {self.reason.value} {self.detail}>"


ParsedMessage = Union[Decomposition, StructuralException]


@dataclass(frozen=True)
class ParsedCorpus:
    """One ParsedMessage per corpus message, in corpus order."""
    hypothesis: Any
    entries: tuple[ParsedMessage, ...]

    @property
    def message_count(self) -> int:
        return len(self.entries)

    @property
    def success_count(self) -> int:
        return sum(1 for e in self.entries if not e.is_exception)

    @property
    def exception_count(self) -> int:
        return sum(1 for e in self.entries if e.is_exception)

    @property
    def parse_success_ratio(self) -> float:
        if not self.entries:
            return 0.0
        return self.success_count / len(self.entries)

    def decompositions(self) -> list[Decomposition]:
        return [e for e in self.entries if not e.is_exception]

    def exceptions(self) -> list[StructuralException]:
        return [e for e in self.entries if e.is_exception]

    def exception_reasons(self) -> dict[str, int]:
        counts = Counter(e.reason.value for e in self.entries if e.is_exception)
        return dict(sorted(counts.items()))

    def summary(self) -> dict[str, Any]:
        decomps = self.decompositions()
        return {
            "message_count": self.message_count,
            "success_count": len(decomps),
            "exception_count": self.message_count - len(decomps),
            "parse_success_ratio": self.parse_success_ratio,
            "exception_reasons": self.exception_reasons(),
            "pci_bytes": sum(len(d.pci_bytes) for d in decomps),
            "field_bytes": sum(len(d.field_bytes) for d in decomps),
            "sdu_bytes": sum(len(d.sdu_bytes) for d in decomps),
            "sdu_count": sum(len(d.sdu_segments()) for d in decomps),
        }

    def __repr__(self) -> str:
        return (
            f"<ParsedCorpus: {self.success_count}/{self.message_count} ok, "
            f"{self.exception_count} exceptions>"
        )
