"""
mdlpeel Byte Corpus

The Corpus is the unit every other component works on: an ordered,
immutable collection of messages (PDUs) from one flow direction.
Messages are held as read-only memoryviews, so an SDU corpus extracted
from a parsed layer references its parent's bytes instead of copying them.

Usage:
    corpus = Corpus.from_messages([b"\\x03\\x00abc", b"\\x01\\x00z"])
    corpus = Corpus.from_hex_lines("capture.hex")
    print(corpus.length_entropy(), corpus.offset_entropy(8))
"""

from __future__ import annotations

import hashlib
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from mdlpeel.errors import CorpusFormatError
from mdlpeel.measures import shannon_entropy

MessageLike = Union[bytes, bytearray, memoryview]


def _freeze(message: MessageLike) -> memoryview:
    """Read-only byte view of a message, copying only mutable buffers."""
    if isinstance(message, bytes):
        return memoryview(message)
    if isinstance(message, memoryview):
        view = message if message.format == "B" else message.cast("B")
        if view.readonly:
            return view
        return memoryview(view.tobytes())
    if isinstance(message, bytearray):
        return memoryview(bytes(message))
    raise TypeError(f"Cannot use {type(message).__name__} as a message")


@dataclass(frozen=True)
class CorpusMeta:
    """Provenance of a corpus."""
    source: str
    message_count: int
    total_bytes: int
    flow_id: Optional[int] = None
    parent: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "message_count": self.message_count,
            "total_bytes": self.total_bytes,
            "flow_id": self.flow_id,
            "parent": self.parent,
        }


class Corpus:
    """Ordered, immutable sequence of messages."""

    def __init__(self, messages: Iterable[MessageLike], meta: Optional[CorpusMeta] = None,
                 source: str = "<memory>") -> None:
        self._messages: tuple[memoryview, ...] = tuple(_freeze(m) for m in messages)
        self._lengths = tuple(len(m) for m in self._messages)
        total = sum(self._lengths)
        if meta is None:
            meta = CorpusMeta(source=source, message_count=len(self._messages), total_bytes=total)
        elif meta.message_count != len(self._messages) or meta.total_bytes != total:
            meta = CorpusMeta(
                source=meta.source,
                message_count=len(self._messages),
                total_bytes=total,
                flow_id=meta.flow_id,
                parent=meta.parent,
            )
        self._meta = meta

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_messages(
        cls,
        messages: Iterable[MessageLike],
        source: str = "<memory>",
        flow_id: Optional[int] = None,
    ) -> Corpus:
        frozen = [_freeze(m) for m in messages]
        meta = CorpusMeta(
            source=source,
            message_count=len(frozen),
            total_bytes=sum(len(m) for m in frozen),
            flow_id=flow_id,
        )
        return cls(frozen, meta)

    @classmethod
    def from_hex_lines(cls, path: Union[str, Path]) -> Corpus:
        """One hex-encoded message per line. Blank lines and # comments are skipped."""
        path = Path(path)
        messages = []
        for line_num, line in enumerate(path.read_text().splitlines(), 1):
            text = line.split("#", 1)[0].strip().replace(" ", "").replace(":", "")
            if not text:
                continue
            try:
                messages.append(bytes.fromhex(text))
            except ValueError as e:
                raise CorpusFormatError(
                    f"Invalid hex on line {line_num}", {"path": str(path), "line": line_num}
                ) from e
        return cls.from_messages(messages, source=str(path))

    @classmethod
    def from_directory(cls, path: Union[str, Path]) -> Corpus:
        """One message per regular file, ordered by file name."""
        path = Path(path)
        if not path.is_dir():
            raise CorpusFormatError(f"Not a directory: {path}", {"path": str(path)})
        files = sorted(p for p in path.iterdir() if p.is_file())
        return cls.from_messages((p.read_bytes() for p in files), source=str(path))

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def meta(self) -> CorpusMeta:
        return self._meta

    @property
    def source(self) -> str:
        return self._meta.source

    @property
    def messages(self) -> tuple[memoryview, ...]:
        return self._messages

    @property
    def lengths(self) -> tuple[int, ...]:
        return self._lengths

    @property
    def total_bytes(self) -> int:
        return self._meta.total_bytes

    @property
    def mean_length(self) -> float:
        return self.total_bytes / len(self._messages) if self._messages else 0.0

    @property
    def is_degenerate(self) -> bool:
        """Empty, or every message is zero-length."""
        return self._meta.total_bytes == 0

    @property
    def digest(self) -> str:
        """SHA-256 over length-prefixed messages (stable identity of the corpus)."""
        h = hashlib.sha256()
        for message in self._messages:
            h.update(len(message).to_bytes(8, "big"))
            h.update(message)
        return h.hexdigest()

    def message_bytes(self, index: int) -> bytes:
        return self._messages[index].tobytes()

    def joined(self) -> bytes:
        """All messages concatenated in order."""
        return b"".join(self._messages)

    # ------------------------------------------------------------------
    # Statistics (cheap, used by generators)
    # ------------------------------------------------------------------

    def length_histogram(self) -> Counter:
        return Counter(self._lengths)

    def modal_length(self) -> int:
        if not self._lengths:
            return 0
        # Ties go to the shorter length
        hist = self.length_histogram()
        return min(hist, key=lambda length: (-hist[length], length))

    def length_entropy(self) -> float:
        """Entropy of the message-length distribution, bits per message."""
        return shannon_entropy(self._lengths)

    def offset_entropy(self, max_offset: int) -> list[float]:
        """Byte-value entropy at each offset 0..max_offset-1."""
        columns: list[list[int]] = [[] for _ in range(max_offset)]
        for message in self._messages:
            for i, byte in enumerate(message[:max_offset]):
                columns[i].append(byte)
        return [shannon_entropy(column) for column in columns]

    def common_prefix_length(self) -> int:
        if not self._messages:
            return 0
        first = self._messages[0]
        limit = min(self._lengths)
        for i in range(limit):
            b = first[i]
            if any(m[i] != b for m in self._messages[1:]):
                return i
        return limit

    def suffix_frequencies(self, width: int) -> Counter:
        """How many messages end with each `width`-byte suffix."""
        counts: Counter = Counter()
        for message in self._messages:
            if len(message) >= width:
                counts[message[len(message) - width:].tobytes()] += 1
        return counts

    def entropy_shoulders(self, max_offset: int, jump: float) -> list[int]:
        """Offsets where per-offset entropy rises by at least `jump` bits.

        A low-entropy run followed by a high-entropy one is the classic
        signature of a header/payload boundary.
        """
        profile = self.offset_entropy(max_offset)
        return [
            offset for offset in range(1, len(profile))
            if profile[offset] - profile[offset - 1] >= jump
        ]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self, include_messages: bool = False) -> dict[str, Any]:
        result = self._meta.to_dict()
        result["digest"] = self.digest
        if include_messages:
            result["messages"] = [m.hex() for m in self._messages]
        return result

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[memoryview]:
        return iter(self._messages)

    def __getitem__(self, index: int) -> memoryview:
        return self._messages[index]

    def __repr__(self) -> str:
        return (
            f"<Corpus: {len(self._messages)} messages, {self.total_bytes} bytes "
            f"from {self._meta.source}>"
        )
