"""
mdlpeel Length-Prefix Framing

    [ PCI (offset bytes) ][ length (width bytes) ][ SDU ... ][ next frame ... ]

The declared length either counts the SDU only (includes_header=False) or
starts counting at the length field itself (includes_header=True). Frames
repeat back to back until the message is used up; each frame contributes
its own PCI, length field and SDU. A declared length of zero is a legal
empty SDU. A frame running past the message is LENGTH_OVERFLOW; a stub too
short for another header after at least one whole frame is TRAILING_BYTES.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import Endianness, Hypothesis, LengthPrefixBundle
from mdlpeel.plugin import HypothesisGenerator, Parser
from mdlpeel.segment import (
    Decomposition,
    ExceptionReason,
    FieldKind,
    ParsedMessage,
    Segment,
    StructuralException,
    declared,
    pci,
    sdu,
)

WIDTHS = (1, 2, 4)


@dataclass(frozen=True)
class LengthFrame:
    """One frame: [start, header_end) is PCI + length, [header_end, end) the SDU."""
    start: int
    header_end: int
    end: int
    declared_len: int


@dataclass(frozen=True)
class LengthFault:
    reason: ExceptionReason
    detail: str


def walk_frames(message: memoryview,
                h: LengthPrefixBundle) -> Union[tuple[LengthFrame, ...], LengthFault]:
    """Split `message` into consecutive frames, or report the first fault."""
    n = len(message)
    frames: list[LengthFrame] = []
    pos = 0
    while pos < n or not frames:
        len_pos = pos + h.offset
        header_end = len_pos + h.width
        if header_end > n:
            if frames:
                return LengthFault(ExceptionReason.TRAILING_BYTES,
                                   f"{n - pos} bytes after last frame end {pos}")
            return LengthFault(ExceptionReason.TRUNCATED_HEADER,
                               f"{n} bytes, length field needs {header_end}")

        declared_len = int.from_bytes(message[len_pos:header_end], h.endian.value)
        if declared_len == 0:
            end = header_end
        elif h.includes_header:
            if declared_len < h.width:
                return LengthFault(ExceptionReason.LENGTH_UNDERFLOW,
                                   f"declared {declared_len} < length field width {h.width} at {pos}")
            end = len_pos + declared_len
        else:
            end = header_end + declared_len

        if end > n:
            return LengthFault(ExceptionReason.LENGTH_OVERFLOW,
                               f"frame at {pos} ends at {end}, message has {n} bytes")
        frames.append(LengthFrame(pos, header_end, end, declared_len))
        pos = end
    return tuple(frames)


class LengthPrefixGenerator(HypothesisGenerator):
    """Proposes (offset, width, endian, includes_header) combinations whose
    frames tile the sampled messages often enough."""

    @property
    def name(self) -> str:
        return "length_prefix"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        sample = corpus.messages[:config.sample_size]
        if not sample:
            return []

        proposals: list[Hypothesis] = []
        for offset in range(config.max_prefix_offset + 1):
            for width in WIDTHS:
                # Byte order is meaningless for a single byte
                endians = (Endianness.LITTLE,) if width == 1 else (Endianness.LITTLE, Endianness.BIG)
                eligible = [m for m in sample if len(m) >= offset + width]
                if not eligible:
                    continue
                for endian in endians:
                    for includes_header in (False, True):
                        h = LengthPrefixBundle(offset, width, endian, includes_header)
                        hits = sum(1 for m in eligible if isinstance(walk_frames(m, h), tuple))
                        if hits and hits / len(eligible) >= config.length_consistency_fraction:
                            proposals.append(h)
        return proposals


class LengthPrefixParser(Parser):

    @property
    def name(self) -> str:
        return "length_prefix"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, LengthPrefixBundle)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        h = hypothesis
        frames = walk_frames(message, h)
        if isinstance(frames, LengthFault):
            return StructuralException(index, message, frames.reason, frames.detail)

        segments: list[Segment] = []
        for frame in frames:
            len_pos = frame.start + h.offset
            if h.offset:
                segments.append(pci(frame.start, len_pos))
            segments.append(declared(len_pos, frame.header_end, FieldKind.LENGTH, frame.declared_len))
            segments.append(sdu(frame.header_end, frame.end))
        return Decomposition(index, message, tuple(segments))
