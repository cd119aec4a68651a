"""
mdlpeel TLV Framing

    [ PCI ][ tag ][ gap ][ length ][ value (SDU) ]
            ^tag_offset   ^len_offset

The TLV header is counted from tag_offset up to the end of the length field.
With length_includes_header the declared length covers header and value,
otherwise the value only. TLVs repeat back to back until
the message is used up, each one a tag, length and value of its own. A value
running past the message is VALUE_LENGTH_MISMATCH; a stub too short for
another header after at least one whole TLV is TRAILING_BYTES.

Length rules:
    FIXED_1 / FIXED_2 / FIXED_4   big-endian, 1 / 2 / 4 bytes
    BER                           0x00-0x7F short form
                                  0x80 indefinite (not supported)
                                  0x81-0x84 long form, N big-endian length bytes
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import Hypothesis, Tlv, TlvLenRule
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

BER_MAX_LENGTH_BYTES = 4


@dataclass(frozen=True)
class TlvFrame:
    """Decoded TLV at `start`; the value spans [len_end, end)."""
    start: int
    tag: int
    length: int
    len_end: int
    value_len: int

    @property
    def end(self) -> int:
        return self.len_end + self.value_len


@dataclass(frozen=True)
class TlvFault:
    reason: ExceptionReason
    detail: str


def decode_frame(message: memoryview, h: Tlv, start: int = 0) -> Union[TlvFrame, TlvFault]:
    """Decode the TLV beginning at `start` and check it fits in `message`."""
    n = len(message)
    tag_offset = start + h.tag_offset
    len_offset = start + h.len_offset
    tag_end = tag_offset + h.tag_bytes
    if n < tag_end or n <= len_offset:
        return TlvFault(ExceptionReason.TRUNCATED_HEADER,
                        f"{n - start} bytes at {start}, too short for tag and length")

    tag = int.from_bytes(message[tag_offset:tag_end], "big")
    width = h.len_rule.fixed_width
    if width:
        len_end = len_offset + width
        if n < len_end:
            return TlvFault(ExceptionReason.TRUNCATED_HEADER,
                            f"{n} bytes, length field needs {len_end}")
        length = int.from_bytes(message[len_offset:len_end], "big")
    else:
        first = message[len_offset]
        if first < 0x80:
            length = first
            len_end = len_offset + 1
        elif first == 0x80:
            return TlvFault(ExceptionReason.INDEFINITE_LENGTH,
                            f"indefinite length marker at {len_offset}")
        else:
            count = first & 0x7F
            if count > BER_MAX_LENGTH_BYTES:
                return TlvFault(ExceptionReason.LENGTH_OVERFLOW,
                                f"BER long form with {count} length bytes")
            len_end = len_offset + 1 + count
            if n < len_end:
                return TlvFault(ExceptionReason.TRUNCATED_HEADER,
                                f"{n} bytes, BER length needs {len_end}")
            length = int.from_bytes(message[len_offset + 1:len_end], "big")

    header_len = len_end - tag_offset
    if h.length_includes_header:
        if length < header_len:
            return TlvFault(ExceptionReason.LENGTH_UNDERFLOW,
                            f"declared {length} < header length {header_len}")
        value_len = length - header_len
    else:
        value_len = length

    if value_len > n - len_end:
        return TlvFault(ExceptionReason.VALUE_LENGTH_MISMATCH,
                        f"declared value {value_len}, {n - len_end} bytes available")
    return TlvFrame(start, tag, length, len_end, value_len)


def decode_frames(message: memoryview, h: Tlv) -> Union[tuple[TlvFrame, ...], TlvFault]:
    """Decode consecutive TLVs until the message is used up."""
    n = len(message)
    frames: list[TlvFrame] = []
    pos = 0
    while pos < n or not frames:
        frame = decode_frame(message, h, pos)
        if isinstance(frame, TlvFault):
            if frames and frame.reason is ExceptionReason.TRUNCATED_HEADER:
                return TlvFault(ExceptionReason.TRAILING_BYTES,
                                f"{n - pos} bytes after last TLV end {pos}")
            return frame
        frames.append(frame)
        pos = frame.end
    return tuple(frames)


class TlvGenerator(HypothesisGenerator):
    """Enumerates tag position/size, an optional one-byte gap, every length
    rule and both header conventions; keeps the ones whose TLVs tile the
    message on enough of a sample."""

    @property
    def name(self) -> str:
        return "tlv"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        sample = corpus.messages[:config.sample_size]
        if not sample:
            return []

        proposals: list[Hypothesis] = []
        for tag_offset in range(config.max_tag_offset + 1):
            for tag_bytes in range(1, config.max_tag_bytes + 1):
                for gap in (0, 1):
                    len_offset = tag_offset + tag_bytes + gap
                    eligible = [m for m in sample if len(m) > len_offset]
                    if not eligible:
                        continue
                    for rule in TlvLenRule:
                        for includes in (False, True):
                            h = Tlv(tag_offset, tag_bytes, len_offset, rule, includes)
                            hits = sum(1 for m in eligible
                                       if isinstance(decode_frames(m, h), tuple))
                            if hits and hits / len(eligible) >= config.length_consistency_fraction:
                                proposals.append(h)
        return proposals


class TlvParser(Parser):

    @property
    def name(self) -> str:
        return "tlv"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, Tlv)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        h = hypothesis
        frames = decode_frames(message, h)
        if isinstance(frames, TlvFault):
            return StructuralException(index, message, frames.reason, frames.detail)

        segments: list[Segment] = []
        for frame in frames:
            tag_offset = frame.start + h.tag_offset
            tag_end = tag_offset + h.tag_bytes
            len_offset = frame.start + h.len_offset
            if h.tag_offset:
                segments.append(pci(frame.start, tag_offset))
            segments.append(declared(tag_offset, tag_end, FieldKind.TAG, frame.tag))
            if len_offset > tag_end:
                segments.append(declared(tag_end, len_offset, FieldKind.GAP))
            segments.append(declared(len_offset, frame.len_end, FieldKind.LENGTH, frame.length))
            segments.append(sdu(frame.len_end, frame.end))
        return Decomposition(index, message, tuple(segments))
