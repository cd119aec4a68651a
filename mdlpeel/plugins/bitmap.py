"""
mdlpeel Extensible Bitmap (PER-like)

    [ PCI (start bytes) ][ b0 b1 ... bk ][ SDU ... ]

Each bitmap byte's continuation bit says whether another byte follows.
The chain ends at the first byte whose continuation bit equals stop_value.
"""

from __future__ import annotations

from collections import Counter
from typing import Optional

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import ExtensibleBitmap, Hypothesis
from mdlpeel.plugin import HypothesisGenerator, Parser
from mdlpeel.segment import (
    Decomposition,
    ExceptionReason,
    FieldKind,
    ParsedMessage,
    StructuralException,
    declared,
    pci,
    sdu,
)


def chain_length(message: memoryview, h: ExtensibleBitmap) -> Optional[int]:
    """Bytes in the bitmap chain, or None if it does not terminate in bounds."""
    pos = h.start
    for count in range(1, h.max_bytes + 1):
        if pos >= len(message):
            return None
        if (message[pos] >> h.continuation_bit_position) & 1 == h.stop_value:
            return count
        pos += 1
    return None


class ExtensibleBitmapGenerator(HypothesisGenerator):
    """Proposes (start, bit) pairs where the chain is real: it terminates for
    most messages and actually extends past one byte somewhere."""

    @property
    def name(self) -> str:
        return "extensible_bitmap"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        sample = corpus.messages[:config.sample_size]
        proposals: list[Hypothesis] = []
        for start in range(config.max_bitmap_start + 1):
            eligible = [m for m in sample if len(m) > start]
            if not eligible:
                break
            for bit in range(8):
                # The first byte usually ends the chain: its most common bit value
                # is the stop value
                votes = Counter((m[start] >> bit) & 1 for m in eligible)
                stop_value = 0 if votes[0] >= votes[1] else 1
                h = ExtensibleBitmap(
                    continuation_bit_position=bit,
                    start=start,
                    stop_value=stop_value,
                    max_bytes=config.bitmap_max_bytes,
                )
                lengths = [chain_length(m, h) for m in eligible]
                terminated = [n for n in lengths if n is not None]
                if len(terminated) * 2 < len(eligible):
                    continue
                if max(terminated, default=0) < 2:
                    continue
                proposals.append(h)
        return proposals


class ExtensibleBitmapParser(Parser):

    @property
    def name(self) -> str:
        return "extensible_bitmap"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, ExtensibleBitmap)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        h = hypothesis
        n = len(message)
        if n <= h.start:
            return StructuralException(
                index, message, ExceptionReason.TRUNCATED_HEADER,
                f"{n} bytes, bitmap starts at {h.start}",
            )

        pos = h.start
        count = 0
        while True:
            if count >= h.max_bytes:
                return StructuralException(
                    index, message, ExceptionReason.BITMAP_OVERRUN,
                    f"still continuing after {h.max_bytes} bytes",
                )
            if pos >= n:
                return StructuralException(
                    index, message, ExceptionReason.BITMAP_TRUNCATED,
                    f"message ends inside bitmap after {count} bytes",
                )
            byte = message[pos]
            pos += 1
            count += 1
            if (byte >> h.continuation_bit_position) & 1 == h.stop_value:
                break

        bitmap_value = int.from_bytes(message[h.start:pos], "big")
        segments = []
        if h.start:
            segments.append(pci(0, h.start))
        segments.append(declared(h.start, pos, FieldKind.BITMAP, bitmap_value))
        segments.append(sdu(pos, n))
        return Decomposition(index, message, tuple(segments))
