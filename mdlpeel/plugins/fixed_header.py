"""
mdlpeel Fixed Header

    [ PCI (length bytes) ][ SDU ... ]

Candidate lengths come from cheap corpus statistics: the longest common
prefix (constant magic / version bytes), entropy shoulders (a low-entropy
column followed by a high-entropy one), the modal message length less a
small payload (header-only control messages dominate many captures) and
the usual small header sizes.
"""

from __future__ import annotations

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import FixedHeader, Hypothesis
from mdlpeel.plugin import HypothesisGenerator, Parser
from mdlpeel.segment import (
    Decomposition,
    ExceptionReason,
    ParsedMessage,
    StructuralException,
    pci,
    sdu,
)

TYPICAL_LENGTHS = (1, 2, 4, 8)
SMALL_PAYLOADS = (0, 1, 2, 4)


class FixedHeaderGenerator(HypothesisGenerator):

    @property
    def name(self) -> str:
        return "fixed_header"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        if not len(corpus):
            return []
        bound = min(config.max_header_len, min(corpus.lengths))
        if bound < 1:
            return []

        lengths = set(TYPICAL_LENGTHS)
        prefix = corpus.common_prefix_length()
        if prefix:
            lengths.add(prefix)
        lengths.update(corpus.entropy_shoulders(bound + 1, config.entropy_jump_bits))
        modal = corpus.modal_length()
        lengths.update(modal - payload for payload in SMALL_PAYLOADS)
        return [FixedHeader(length) for length in sorted(lengths) if 1 <= length <= bound]


class FixedHeaderParser(Parser):

    @property
    def name(self) -> str:
        return "fixed_header"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, FixedHeader)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        length = hypothesis.length
        n = len(message)
        if n < length:
            return StructuralException(
                index, message, ExceptionReason.TRUNCATED_HEADER,
                f"{n} bytes, header needs {length}",
            )
        return Decomposition(index, message, (pci(0, length, "header"), sdu(length, n)))
