"""
mdlpeel Delimiter Framing

Records separated (and terminated) by a fixed byte pattern:

    [ SDU ][ DELIM ][ SDU ][ DELIM ] ...

A message must end with the delimiter; each record becomes its own SDU.
The pattern search runs directly on the message view (re accepts any
bytes-like object), so no copy of the message is made.
"""

from __future__ import annotations

import re

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import DelimiterBundle, Hypothesis
from mdlpeel.plugin import HypothesisGenerator, Parser
from mdlpeel.segment import (
    Decomposition,
    ExceptionReason,
    FieldKind,
    ParsedMessage,
    StructuralException,
    declared,
    sdu,
)

COMMON_DELIMITERS = (b"\n", b"\r\n", b"\x00", b"\x00\x00", b"\xff\xff")


class DelimiterGenerator(HypothesisGenerator):
    """Common terminators plus the most frequent 1- and 2-byte suffixes."""

    @property
    def name(self) -> str:
        return "delimiter"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        if not len(corpus):
            return []

        candidates: list[bytes] = list(COMMON_DELIMITERS)
        for width in (1, 2):
            suffixes = corpus.suffix_frequencies(width)
            if suffixes:
                top = min(suffixes, key=lambda s: (-suffixes[s], s))
                candidates.append(top)

        proposals: list[Hypothesis] = []
        seen: set[bytes] = set()
        for delimiter in candidates:
            if delimiter in seen:
                continue
            seen.add(delimiter)
            terminated = corpus.suffix_frequencies(len(delimiter)).get(delimiter, 0)
            if terminated / len(corpus) >= config.delimiter_fraction:
                proposals.append(DelimiterBundle(delimiter))
        return proposals


class DelimiterParser(Parser):

    @property
    def name(self) -> str:
        return "delimiter"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, DelimiterBundle)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        delimiter = hypothesis.delimiter
        n = len(message)
        if n < len(delimiter) or message[n - len(delimiter):] != delimiter:
            return StructuralException(
                index, message, ExceptionReason.MISSING_DELIMITER,
                f"message does not end with {delimiter.hex()}",
            )

        segments = []
        pos = 0
        for match in re.finditer(re.escape(delimiter), message):
            segments.append(sdu(pos, match.start(), "record"))
            segments.append(declared(match.start(), match.end(), FieldKind.DELIMITER))
            pos = match.end()

        if pos != n:
            # Terminator overlaps the last match (e.g. 00 00 00 with delimiter 00 00)
            return StructuralException(
                index, message, ExceptionReason.MISSING_DELIMITER,
                f"terminator not aligned with record boundary at {pos}",
            )
        return Decomposition(index, message, tuple(segments))
