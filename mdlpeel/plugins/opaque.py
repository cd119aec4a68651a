"""
mdlpeel Opaque Parser

The trivial interpretation: every message is one undifferentiated PCI
block. Every message satisfies it, so its score is the description length
of the corpus with no structure at all. The engine injects the Opaque
hypothesis at every depth; there is no generator for it.
"""

from __future__ import annotations

from mdlpeel.hypothesis import Hypothesis, Opaque
from mdlpeel.plugin import Parser
from mdlpeel.segment import Decomposition, ParsedMessage, pci


class OpaqueParser(Parser):

    @property
    def name(self) -> str:
        return "opaque"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, Opaque)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        segments = (pci(0, len(message), "opaque"),) if len(message) else ()
        return Decomposition(index, message, segments)
