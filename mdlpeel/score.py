"""
mdlpeel MDL Scorer

Scores a parsed corpus as the number of bits needed to transmit
"the model + the data under the model". Lower is better.

    model      = hypothesis parameters + declared field columns
    data       = residual (PCI + SDU of every successful message, in place)
    penalties  = exceptions (fixed charge + verbatim bytes)
                 + SDU splits + very short SDUs
    alignment  = bonus for self-delimiting structure that explains the
                 corpus' length variation
    drop       = raw cost of the successful messages as one stream
                 minus the cost of the same bytes as PCI / field / SDU streams

    total = max(model, model + data + penalties - alignment - drop)

Field bytes are charged once, in the model. The entropy drop compares the
same bytes on both sides (the successful messages), never an SDU-only set
against the whole corpus.

Usage:
    scorer = MdlScorer(ScoringConfig())
    breakdown = scorer.score(corpus, hypothesis, parsed)
    print(breakdown.total_bits, breakdown.to_dict())
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional

from mdlpeel.config import ScoringConfig
from mdlpeel.corpus import Corpus
from mdlpeel.errors import ContractViolation
from mdlpeel.hypothesis import (
    HYPOTHESIS_TYPES,
    DelimiterBundle,
    ExtensibleBitmap,
    FixedHeader,
    Hypothesis,
    LengthPrefixBundle,
    Opaque,
    Tlv,
    TlvLenRule,
    VarintKeyWireType,
)
from mdlpeel.measures import CompressionBudget, DescriptionEstimator, Estimate, elias_gamma_bits
from mdlpeel.plugin import Scorer
from mdlpeel.segment import ParsedCorpus, SegmentRole

logger = logging.getLogger(__name__)

VARIANT_TAG_BITS = math.log2(len(HYPOTHESIS_TYPES))

# Hypotheses whose declared structure determines where each message ends
SELF_DELIMITING = (LengthPrefixBundle, DelimiterBundle, Tlv, VarintKeyWireType)


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class ScoreBreakdown:
    """MDL score of one (corpus, hypothesis) evaluation. A value, never mutated."""
    mdl_model_bits: float
    mdl_data_bits: float
    parse_success_ratio: float
    alignment_gain_bits: float
    entropy_drop_bits: float
    penalties_bits: float
    exception_count: int = 0
    degraded: bool = False
    rejected_reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> ScoreBreakdown:
        """An evaluation that failed: infinitely expensive, never selected."""
        return cls(
            mdl_model_bits=math.inf,
            mdl_data_bits=math.inf,
            parse_success_ratio=0.0,
            alignment_gain_bits=0.0,
            entropy_drop_bits=0.0,
            penalties_bits=math.inf,
            rejected_reason=reason,
        )

    @property
    def is_rejected(self) -> bool:
        return self.rejected_reason is not None

    @property
    def total_bits(self) -> float:
        if self.is_rejected:
            return math.inf
        net = (
            self.mdl_model_bits
            + self.mdl_data_bits
            + self.penalties_bits
            - self.alignment_gain_bits
            - self.entropy_drop_bits
        )
        # The model can explain data away, but never below its own cost
        return max(self.mdl_model_bits, net)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mdl_model_bits": _finite_or_none(self.mdl_model_bits),
            "mdl_data_bits": _finite_or_none(self.mdl_data_bits),
            "parse_success_ratio": self.parse_success_ratio,
            "alignment_gain_bits": _finite_or_none(self.alignment_gain_bits),
            "entropy_drop_bits": _finite_or_none(self.entropy_drop_bits),
            "penalties_bits": _finite_or_none(self.penalties_bits),
            "total_bits": _finite_or_none(self.total_bits),
            "exception_count": self.exception_count,
            "degraded": self.degraded,
            "rejected_reason": self.rejected_reason,
        }

    def __repr__(self) -> str:
        if self.is_rejected:
            return f"<Score REJECTED: {self.rejected_reason}>"
        return (
            f"<Score {self.total_bits:.1f} bits: model={self.mdl_model_bits:.1f} "
            f"data={self.mdl_data_bits:.1f} pen={self.penalties_bits:.1f} "
            f"align={self.alignment_gain_bits:.1f} drop={self.entropy_drop_bits:.1f} "
            f"psr={self.parse_success_ratio:.2f}>"
        )


# ============================================================================
# Parameter cost
# ============================================================================

def model_parameter_bits(hypothesis: Hypothesis) -> float:
    """Bits to transmit the hypothesis itself: variant tag plus parameters."""
    h = hypothesis
    g = elias_gamma_bits
    if isinstance(h, Opaque):
        bits = 0.0
    elif isinstance(h, LengthPrefixBundle):
        # width is one of three values, endian and includes_header one bit each
        bits = g(h.offset) + math.log2(3) + 1 + 1
    elif isinstance(h, DelimiterBundle):
        bits = g(len(h.delimiter)) + 8 * len(h.delimiter)
    elif isinstance(h, FixedHeader):
        bits = g(h.length)
    elif isinstance(h, ExtensibleBitmap):
        bits = 3 + g(h.start) + 1 + g(h.max_bytes)
    elif isinstance(h, Tlv):
        gap = h.len_offset - h.tag_offset - h.tag_bytes
        bits = g(h.tag_offset) + g(h.tag_bytes) + g(gap) + math.log2(len(TlvLenRule)) + 1
    elif isinstance(h, VarintKeyWireType):
        bits = g(h.key_max_bytes) + g(h.max_field_number)
    else:
        raise ContractViolation(f"No parameter cost for {type(h).__name__}")
    return VARIANT_TAG_BITS + bits


# ============================================================================
# Scorer
# ============================================================================

class MdlScorer(Scorer):
    """Computes ScoreBreakdowns. Safe to share between worker threads."""

    def __init__(self, config: Optional[ScoringConfig] = None,
                 estimator: Optional[DescriptionEstimator] = None) -> None:
        self.config = config or ScoringConfig()
        if estimator is None:
            budget = CompressionBudget(
                max_bytes=self.config.compression_max_bytes,
                max_seconds=self.config.compression_max_seconds,
                level=self.config.compression_level,
            )
            estimator = DescriptionEstimator(budget, self.config.cache_entries)
        self.estimator = estimator

    @property
    def name(self) -> str:
        return "mdl"

    def score(self, corpus: Corpus, hypothesis: Hypothesis, parsed: ParsedCorpus) -> ScoreBreakdown:
        if parsed.message_count != len(corpus):
            raise ContractViolation(
                "Parsed corpus does not cover the corpus",
                {"messages": len(corpus), "entries": parsed.message_count},
            )
        cfg = self.config
        decomps = parsed.decompositions()
        exceptions = parsed.exceptions()
        estimates: list[Estimate] = []

        def cost(data: bytes) -> float:
            est = self.estimator.estimate(data)
            estimates.append(est)
            return est.bits

        # Streams over the successful messages, each in corpus order
        raw = bytearray()
        residual = bytearray()
        pci_stream = bytearray()
        sdu_stream = bytearray()
        columns: OrderedDict[str, bytearray] = OrderedDict()
        splits = 0
        short_sdus = 0
        for d in decomps:
            raw += d.message
            sdu_count = 0
            for seg in d.segments:
                view = seg.view(d.message)
                if seg.role is SegmentRole.FIELD:
                    columns.setdefault(seg.name, bytearray()).extend(view)
                    continue
                residual += view
                if seg.role is SegmentRole.PCI:
                    pci_stream += view
                else:
                    sdu_stream += view
                    sdu_count += 1
                    if seg.length < cfg.short_sdu_len:
                        short_sdus += 1
            splits += max(0, sdu_count - 1)

        field_bits = sum(cost(bytes(column)) for column in columns.values())
        model_bits = model_parameter_bits(hypothesis) + field_bits
        data_bits = cost(bytes(residual))

        penalties = (
            len(exceptions) * cfg.exception_bits
            + sum(8 * len(e.message) for e in exceptions)
            + splits * cfg.split_bits
            + short_sdus * cfg.short_sdu_bits
        )

        alignment = 0.0
        if (isinstance(hypothesis, SELF_DELIMITING)
                and parsed.parse_success_ratio >= cfg.alignment_min_fraction):
            alignment = len(decomps) * corpus.length_entropy()

        raw_bits = cost(bytes(raw))
        structured_bits = cost(bytes(pci_stream)) + field_bits + cost(bytes(sdu_stream))
        entropy_drop = max(0.0, raw_bits - structured_bits)

        degraded = any(e.degraded for e in estimates)
        if degraded:
            logger.warning(
                "Compression budget exhausted scoring %s; used entropy estimate",
                hypothesis.describe(),
            )

        return ScoreBreakdown(
            mdl_model_bits=model_bits,
            mdl_data_bits=data_bits,
            parse_success_ratio=parsed.parse_success_ratio,
            alignment_gain_bits=alignment,
            entropy_drop_bits=entropy_drop,
            penalties_bits=penalties,
            exception_count=len(exceptions),
            degraded=degraded,
        )
