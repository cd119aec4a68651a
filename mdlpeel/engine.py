"""
mdlpeel Inference Engine

Peels a corpus one layer at a time:

    generate -> parse -> score -> select -> extract SDUs -> recurse

Each depth proposes hypotheses from every registered generator (plus the
Opaque baseline), evaluates them in parallel, and keeps the cheapest one if
it beats doing nothing by more than min_gain_bits. The SDU corpus of the
accepted layer (SDUs shorter than min_sdu_size dropped) is the input of the
next depth; a corpus whose mean message length is below min_sdu_size is
not peeled further.

Failure handling per candidate:
    ContractViolation  -> propagates out of infer() (plugin bug)
    anything else      -> candidate rejected with an infinite score

Usage:
    engine = InferenceEngine(default_registry(), InferenceConfig())
    result = engine.infer(corpus)
    print(result.summary())
    json.dump(result.to_dict(), fh)
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from mdlpeel.config import InferenceConfig
from mdlpeel.corpus import Corpus
from mdlpeel.errors import ContractViolation
from mdlpeel.hypothesis import Hypothesis, Opaque, is_hypothesis
from mdlpeel.plugin import PluginRegistry, Scorer
from mdlpeel.plugins import default_registry
from mdlpeel.residue import extract_sdu_corpus
from mdlpeel.score import MdlScorer, ScoreBreakdown
from mdlpeel.segment import ParsedCorpus
from mdlpeel.trace import SearchTrace

logger = logging.getLogger(__name__)

BASELINE = "baseline"


class StopReason(str, Enum):
    MAX_DEPTH = "max_depth"
    NO_GAIN = "no_gain"
    DEGENERATE_SDU = "degenerate_sdu"
    SMALL_SDU = "small_sdu"
    EMPTY_CORPUS = "empty_corpus"


# ============================================================================
# Result model
# ============================================================================

@dataclass(frozen=True)
class Proposal:
    """A hypothesis with the position it was proposed at."""
    hypothesis: Hypothesis
    generator: str
    generator_order: int
    proposal_order: int


@dataclass(frozen=True)
class Candidate:
    """One evaluated hypothesis at one depth."""
    hypothesis: Hypothesis
    score: ScoreBreakdown
    parsed: Optional[ParsedCorpus]
    generator: str
    generator_order: int
    proposal_order: int

    @property
    def total_bits(self) -> float:
        return self.score.total_bits

    def sort_key(self) -> tuple:
        # Cheapest first; then better fit, simpler model, registration order
        return (
            self.score.total_bits,
            -self.score.parse_success_ratio,
            self.hypothesis.param_count,
            self.generator_order,
            self.proposal_order,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "hypothesis": self.hypothesis.to_dict(),
            "generator": self.generator,
            "score": self.score.to_dict(),
        }

    def __repr__(self) -> str:
        return f"<Candidate {self.hypothesis.describe()} {self.score!r}>"


@dataclass(frozen=True)
class Layer:
    """One accepted hypothesis at one depth."""
    depth: int
    hypothesis: Hypothesis
    score: ScoreBreakdown
    parsed: ParsedCorpus
    sdu_corpus: Corpus
    alternatives: tuple[Candidate, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "depth": self.depth,
            "hypothesis": self.hypothesis.to_dict(),
            "score": self.score.to_dict(),
            "parsed": self.parsed.summary(),
            "sdu_corpus": [m.hex() for m in self.sdu_corpus.messages],
            "alternatives": [c.to_dict() for c in self.alternatives],
        }

    def __repr__(self) -> str:
        return f"<Layer {self.depth}: {self.hypothesis.describe()} {self.score.total_bits:.1f} bits>"


@dataclass(frozen=True)
class InferenceResult:
    """Ordered layers (outermost first) plus the corpus they were peeled from."""
    corpus: Corpus
    layers: tuple[Layer, ...]
    stop_reason: StopReason
    trace: SearchTrace

    @property
    def depth(self) -> int:
        return len(self.layers)

    @property
    def hypotheses(self) -> list[Hypothesis]:
        return [layer.hypothesis for layer in self.layers]

    def to_dict(self) -> dict[str, Any]:
        return {
            "corpus": self.corpus.to_dict(),
            "stop_reason": self.stop_reason.value,
            "layers": [layer.to_dict() for layer in self.layers],
        }

    def summary(self) -> str:
        lines = [
            f"Inference: {len(self.corpus)} messages, {self.corpus.total_bytes} bytes, "
            f"{len(self.layers)} layer(s), stopped: {self.stop_reason.value}",
        ]
        for layer in self.layers:
            s = layer.score
            parsed = layer.parsed.summary()
            lines.append(
                f"  [{layer.depth}] {layer.hypothesis.describe()}"
            )
            lines.append(
                f"      {s.total_bits:.1f} bits  psr={s.parse_success_ratio:.2f}  "
                f"exceptions={s.exception_count}  sdus={parsed['sdu_count']}"
                + ("  (degraded)" if s.degraded else "")
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"<InferenceResult: {len(self.layers)} layers, {self.stop_reason.value}>"


# ============================================================================
# Engine
# ============================================================================

class InferenceEngine:
    """Recursive hypothesis search over a registry of plugins.

    The registry is injected, never global: two engines with different
    registries can run side by side.
    """

    def __init__(self, registry: PluginRegistry, config: Optional[InferenceConfig] = None) -> None:
        self.registry = registry
        self.config = (config or InferenceConfig()).validate()
        scorers = registry.scorers
        self.scorer: Scorer = scorers[0] if scorers else MdlScorer(self.config.scoring)

    def infer(
        self,
        corpus: Corpus,
        max_depth: Optional[int] = None,
        top_k: Optional[int] = None,
    ) -> InferenceResult:
        max_depth = self.config.max_depth if max_depth is None else max_depth
        top_k = self.config.top_k if top_k is None else top_k
        trace = SearchTrace()

        if corpus.is_degenerate:
            logger.info("Corpus %s is empty, nothing to infer", corpus.source)
            return InferenceResult(corpus, (), StopReason.EMPTY_CORPUS, trace)

        layers: list[Layer] = []
        current = corpus
        stop = StopReason.MAX_DEPTH
        for depth in range(max_depth):
            if current.mean_length < self.config.min_sdu_size:
                logger.info(
                    "depth %d: mean message length %.1f is below %d bytes, stopping",
                    depth, current.mean_length, self.config.min_sdu_size,
                )
                stop = StopReason.SMALL_SDU
                break

            ranked = self.evaluate(current)
            best = ranked[0]
            baseline = next(c for c in ranked if isinstance(c.hypothesis, Opaque))
            gain = baseline.total_bits - best.total_bits
            logger.info(
                "depth %d: %d candidates over %d messages, best %s (%.1f bits, gain %.1f)",
                depth, len(ranked), len(current), best.hypothesis.describe(),
                best.total_bits, gain,
            )

            if isinstance(best.hypothesis, Opaque) or not gain > self.config.min_gain_bits:
                trace.record_depth(depth, ranked, None)
                stop = StopReason.NO_GAIN
                break

            sdu_corpus = extract_sdu_corpus(current, best.parsed, self.config.min_sdu_size)
            if sdu_corpus.is_degenerate:
                trace.record_depth(depth, ranked, None)
                stop = StopReason.DEGENERATE_SDU
                break

            trace.record_depth(depth, ranked, 0)
            layers.append(Layer(
                depth=depth,
                hypothesis=best.hypothesis,
                score=best.score,
                parsed=best.parsed,
                sdu_corpus=sdu_corpus,
                alternatives=tuple(ranked[:top_k]),
            ))
            current = sdu_corpus

        logger.info("Inference finished with %d layer(s): %s", len(layers), stop.value)
        return InferenceResult(corpus, tuple(layers), stop, trace)

    # ------------------------------------------------------------------
    # One depth
    # ------------------------------------------------------------------

    def propose(self, corpus: Corpus) -> list[Proposal]:
        """Deduplicated proposals of every generator, then the baseline."""
        proposals: list[Proposal] = []
        seen: set = set()
        generators = self.registry.generators
        for generator_order, generator in enumerate(generators):
            try:
                hypotheses = generator.generate(corpus, self.config.generators)
            except Exception as e:
                raise ContractViolation(
                    f"Generator {generator.name} raised: {e}", {"generator": generator.name}
                ) from e
            for proposal_order, h in enumerate(hypotheses):
                if not is_hypothesis(h):
                    raise ContractViolation(
                        f"Generator {generator.name} proposed {type(h).__name__}",
                        {"generator": generator.name},
                    )
                if h in seen:
                    continue
                seen.add(h)
                proposals.append(Proposal(h, generator.name, generator_order, proposal_order))
        baseline = Opaque()
        if baseline not in seen:
            proposals.append(Proposal(baseline, BASELINE, len(generators), 0))
        return proposals

    def evaluate(self, corpus: Corpus) -> list[Candidate]:
        """Parse and score every proposal; returns candidates best first."""
        proposals = self.propose(corpus)
        workers = self.config.max_workers or os.cpu_count() or 1
        with ThreadPoolExecutor(max_workers=min(workers, len(proposals))) as pool:
            futures = [pool.submit(self._evaluate_one, corpus, p) for p in proposals]
            candidates = [future.result() for future in futures]
        return sorted(candidates, key=Candidate.sort_key)

    def _evaluate_one(self, corpus: Corpus, proposal: Proposal) -> Candidate:
        h = proposal.hypothesis
        parser = self.registry.parser_for(h)
        parsed = parser.parse(corpus, h)
        try:
            score = self.scorer.score(corpus, h, parsed)
        except ContractViolation:
            raise
        except Exception as e:
            logger.warning("Scoring %s failed: %s", h.describe(), e)
            score = ScoreBreakdown.rejected(f"{type(e).__name__}: {e}")
        logger.debug("  %-60s %s", h.describe(), score)
        return Candidate(
            hypothesis=h,
            score=score,
            parsed=parsed,
            generator=proposal.generator,
            generator_order=proposal.generator_order,
            proposal_order=proposal.proposal_order,
        )


def infer(
    corpus: Corpus,
    registry: Optional[PluginRegistry] = None,
    config: Optional[InferenceConfig] = None,
) -> InferenceResult:
    """One-shot inference with the built-in mechanisms by default."""
    if registry is None:
        registry = default_registry()
    return InferenceEngine(registry, config).infer(corpus)
