"""
mdlpeel Plugin System

Generators propose hypotheses, Parsers apply them, Scorers price the
result. All three are registered by name into a PluginRegistry that is
built once per run and handed to the engine explicitly, so two inference
runs (say, the two directions of a flow) can use differently configured
registries side by side. The engine scores with the first registered
Scorer, or with MdlScorer when none is registered.

Subclasses implement:
    - HypothesisGenerator.generate(): corpus statistics -> candidates
    - Parser.applicable() / Parser.parse_message(): one message at a time
    - Scorer.score(): parsed corpus -> ScoreBreakdown

Parser.parse() is the public API: it applies parse_message() to every
message and enforces the contract (total, order-preserving, lossless).

Usage:
    registry = PluginRegistry()
    registry.register_generator(LengthPrefixGenerator())
    registry.register_parser(LengthPrefixParser())
    parser = registry.parser_for(hypothesis)
    parsed = parser.parse(corpus, hypothesis)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.errors import ContractViolation
from mdlpeel.hypothesis import Hypothesis
from mdlpeel.segment import Decomposition, ParsedCorpus, ParsedMessage, StructuralException

if TYPE_CHECKING:
    from mdlpeel.score import ScoreBreakdown


class HypothesisGenerator(ABC):
    """Proposes structurally plausible hypotheses for a corpus.

    Must be deterministic and side-effect free. Proposals are not
    guaranteed to parse; overlapping proposals across generators are
    fine (the engine deduplicates).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        ...

    def __repr__(self) -> str:
        return f"<Generator:{self.name}>"


class Parser(ABC):
    """Applies one hypothesis family to a corpus."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def applicable(self, hypothesis: Hypothesis) -> bool:
        """Whether this parser handles the hypothesis' variant."""
        ...

    @abstractmethod
    def parse_message(
        self,
        index: int,
        message: memoryview,
        hypothesis: Hypothesis,
    ) -> ParsedMessage:
        """Decompose one message or describe why it does not conform.

        Malformed input must come back as a StructuralException; raising
        is reserved for bugs.
        """
        ...

    def parse(self, corpus: Corpus, hypothesis: Hypothesis) -> ParsedCorpus:
        if not self.applicable(hypothesis):
            raise ContractViolation(
                f"Parser {self.name} cannot handle {hypothesis!r}",
                {"parser": self.name},
            )
        entries: list[ParsedMessage] = []
        for index, message in enumerate(corpus.messages):
            try:
                entry = self.parse_message(index, message, hypothesis)
            except Exception as e:
                raise ContractViolation(
                    f"Parser {self.name} raised on message {index}: {e}",
                    {"parser": self.name, "hypothesis": hypothesis.describe(), "index": index},
                ) from e
            self._check_entry(index, message, entry, hypothesis)
            entries.append(entry)
        return ParsedCorpus(hypothesis=hypothesis, entries=tuple(entries))

    def _check_entry(
        self,
        index: int,
        message: memoryview,
        entry: ParsedMessage,
        hypothesis: Hypothesis,
    ) -> None:
        context = {"parser": self.name, "hypothesis": hypothesis.describe(), "index": index}
        if not isinstance(entry, (Decomposition, StructuralException)):
            raise ContractViolation(f"Parser {self.name} returned {type(entry).__name__}", context)
        if entry.index != index or entry.message is not message:
            raise ContractViolation(f"Parser {self.name} misplaced message {index}", context)
        if isinstance(entry, Decomposition) and not entry.is_lossless():
            raise ContractViolation(
                f"Parser {self.name} produced a lossy decomposition: {entry.segments}",
                context,
            )

    def __repr__(self) -> str:
        return f"<Parser:{self.name}>"


class Scorer(ABC):
    """Prices a parsed corpus in bits. Lower is better.

    Called from worker threads, so implementations must not keep
    per-call state on the instance. Raising rejects only the candidate
    being scored.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def score(self, corpus: Corpus, hypothesis: Hypothesis, parsed: ParsedCorpus) -> ScoreBreakdown:
        ...

    def __repr__(self) -> str:
        return f"<Scorer:{self.name}>"


class PluginRegistry:
    """Named generators, parsers and scorers, in registration order."""

    def __init__(self) -> None:
        self._generators: dict[str, HypothesisGenerator] = {}
        self._parsers: dict[str, Parser] = {}
        self._scorers: dict[str, Scorer] = {}

    def register_generator(self, generator: HypothesisGenerator) -> None:
        if generator.name in self._generators:
            raise KeyError(f"Generator '{generator.name}' already registered")
        self._generators[generator.name] = generator

    def register_parser(self, parser: Parser) -> None:
        if parser.name in self._parsers:
            raise KeyError(f"Parser '{parser.name}' already registered")
        self._parsers[parser.name] = parser

    def register_scorer(self, scorer: Scorer) -> None:
        if scorer.name in self._scorers:
            raise KeyError(f"Scorer '{scorer.name}' already registered")
        self._scorers[scorer.name] = scorer

    @property
    def generators(self) -> list[HypothesisGenerator]:
        return list(self._generators.values())

    @property
    def parsers(self) -> list[Parser]:
        return list(self._parsers.values())

    @property
    def scorers(self) -> list[Scorer]:
        return list(self._scorers.values())

    def get_generator(self, name: str) -> HypothesisGenerator:
        if name not in self._generators:
            raise KeyError(
                f"Unknown generator '{name}'. "
                f"Registered: {list(self._generators.keys())}"
            )
        return self._generators[name]

    def find_parser(self, hypothesis: Hypothesis) -> Optional[Parser]:
        for parser in self._parsers.values():
            if parser.applicable(hypothesis):
                return parser
        return None

    def parser_for(self, hypothesis: Hypothesis) -> Parser:
        parser = self.find_parser(hypothesis)
        if parser is None:
            raise ContractViolation(
                f"No registered parser accepts {hypothesis.describe()}",
                {"parsers": list(self._parsers.keys())},
            )
        return parser

    def __repr__(self) -> str:
        return (
            f"<PluginRegistry: {len(self._generators)} generators, "
            f"{len(self._parsers)} parsers, {len(self._scorers)} scorers>"
        )
