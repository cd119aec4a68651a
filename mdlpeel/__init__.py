"""
mdlpeel - MDL protocol layer peeling
Infers the layered structure of an unknown binary protocol from captured messages.

Each layer is PDU = PCI || SDU: candidate framings (length prefixes, delimiters,
fixed headers, extensible bitmaps, TLV, varint keys) are parsed and scored by
Minimum Description Length, the cheapest is kept and its payloads are peeled
again.
"""

__version__ = "0.1.0"

from mdlpeel.config import GeneratorConfig, InferenceConfig, ScoringConfig
from mdlpeel.corpus import Corpus, CorpusMeta
from mdlpeel.engine import (
    Candidate,
    InferenceEngine,
    InferenceResult,
    Layer,
    StopReason,
    infer,
)
from mdlpeel.errors import (
    BudgetExceeded,
    ConfigurationError,
    ContractViolation,
    CorpusFormatError,
    InvalidHypothesis,
    PeelError,
)
from mdlpeel.hypothesis import (
    DelimiterBundle,
    Endianness,
    ExtensibleBitmap,
    FixedHeader,
    Hypothesis,
    LengthPrefixBundle,
    Opaque,
    Tlv,
    TlvLenRule,
    VarintKeyWireType,
    hypothesis_from_dict,
)
from mdlpeel.plugin import HypothesisGenerator, Parser, PluginRegistry, Scorer
from mdlpeel.plugins import default_registry
from mdlpeel.score import MdlScorer, ScoreBreakdown
from mdlpeel.segment import (
    Decomposition,
    ExceptionReason,
    FieldKind,
    ParsedCorpus,
    Segment,
    SegmentRole,
    StructuralException,
)
from mdlpeel.trace import SearchTrace

__all__ = [
    "GeneratorConfig",
    "InferenceConfig",
    "ScoringConfig",
    "Corpus",
    "CorpusMeta",
    "Candidate",
    "InferenceEngine",
    "InferenceResult",
    "Layer",
    "StopReason",
    "infer",
    "BudgetExceeded",
    "ConfigurationError",
    "ContractViolation",
    "CorpusFormatError",
    "InvalidHypothesis",
    "PeelError",
    "DelimiterBundle",
    "Endianness",
    "ExtensibleBitmap",
    "FixedHeader",
    "Hypothesis",
    "LengthPrefixBundle",
    "Opaque",
    "Tlv",
    "TlvLenRule",
    "VarintKeyWireType",
    "hypothesis_from_dict",
    "HypothesisGenerator",
    "Parser",
    "Scorer",
    "PluginRegistry",
    "default_registry",
    "MdlScorer",
    "ScoreBreakdown",
    "Decomposition",
    "ExceptionReason",
    "FieldKind",
    "ParsedCorpus",
    "Segment",
    "SegmentRole",
    "StructuralException",
    "SearchTrace",
]
