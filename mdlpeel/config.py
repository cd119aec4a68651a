"""
mdlpeel Configuration

Plain dataclasses with defaults, grouped by the component that reads them.
Overrides come from a mapping (e.g. a parsed JSON file) or from
MDLPEEL_* environment variables.

Usage:
    config = InferenceConfig.from_env()
    config.max_depth = 3
    engine = InferenceEngine(default_registry(), config)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from mdlpeel.errors import ConfigurationError


@dataclass
class GeneratorConfig:
    """Search-space bounds for the built-in hypothesis generators."""
    max_prefix_offset: int = 4
    # Fraction of (long enough) messages whose declared length must agree
    # with the observed length before a length-prefix candidate is proposed
    length_consistency_fraction: float = 0.5
    delimiter_fraction: float = 0.9
    max_header_len: int = 32
    max_bitmap_start: int = 4
    bitmap_max_bytes: int = 8
    max_tag_offset: int = 2
    max_tag_bytes: int = 3
    entropy_jump_bits: float = 1.5
    # Messages inspected by the cheap consistency pre-checks
    sample_size: int = 256


@dataclass
class ScoringConfig:
    """Weights and budgets of the MDL scorer."""
    exception_bits: float = 32.0
    split_bits: float = 8.0
    short_sdu_bits: float = 4.0
    short_sdu_len: int = 2
    alignment_min_fraction: float = 0.8
    compression_level: int = 9
    compression_max_bytes: int = 8 * 1024 * 1024
    compression_max_seconds: Optional[float] = 5.0
    cache_entries: int = 4096


@dataclass
class InferenceConfig:
    """Top-level engine configuration."""
    max_depth: int = 6
    top_k: int = 10
    max_workers: Optional[int] = None
    # A layer is kept only if it beats the opaque baseline by more than this
    min_gain_bits: float = 16.0
    # SDUs shorter than this are not peeled further
    min_sdu_size: int = 4
    generators: GeneratorConfig = field(default_factory=GeneratorConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def validate(self) -> InferenceConfig:
        if self.max_depth < 0:
            raise ConfigurationError("max_depth must be >= 0", {"max_depth": self.max_depth})
        if self.top_k < 1:
            raise ConfigurationError("top_k must be >= 1", {"top_k": self.top_k})
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(
                "max_workers must be >= 1", {"max_workers": self.max_workers}
            )
        if self.min_gain_bits < 0:
            raise ConfigurationError(
                "min_gain_bits must be >= 0", {"min_gain_bits": self.min_gain_bits}
            )
        if self.min_sdu_size < 0:
            raise ConfigurationError(
                "min_sdu_size must be >= 0", {"min_sdu_size": self.min_sdu_size}
            )
        for name in ("length_consistency_fraction", "delimiter_fraction"):
            value = getattr(self.generators, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(f"generators.{name} must be in (0, 1]", {name: value})
        if not 0.0 <= self.scoring.alignment_min_fraction <= 1.0:
            raise ConfigurationError("scoring.alignment_min_fraction must be in [0, 1]")
        if not 0 <= self.scoring.compression_level <= 9:
            raise ConfigurationError("scoring.compression_level must be in [0, 9]")
        if self.scoring.compression_max_bytes < 0:
            raise ConfigurationError("scoring.compression_max_bytes must be >= 0")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> InferenceConfig:
        """Build a config from nested dicts, ignoring nothing silently."""
        data = dict(data)
        generators = _build_section(GeneratorConfig, data.pop("generators", {}), "generators")
        scoring = _build_section(ScoringConfig, data.pop("scoring", {}), "scoring")
        known = {f.name for f in fields(cls)} - {"generators", "scoring"}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        return cls(generators=generators, scoring=scoring, **data).validate()

    @classmethod
    def from_env(
        cls,
        prefix: str = "MDLPEEL_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> InferenceConfig:
        """Defaults overridden by environment variables."""
        env = os.environ if environ is None else environ
        config = cls()
        overrides = {
            "MAX_DEPTH": (config, "max_depth", int),
            "TOP_K": (config, "top_k", int),
            "MAX_WORKERS": (config, "max_workers", int),
            "MIN_GAIN_BITS": (config, "min_gain_bits", float),
            "MIN_SDU_SIZE": (config, "min_sdu_size", int),
            "COMPRESSION_MAX_BYTES": (config.scoring, "compression_max_bytes", int),
            "COMPRESSION_MAX_SECONDS": (config.scoring, "compression_max_seconds", float),
        }
        for suffix, (target, attr, cast) in overrides.items():
            raw = env.get(prefix + suffix)
            if raw is None or raw == "":
                continue
            try:
                setattr(target, attr, cast(raw))
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {prefix + suffix}: {raw!r}", {"env": prefix + suffix}
                ) from e
        return config.validate()


def _build_section(section_cls: type, values: Mapping[str, Any], name: str) -> Any:
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"Unknown {name} config keys: {sorted(unknown)}")
    return section_cls(**values)
