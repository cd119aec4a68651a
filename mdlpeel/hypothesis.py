"""
mdlpeel Hypotheses

A Hypothesis describes how a PDU might split into PCI + SDU. The set of
shapes is closed: each variant is a frozen dataclass and `Hypothesis` is
their union. Parsers and the scorer dispatch on the concrete type; a new
framing mechanism adds a new variant (and a parser for it), not a subclass.

Variants are hashable and compare structurally, which is what the engine
uses to deduplicate proposals from different generators.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union

from mdlpeel.errors import InvalidHypothesis


class Endianness(str, Enum):
    LITTLE = "little"
    BIG = "big"


class TlvLenRule(str, Enum):
    """How a TLV length field is encoded."""
    FIXED_1 = "fixed_1"
    FIXED_2 = "fixed_2"
    FIXED_4 = "fixed_4"
    # BER definite form: first byte < 0x80 is the length (short form),
    # 0x81..0x84 announce 1-4 big-endian length bytes (long form)
    BER = "ber"

    @property
    def fixed_width(self) -> int:
        """Width in bytes for the fixed rules, 0 for BER."""
        return {"fixed_1": 1, "fixed_2": 2, "fixed_4": 4}.get(self.value, 0)


def _require(condition: bool, message: str, **context: Any) -> None:
    if not condition:
        raise InvalidHypothesis(message, context)


class _Variant:
    """Shared rendering helpers for hypothesis variants (not a base type)."""

    kind: ClassVar[str]
    _fields: ClassVar[tuple[str, ...]]

    def params(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self._fields}

    @property
    def param_count(self) -> int:
        return len(self._fields)

    def to_dict(self) -> dict[str, Any]:
        rendered: dict[str, Any] = {"kind": self.kind}
        for name, value in self.params().items():
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, bytes):
                value = value.hex()
            rendered[name] = value
        return rendered

    def describe(self) -> str:
        args = ", ".join(f"{k}={v}" for k, v in self.to_dict().items() if k != "kind")
        return f"{self.kind}({args})"


@dataclass(frozen=True)
class Opaque(_Variant):
    """No structure: the whole message is PCI. The baseline every layer must beat."""
    kind: ClassVar[str] = "opaque"
    _fields: ClassVar[tuple[str, ...]] = ()


@dataclass(frozen=True)
class LengthPrefixBundle(_Variant):
    """A `width`-byte length at `offset` gives the frame length."""
    offset: int
    width: int
    endian: Endianness
    includes_header: bool

    kind: ClassVar[str] = "length_prefix"
    _fields: ClassVar[tuple[str, ...]] = ("offset", "width", "endian", "includes_header")

    def __post_init__(self) -> None:
        _require(self.offset >= 0, "offset must be >= 0", offset=self.offset)
        _require(self.width in (1, 2, 4), "width must be 1, 2 or 4", width=self.width)
        _require(isinstance(self.endian, Endianness), "endian must be an Endianness")


@dataclass(frozen=True)
class DelimiterBundle(_Variant):
    """Records terminated by a fixed byte pattern."""
    delimiter: bytes

    kind: ClassVar[str] = "delimiter"
    _fields: ClassVar[tuple[str, ...]] = ("delimiter",)

    def __post_init__(self) -> None:
        _require(isinstance(self.delimiter, bytes) and len(self.delimiter) > 0,
                 "delimiter must be non-empty bytes")


@dataclass(frozen=True)
class FixedHeader(_Variant):
    """A constant-size header."""
    length: int

    kind: ClassVar[str] = "fixed_header"
    _fields: ClassVar[tuple[str, ...]] = ("length",)

    def __post_init__(self) -> None:
        _require(self.length >= 1, "header length must be >= 1", length=self.length)


@dataclass(frozen=True)
class ExtensibleBitmap(_Variant):
    """PER-like chain of bytes starting at `start`.

    Bit `continuation_bit_position` of each byte is compared with `stop_value`:
    equal ends the chain, anything else means another byte follows.
    """
    continuation_bit_position: int
    start: int = 0
    stop_value: int = 0
    max_bytes: int = 8

    kind: ClassVar[str] = "extensible_bitmap"
    _fields: ClassVar[tuple[str, ...]] = (
        "continuation_bit_position", "start", "stop_value", "max_bytes",
    )

    def __post_init__(self) -> None:
        _require(0 <= self.continuation_bit_position <= 7,
                 "continuation_bit_position must be 0..7",
                 continuation_bit_position=self.continuation_bit_position)
        _require(self.start >= 0, "start must be >= 0", start=self.start)
        _require(self.stop_value in (0, 1), "stop_value must be 0 or 1")
        _require(self.max_bytes >= 1, "max_bytes must be >= 1")


@dataclass(frozen=True)
class Tlv(_Variant):
    """BER/TLV style frame: tag, optional gap, length, value."""
    tag_offset: int
    tag_bytes: int
    len_offset: int
    len_rule: TlvLenRule
    length_includes_header: bool

    kind: ClassVar[str] = "tlv"
    _fields: ClassVar[tuple[str, ...]] = (
        "tag_offset", "tag_bytes", "len_offset", "len_rule", "length_includes_header",
    )

    def __post_init__(self) -> None:
        _require(self.tag_offset >= 0, "tag_offset must be >= 0")
        _require(self.tag_bytes >= 1, "tag_bytes must be >= 1")
        _require(self.len_offset >= self.tag_offset + self.tag_bytes,
                 "length field must follow the tag",
                 tag_offset=self.tag_offset, tag_bytes=self.tag_bytes,
                 len_offset=self.len_offset)
        _require(isinstance(self.len_rule, TlvLenRule), "len_rule must be a TlvLenRule")


@dataclass(frozen=True)
class VarintKeyWireType(_Variant):
    """Protobuf-like sequence of (varint key, wire-type-dependent value)."""
    key_max_bytes: int = 5
    max_field_number: int = (1 << 29) - 1

    kind: ClassVar[str] = "varint_key_wire_type"
    _fields: ClassVar[tuple[str, ...]] = ("key_max_bytes", "max_field_number")

    def __post_init__(self) -> None:
        _require(1 <= self.key_max_bytes <= 10, "key_max_bytes must be 1..10")
        _require(self.max_field_number >= 1, "max_field_number must be >= 1")


Hypothesis = Union[
    Opaque,
    LengthPrefixBundle,
    DelimiterBundle,
    FixedHeader,
    ExtensibleBitmap,
    Tlv,
    VarintKeyWireType,
]

HYPOTHESIS_TYPES: tuple[type, ...] = (
    Opaque,
    LengthPrefixBundle,
    DelimiterBundle,
    FixedHeader,
    ExtensibleBitmap,
    Tlv,
    VarintKeyWireType,
)

_BY_KIND = {cls.kind: cls for cls in HYPOTHESIS_TYPES}


def is_hypothesis(value: object) -> bool:
    return isinstance(value, HYPOTHESIS_TYPES)


def hypothesis_from_dict(data: dict[str, Any]) -> Hypothesis:
    """Rebuild a hypothesis from its to_dict() rendering."""
    params = dict(data)
    kind = params.pop("kind", None)
    cls = _BY_KIND.get(kind)
    if cls is None:
        raise InvalidHypothesis(f"Unknown hypothesis kind {kind!r}", {"kinds": sorted(_BY_KIND)})
    if "endian" in params:
        params["endian"] = Endianness(params["endian"])
    if "len_rule" in params:
        params["len_rule"] = TlvLenRule(params["len_rule"])
    if "delimiter" in params:
        params["delimiter"] = bytes.fromhex(params["delimiter"])
    try:
        return cls(**params)
    except TypeError as e:
        raise InvalidHypothesis(f"Bad parameters for {kind}: {e}", {"params": params}) from e
