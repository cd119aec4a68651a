"""
mdlpeel Varint Key / Wire Type (protobuf-like)

A message is a sequence of fields running to the end of the message:

    [ key varint ][ value ] [ key varint ][ value ] ...

    key = field_number << 3 | wire_type

    wire type 0   varint value            -> VARINT field
    wire type 1   8 bytes little-endian   -> FIXED64 field
    wire type 2   varint length + bytes   -> LENGTH field + SDU
    wire type 5   4 bytes little-endian   -> FIXED32 field

Only length-delimited values are payload; everything else is declared
structure. Groups (3, 4) and the unassigned types (6, 7) are rejected.
"""

from __future__ import annotations

from typing import Union

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.hypothesis import Hypothesis, VarintKeyWireType
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

VARINT_MAX_BYTES = 10

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5
VALID_WIRE_TYPES = (WIRE_VARINT, WIRE_FIXED64, WIRE_LENGTH_DELIMITED, WIRE_FIXED32)

# (key_max_bytes, max_field_number): full protobuf range, and a narrow
# variant for hand-rolled encodings with few fields
DEFAULT_VARIANTS = ((5, (1 << 29) - 1), (2, 2047))


def read_varint(message: memoryview, pos: int, max_bytes: int) -> Union[tuple[int, int], ExceptionReason]:
    """Decode a base-128 varint at `pos`. Returns (value, end) or a reason."""
    value = 0
    shift = 0
    n = len(message)
    for i in range(max_bytes):
        if pos + i >= n:
            return ExceptionReason.VARINT_TRUNCATED
        byte = message[pos + i]
        value |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            return value, pos + i + 1
    return ExceptionReason.VARINT_OVERLONG


def is_plausible_key(byte: int, max_field_number: int) -> bool:
    """Single-byte check used to screen corpora cheaply."""
    wire_type = byte & 0x07
    field_number = (byte & 0x7F) >> 3
    if wire_type not in VALID_WIRE_TYPES:
        return False
    # A continuation byte hides the rest of the field number
    return bool(byte & 0x80) or 1 <= field_number <= max_field_number


class VarintGenerator(HypothesisGenerator):

    @property
    def name(self) -> str:
        return "varint_key_wire_type"

    def generate(self, corpus: Corpus, config: GeneratorConfig) -> list[Hypothesis]:
        sample = [m for m in corpus.messages[:config.sample_size] if len(m)]
        if not sample:
            return []

        parser = VarintParser()
        proposals: list[Hypothesis] = []
        for key_max_bytes, max_field_number in DEFAULT_VARIANTS:
            keyed = sum(1 for m in sample if is_plausible_key(m[0], max_field_number))
            if keyed / len(sample) < config.length_consistency_fraction:
                continue
            h = VarintKeyWireType(key_max_bytes, max_field_number)
            parsed = sum(1 for i, m in enumerate(sample)
                         if not parser.parse_message(i, m, h).is_exception)
            if parsed / len(sample) >= config.length_consistency_fraction:
                proposals.append(h)
        return proposals


class VarintParser(Parser):

    @property
    def name(self) -> str:
        return "varint_key_wire_type"

    def applicable(self, hypothesis: Hypothesis) -> bool:
        return isinstance(hypothesis, VarintKeyWireType)

    def parse_message(self, index: int, message: memoryview, hypothesis: Hypothesis) -> ParsedMessage:
        h = hypothesis
        n = len(message)
        if n == 0:
            return StructuralException(index, message, ExceptionReason.EMPTY_MESSAGE)

        def fault(reason: ExceptionReason, detail: str) -> StructuralException:
            return StructuralException(index, message, reason, detail)

        segments = []
        pos = 0
        while pos < n:
            decoded = read_varint(message, pos, h.key_max_bytes)
            if isinstance(decoded, ExceptionReason):
                return fault(decoded, f"key at {pos}")
            key, key_end = decoded
            field_number, wire_type = key >> 3, key & 0x07
            if wire_type not in VALID_WIRE_TYPES:
                return fault(ExceptionReason.INVALID_WIRE_TYPE, f"wire type {wire_type} at {pos}")
            if not 1 <= field_number <= h.max_field_number:
                return fault(ExceptionReason.FIELD_NUMBER_OUT_OF_RANGE,
                             f"field number {field_number} at {pos}")
            segments.append(declared(pos, key_end, FieldKind.KEY, key))
            pos = key_end

            if wire_type == WIRE_VARINT:
                decoded = read_varint(message, pos, VARINT_MAX_BYTES)
                if isinstance(decoded, ExceptionReason):
                    return fault(decoded, f"field {field_number} value at {pos}")
                value, end = decoded
                segments.append(declared(pos, end, FieldKind.VARINT, value))
            elif wire_type == WIRE_LENGTH_DELIMITED:
                decoded = read_varint(message, pos, VARINT_MAX_BYTES)
                if isinstance(decoded, ExceptionReason):
                    return fault(decoded, f"field {field_number} length at {pos}")
                length, len_end = decoded
                end = len_end + length
                if end > n:
                    return fault(ExceptionReason.LENGTH_OVERFLOW,
                                 f"field {field_number} needs {length} bytes at {len_end}, "
                                 f"{n - len_end} left")
                segments.append(declared(pos, len_end, FieldKind.LENGTH, length))
                segments.append(sdu(len_end, end, f"field_{field_number}"))
            else:
                width = 8 if wire_type == WIRE_FIXED64 else 4
                end = pos + width
                if end > n:
                    return fault(ExceptionReason.LENGTH_OVERFLOW,
                                 f"field {field_number} needs {width} bytes at {pos}")
                kind = FieldKind.FIXED64 if wire_type == WIRE_FIXED64 else FieldKind.FIXED32
                segments.append(declared(pos, end, kind, int.from_bytes(message[pos:end], "little")))
            pos = end

        return Decomposition(index, message, tuple(segments))
