"""
mdlpeel Parser Test Suite

Tests every built-in mechanism and the plugin contract:
1. Hypothesis variants (validation, equality, serialization)
2. Per-mechanism parsing and exception reasons
3. Losslessness and exception accounting over whole corpora
4. Generators on corpora that carry their mechanism
5. Registry behaviour and contract violations
"""

import os
import random
import struct
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mdlpeel.config import GeneratorConfig
from mdlpeel.corpus import Corpus
from mdlpeel.errors import ContractViolation, InvalidHypothesis
from mdlpeel.hypothesis import (
    DelimiterBundle,
    Endianness,
    ExtensibleBitmap,
    FixedHeader,
    LengthPrefixBundle,
    Opaque,
    Tlv,
    TlvLenRule,
    VarintKeyWireType,
    hypothesis_from_dict,
)
from mdlpeel.plugin import HypothesisGenerator, Parser, PluginRegistry
from mdlpeel.plugins import (
    DelimiterGenerator,
    ExtensibleBitmapGenerator,
    FixedHeaderGenerator,
    LengthPrefixGenerator,
    LengthPrefixParser,
    TlvGenerator,
    VarintGenerator,
    default_registry,
)
from mdlpeel.segment import Decomposition, ExceptionReason, FieldKind, pci


LE16 = LengthPrefixBundle(0, 2, Endianness.LITTLE, False)
TLV_INCLUSIVE = Tlv(0, 1, 1, TlvLenRule.FIXED_2, True)
TLV_EXCLUSIVE = Tlv(0, 1, 1, TlvLenRule.FIXED_2, False)


def parse_one(hypothesis, message: bytes):
    """Parse a single message with the default registry's parser."""
    corpus = Corpus.from_messages([message])
    parser = default_registry().parser_for(hypothesis)
    return parser.parse(corpus, hypothesis).entries[0]


def build_length_prefixed(count: int = 100, seed: int = 11) -> Corpus:
    """[u16 LE length][payload from a repeating pattern]"""
    rng = random.Random(seed)
    pattern = b"ABCD" * 16
    messages = []
    for _ in range(count):
        n = rng.randint(8, 60)
        messages.append(struct.pack("<H", n) + pattern[:n])
    return Corpus.from_messages(messages, source="length-prefixed")


def build_tlv(count: int = 100, seed: int = 5) -> Corpus:
    """[tag:1][len:2 BE, counts tag + len + value][value]"""
    rng = random.Random(seed)
    messages = []
    for _ in range(count):
        value = bytes(rng.choice(b"xyz") for _ in range(rng.randint(1, 40)))
        tag = rng.choice([0x10, 0x20, 0x30])
        messages.append(bytes([tag]) + struct.pack(">H", 3 + len(value)) + value)
    return Corpus.from_messages(messages, source="tlv")


def build_two_frames(count: int = 100, seed: int = 11) -> Corpus:
    """Two [u16 LE length][payload] frames back to back in every message."""
    rng = random.Random(seed)
    pattern = b"ABCD" * 16
    messages = []
    for _ in range(count):
        message = b""
        for _ in range(2):
            n = rng.randint(8, 60)
            message += struct.pack("<H", n) + pattern[:n]
        messages.append(message)
    return Corpus.from_messages(messages, source="two-frames")


def build_lines(count: int = 100, seed: int = 9) -> Corpus:
    """Newline-terminated lines of words, no length field."""
    rng = random.Random(seed)
    words = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot",
             "golf", "hotel", "india", "kilo", "lima", "mike"]
    messages = [
        (" ".join(rng.choice(words) for _ in range(rng.randint(1, 6))) + "\n").encode()
        for _ in range(count)
    ]
    return Corpus.from_messages(messages, source="lines")


def build_bitmap(count: int = 80, seed: int = 2) -> Corpus:
    """[1-2 byte chain, bit 7 = more][payload]; most chains are one byte."""
    rng = random.Random(seed)
    messages = []
    for i in range(count):
        if i % 3 == 0:
            chain = bytes([0x80 | rng.randrange(128), rng.randrange(128)])
        else:
            chain = bytes([rng.randrange(128)])
        messages.append(chain + b"payload")
    return Corpus.from_messages(messages, source="bitmap")


def build_protobuf(count: int = 60, seed: int = 4) -> Corpus:
    """field 1 varint, field 2 string."""
    rng = random.Random(seed)
    messages = []
    for _ in range(count):
        text = bytes(rng.choice(b"abc") for _ in range(rng.randint(1, 20)))
        messages.append(bytes([0x08, rng.randrange(1, 128), 0x12, len(text)]) + text)
    return Corpus.from_messages(messages, source="protobuf")


def build_random(count: int = 40, size: int = 64, seed: int = 1) -> Corpus:
    rng = random.Random(seed)
    return Corpus.from_messages(
        [bytes(rng.randrange(256) for _ in range(size)) for _ in range(count)],
        source="random",
    )


# --- Test 1: Hypothesis variants ---

def test_invalid_parameters_rejected():
    with pytest.raises(InvalidHypothesis):
        LengthPrefixBundle(0, 3, Endianness.LITTLE, False)
    with pytest.raises(InvalidHypothesis):
        DelimiterBundle(b"")
    with pytest.raises(InvalidHypothesis):
        FixedHeader(0)
    with pytest.raises(InvalidHypothesis):
        ExtensibleBitmap(continuation_bit_position=8)
    with pytest.raises(InvalidHypothesis):
        Tlv(0, 2, 1, TlvLenRule.BER, False)


def test_structural_equality():
    assert LE16 == LengthPrefixBundle(0, 2, Endianness.LITTLE, False)
    assert len({LE16, LengthPrefixBundle(0, 2, Endianness.LITTLE, False), Opaque()}) == 2
    assert FixedHeader(2) != LengthPrefixBundle(0, 2, Endianness.LITTLE, False)


def test_to_dict_names_every_parameter():
    rendered = TLV_INCLUSIVE.to_dict()
    assert rendered == {
        "kind": "tlv",
        "tag_offset": 0,
        "tag_bytes": 1,
        "len_offset": 1,
        "len_rule": "fixed_2",
        "length_includes_header": True,
    }
    assert hypothesis_from_dict(rendered) == TLV_INCLUSIVE
    assert hypothesis_from_dict(DelimiterBundle(b"\r\n").to_dict()) == DelimiterBundle(b"\r\n")
    assert LE16.param_count == 4
    assert Opaque().param_count == 0


def test_bitmap_to_dict_names_the_bit_position():
    rendered = ExtensibleBitmap(7).to_dict()
    assert rendered == {
        "kind": "extensible_bitmap",
        "continuation_bit_position": 7,
        "start": 0,
        "stop_value": 0,
        "max_bytes": 8,
    }
    assert hypothesis_from_dict(rendered) == ExtensibleBitmap(7)
    assert ExtensibleBitmap(3).describe().startswith("extensible_bitmap(continuation_bit_position=3")


def test_from_dict_unknown_kind():
    with pytest.raises(InvalidHypothesis):
        hypothesis_from_dict({"kind": "magic"})


# --- Test 2: Length prefix ---

def test_length_prefix_basic():
    entry = parse_one(LE16, b"\x03\x00abc")
    assert not entry.is_exception
    assert entry.pci_bytes == b""
    assert entry.field_bytes == b"\x03\x00"
    assert entry.sdu_bytes == b"abc"
    assert entry.fields()[0].field_kind is FieldKind.LENGTH
    assert entry.fields()[0].value == 3


def test_length_prefix_offset_and_big_endian():
    h = LengthPrefixBundle(1, 2, Endianness.BIG, False)
    entry = parse_one(h, b"\xaa\x00\x03abc")
    assert entry.pci_bytes == b"\xaa"
    assert entry.sdu_bytes == b"abc"


def test_length_prefix_includes_header():
    h = LengthPrefixBundle(0, 2, Endianness.LITTLE, True)
    assert parse_one(h, b"\x05\x00abc").sdu_bytes == b"abc"
    assert parse_one(h, b"\x02\x00").sdu_bytes == b""
    assert parse_one(h, b"\x01\x00").reason is ExceptionReason.LENGTH_UNDERFLOW


def test_length_prefix_empty_sdu_is_legal():
    entry = parse_one(LE16, b"\x00\x00")
    assert not entry.is_exception
    assert entry.sdu_bytes == b""
    assert len(entry.sdu_segments()) == 1


@pytest.mark.parametrize("message, reason", [
    (b"\x03", ExceptionReason.TRUNCATED_HEADER),
    (b"\x09\x00abc", ExceptionReason.LENGTH_OVERFLOW),
    (b"\x01\x00ab", ExceptionReason.TRAILING_BYTES),
    (b"\x01\x00a\x05\x00bc", ExceptionReason.LENGTH_OVERFLOW),
])
def test_length_prefix_exceptions(message, reason):
    entry = parse_one(LE16, message)
    assert entry.is_exception
    assert entry.reason is reason


def test_length_prefix_walks_every_frame():
    h = LengthPrefixBundle(1, 1, Endianness.LITTLE, False)
    entry = parse_one(h, b"\xaa\x02xy\xbb\x00\xcc\x01z")
    assert not entry.is_exception
    assert [v.tobytes() for v in entry.sdu_views()] == [b"xy", b"", b"z"]
    assert [s.value for s in entry.fields()] == [2, 0, 1]
    assert entry.pci_bytes == b"\xaa\xbb\xcc"
    assert entry.reassemble() == b"\xaa\x02xy\xbb\x00\xcc\x01z"


def test_length_prefix_two_frame_corpus():
    corpus = build_two_frames()
    parsed = LengthPrefixParser().parse(corpus, LE16)
    assert parsed.parse_success_ratio == 1.0
    for entry, message in zip(parsed.entries, corpus):
        first, second = entry.sdu_segments()
        assert first.start == 2
        assert message[first.end:first.end + 2].tobytes() == struct.pack("<H", second.length)
        assert second.end == len(message)


# --- Test 3: Delimiter ---

def test_delimiter_records():
    entry = parse_one(DelimiterBundle(b"\n"), b"ab\ncd\n")
    assert [v.tobytes() for v in entry.sdu_views()] == [b"ab", b"cd"]
    assert entry.field_bytes == b"\n\n"
    assert entry.reassemble() == b"ab\ncd\n"


def test_delimiter_only_message():
    entry = parse_one(DelimiterBundle(b"\n"), b"\n")
    assert [v.tobytes() for v in entry.sdu_views()] == [b""]


def test_delimiter_missing():
    assert parse_one(DelimiterBundle(b"\n"), b"ab").reason is ExceptionReason.MISSING_DELIMITER
    # Terminator overlaps the previous match
    entry = parse_one(DelimiterBundle(b"\x00\x00"), b"a\x00\x00\x00")
    assert entry.reason is ExceptionReason.MISSING_DELIMITER


def test_losslessness_is_positional():
    message = b"ab\ncd\n"
    entry = parse_one(DelimiterBundle(b"\n"), message)
    assert entry.is_lossless()
    assert entry.reassemble() == message
    by_role = entry.pci_bytes + entry.field_bytes + entry.sdu_bytes
    assert by_role == b"\n\nabcd"
    assert by_role != message
    assert len(by_role) == len(message)


# --- Test 4: Fixed header ---

def test_fixed_header():
    entry = parse_one(FixedHeader(2), b"abcd")
    assert entry.pci_bytes == b"ab"
    assert entry.sdu_bytes == b"cd"
    assert parse_one(FixedHeader(4), b"abcd").sdu_bytes == b""
    assert parse_one(FixedHeader(5), b"abcd").reason is ExceptionReason.TRUNCATED_HEADER


# --- Test 5: Extensible bitmap ---

def test_bitmap_chain():
    entry = parse_one(ExtensibleBitmap(7), b"\x81\x02rest")
    assert entry.fields()[0].value == 0x8102
    assert entry.sdu_bytes == b"rest"


def test_bitmap_with_start():
    entry = parse_one(ExtensibleBitmap(7, start=1), b"\xff\x01xy")
    assert entry.pci_bytes == b"\xff"
    assert entry.field_bytes == b"\x01"
    assert entry.sdu_bytes == b"xy"


@pytest.mark.parametrize("hypothesis, message, reason", [
    (ExtensibleBitmap(7), b"", ExceptionReason.TRUNCATED_HEADER),
    (ExtensibleBitmap(7), b"\x81\x82", ExceptionReason.BITMAP_TRUNCATED),
    (ExtensibleBitmap(7, max_bytes=2), b"\x81\x82\x03", ExceptionReason.BITMAP_OVERRUN),
])
def test_bitmap_exceptions(hypothesis, message, reason):
    assert parse_one(hypothesis, message).reason is reason


# --- Test 6: TLV ---

def test_tlv_header_inclusive():
    entry = parse_one(TLV_INCLUSIVE, b"\x30\x00\x05ab")
    kinds = [s.field_kind for s in entry.fields()]
    assert kinds == [FieldKind.TAG, FieldKind.LENGTH]
    assert entry.fields()[0].value == 0x30
    assert entry.sdu_bytes == b"ab"
    assert parse_one(TLV_EXCLUSIVE, b"\x30\x00\x05ab").reason is ExceptionReason.VALUE_LENGTH_MISMATCH


def test_tlv_ber_forms():
    short = Tlv(0, 1, 1, TlvLenRule.BER, False)
    assert parse_one(short, b"\x04\x03abc").sdu_bytes == b"abc"
    long_form = parse_one(short, b"\x04\x81\x03abc")
    assert long_form.field_bytes == b"\x04\x81\x03"
    assert long_form.sdu_bytes == b"abc"
    assert parse_one(short, b"\x04\x80abc").reason is ExceptionReason.INDEFINITE_LENGTH
    assert parse_one(short, b"\x04\x85\x00\x00\x00\x00\x01a").reason is ExceptionReason.LENGTH_OVERFLOW
    assert parse_one(short, b"\x04").reason is ExceptionReason.TRUNCATED_HEADER


def test_tlv_gap_and_underflow():
    gapped = parse_one(Tlv(0, 1, 2, TlvLenRule.FIXED_1, False), b"\x01\xee\x02ab")
    assert [s.field_kind for s in gapped.fields()] == [FieldKind.TAG, FieldKind.GAP, FieldKind.LENGTH]
    assert gapped.sdu_bytes == b"ab"
    under = parse_one(Tlv(0, 1, 1, TlvLenRule.FIXED_1, True), b"\x01\x01")
    assert under.reason is ExceptionReason.LENGTH_UNDERFLOW


def test_tlv_walks_every_frame():
    entry = parse_one(TLV_INCLUSIVE, b"\x30\x00\x05ab\x31\x00\x03\x32\x00\x04c")
    assert not entry.is_exception
    assert [s.value for s in entry.fields() if s.field_kind is FieldKind.TAG] == [0x30, 0x31, 0x32]
    assert [v.tobytes() for v in entry.sdu_views()] == [b"ab", b"", b"c"]
    assert parse_one(TLV_INCLUSIVE, b"\x30\x00\x05ab\x31").reason is ExceptionReason.TRAILING_BYTES
    overrun = parse_one(TLV_INCLUSIVE, b"\x30\x00\x05ab\x31\x00\x09c")
    assert overrun.reason is ExceptionReason.VALUE_LENGTH_MISMATCH


def test_tlv_frames_carry_their_own_pci():
    h = Tlv(1, 1, 2, TlvLenRule.BER, False)
    entry = parse_one(h, b"\xee\x04\x02ab\xef\x05\x81\x01c")
    assert entry.pci_bytes == b"\xee\xef"
    assert [v.tobytes() for v in entry.sdu_views()] == [b"ab", b"c"]


def test_tlv_scenario_header_inclusive_length():
    corpus = build_tlv()
    registry = default_registry()
    exclusive = registry.parser_for(TLV_EXCLUSIVE).parse(corpus, TLV_EXCLUSIVE)
    inclusive = registry.parser_for(TLV_INCLUSIVE).parse(corpus, TLV_INCLUSIVE)
    assert exclusive.exception_count == len(corpus)
    assert set(exclusive.exception_reasons()) == {"value_length_mismatch"}
    assert inclusive.exception_count == 0
    assert inclusive.parse_success_ratio == 1.0


# --- Test 7: Varint key / wire type ---

def test_varint_protobuf_message():
    message = bytes.fromhex("089601") + bytes.fromhex("120268 69")
    entry = parse_one(VarintKeyWireType(), message)
    kinds = [s.field_kind for s in entry.fields()]
    assert kinds == [FieldKind.KEY, FieldKind.VARINT, FieldKind.KEY, FieldKind.LENGTH]
    assert entry.fields()[1].value == 150
    assert entry.sdu_bytes == b"hi"


def test_varint_fixed_widths():
    message = b"\x1d" + struct.pack("<I", 7) + b"\x21" + struct.pack("<Q", 9)
    entry = parse_one(VarintKeyWireType(), message)
    fields = entry.fields()
    assert [s.field_kind for s in fields] == [FieldKind.KEY, FieldKind.FIXED32, FieldKind.KEY, FieldKind.FIXED64]
    assert fields[1].value == 7
    assert fields[3].value == 9
    assert entry.sdu_bytes == b""


@pytest.mark.parametrize("hypothesis, message, reason", [
    (VarintKeyWireType(), b"", ExceptionReason.EMPTY_MESSAGE),
    (VarintKeyWireType(), b"\x0b\x00", ExceptionReason.INVALID_WIRE_TYPE),
    (VarintKeyWireType(), b"\x02\x00", ExceptionReason.FIELD_NUMBER_OUT_OF_RANGE),
    (VarintKeyWireType(5, 100), b"\xc0\x0c\x00", ExceptionReason.FIELD_NUMBER_OUT_OF_RANGE),
    (VarintKeyWireType(), b"\x08\x96", ExceptionReason.VARINT_TRUNCATED),
    (VarintKeyWireType(), b"\x08" + b"\xff" * 10 + b"\x01", ExceptionReason.VARINT_OVERLONG),
    (VarintKeyWireType(2, 2047), b"\xc0\xb8\x02\x00", ExceptionReason.VARINT_OVERLONG),
    (VarintKeyWireType(), b"\x12\x05hi", ExceptionReason.LENGTH_OVERFLOW),
    (VarintKeyWireType(), b"\x1d\x01\x02", ExceptionReason.LENGTH_OVERFLOW),
])
def test_varint_exceptions(hypothesis, message, reason):
    assert parse_one(hypothesis, message).reason is reason


# --- Test 8: Opaque ---

def test_opaque_claims_everything():
    entry = parse_one(Opaque(), b"\x00\x01\x02")
    assert entry.pci_bytes == b"\x00\x01\x02"
    empty = parse_one(Opaque(), b"")
    assert empty.segments == ()
    assert empty.is_lossless()


# --- Test 9: Losslessness and accounting over corpora ---

SINGLE_FRAME = (FixedHeader, ExtensibleBitmap, Opaque)


@pytest.mark.parametrize("builder", [
    build_length_prefixed, build_tlv, build_lines, build_bitmap, build_protobuf, build_random,
])
def test_every_proposal_is_lossless(builder):
    corpus = builder()
    registry = default_registry()
    config = GeneratorConfig()
    hypotheses = [Opaque()]
    for generator in registry.generators:
        hypotheses.extend(generator.generate(corpus, config))

    for h in hypotheses:
        parsed = registry.parser_for(h).parse(corpus, h)
        assert parsed.success_count + parsed.exception_count == parsed.message_count == len(corpus)
        for entry, message in zip(parsed.entries, corpus):
            assert entry.message is message
            if entry.is_exception:
                continue
            assert entry.reassemble() == message.tobytes()
            assert len(entry.pci_bytes) + len(entry.field_bytes) + len(entry.sdu_bytes) == len(message)
            if isinstance(h, SINGLE_FRAME):
                assert entry.pci_bytes + entry.field_bytes + entry.sdu_bytes == message.tobytes()


# --- Test 10: Generators ---

def test_length_prefix_generator():
    proposals = LengthPrefixGenerator().generate(build_length_prefixed(), GeneratorConfig())
    assert LE16 in proposals
    assert LengthPrefixBundle(0, 2, Endianness.BIG, False) not in proposals


def test_delimiter_generator():
    proposals = DelimiterGenerator().generate(build_lines(), GeneratorConfig())
    assert DelimiterBundle(b"\n") in proposals
    assert DelimiterBundle(b"\x00") not in proposals


def test_fixed_header_generator_uses_prefix():
    corpus = Corpus.from_messages([b"MAGIC" + bytes([i]) * 4 for i in range(20)])
    proposals = FixedHeaderGenerator().generate(corpus, GeneratorConfig())
    assert FixedHeader(5) in proposals
    assert all(h.length <= 9 for h in proposals)


def test_fixed_header_generator_uses_modal_length():
    # Mostly 6-byte control messages, a few carrying data
    messages = [bytes([i, 0, 0, 1, 2, 3]) for i in range(30)]
    messages += [bytes([i, 0, 0, 1, 2, 3]) + b"data" * i for i in range(1, 5)]
    proposals = FixedHeaderGenerator().generate(Corpus.from_messages(messages), GeneratorConfig())
    assert FixedHeader(6) in proposals
    assert FixedHeader(5) in proposals


def test_bitmap_generator():
    proposals = ExtensibleBitmapGenerator().generate(build_bitmap(), GeneratorConfig())
    assert ExtensibleBitmap(7, start=0, stop_value=0, max_bytes=8) in proposals


def test_tlv_generator():
    proposals = TlvGenerator().generate(build_tlv(), GeneratorConfig())
    assert TLV_INCLUSIVE in proposals
    assert TLV_EXCLUSIVE not in proposals


def test_length_prefix_generator_on_two_frames():
    proposals = LengthPrefixGenerator().generate(build_two_frames(), GeneratorConfig())
    assert LE16 in proposals
    assert LengthPrefixBundle(0, 2, Endianness.BIG, False) not in proposals


def test_tlv_generator_on_repeated_tlvs():
    messages = [
        b"\x30\x00\x05ab" + bytes([0x31, 0, 3 + i % 4]) + b"z" * (i % 4)
        for i in range(40)
    ]
    proposals = TlvGenerator().generate(Corpus.from_messages(messages), GeneratorConfig())
    assert TLV_INCLUSIVE in proposals
    assert TLV_EXCLUSIVE not in proposals


def test_varint_generator():
    proposals = VarintGenerator().generate(build_protobuf(), GeneratorConfig())
    assert VarintKeyWireType() in proposals
    assert VarintKeyWireType(2, 2047) in proposals
    assert VarintGenerator().generate(build_lines(), GeneratorConfig()) == []


def test_generators_are_deterministic():
    corpus = build_tlv()
    for generator in default_registry().generators:
        assert generator.generate(corpus, GeneratorConfig()) == generator.generate(corpus, GeneratorConfig())


# --- Test 11: Registry and contract ---

class LossyParser(Parser):
    """Claims fixed headers but forgets the payload."""

    @property
    def name(self) -> str:
        return "lossy"

    def applicable(self, hypothesis) -> bool:
        return isinstance(hypothesis, FixedHeader)

    def parse_message(self, index, message, hypothesis):
        return Decomposition(index, message, (pci(0, hypothesis.length),))


class CrashingParser(LossyParser):

    @property
    def name(self) -> str:
        return "crashing"

    def parse_message(self, index, message, hypothesis):
        raise IndexError("off the end")


class StaticGenerator(HypothesisGenerator):

    def __init__(self, name, hypotheses):
        self._name = name
        self._hypotheses = hypotheses

    @property
    def name(self) -> str:
        return self._name

    def generate(self, corpus, config):
        return list(self._hypotheses)


def test_default_registry_order():
    registry = default_registry()
    assert [g.name for g in registry.generators] == [
        "length_prefix", "delimiter", "fixed_header", "extensible_bitmap", "tlv",
        "varint_key_wire_type",
    ]
    assert registry.parsers[-1].name == "opaque"
    assert registry.get_generator("tlv").name == "tlv"


def test_registries_are_independent():
    a = default_registry()
    b = default_registry()
    a.register_generator(StaticGenerator("extra", [FixedHeader(1)]))
    assert len(a.generators) == len(b.generators) + 1


def test_registry_rejects_duplicates_and_unknown_names():
    registry = PluginRegistry()
    registry.register_parser(LengthPrefixParser())
    with pytest.raises(KeyError):
        registry.register_parser(LengthPrefixParser())
    with pytest.raises(KeyError):
        registry.get_generator("nope")


def test_no_parser_is_a_contract_violation():
    registry = PluginRegistry()
    assert registry.find_parser(FixedHeader(1)) is None
    with pytest.raises(ContractViolation):
        registry.parser_for(FixedHeader(1))


def test_inapplicable_hypothesis_is_a_contract_violation():
    with pytest.raises(ContractViolation):
        LengthPrefixParser().parse(Corpus.from_messages([b"ab"]), FixedHeader(1))


def test_lossy_decomposition_is_a_contract_violation():
    corpus = Corpus.from_messages([b"abcd"])
    with pytest.raises(ContractViolation):
        LossyParser().parse(corpus, FixedHeader(1))


def test_crashing_parser_is_a_contract_violation():
    corpus = Corpus.from_messages([b"abcd"])
    with pytest.raises(ContractViolation) as info:
        CrashingParser().parse(corpus, FixedHeader(1))
    assert isinstance(info.value.__cause__, IndexError)
