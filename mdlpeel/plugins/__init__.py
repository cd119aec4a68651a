"""
mdlpeel Built-in Mechanisms

One module per framing mechanism, each holding its generator and parser.
default_registry() wires them up in the order that also breaks score ties.
"""

from mdlpeel.plugin import PluginRegistry
from mdlpeel.plugins.bitmap import ExtensibleBitmapGenerator, ExtensibleBitmapParser
from mdlpeel.plugins.delimiter import DelimiterGenerator, DelimiterParser
from mdlpeel.plugins.fixed_header import FixedHeaderGenerator, FixedHeaderParser
from mdlpeel.plugins.length_prefix import LengthPrefixGenerator, LengthPrefixParser
from mdlpeel.plugins.opaque import OpaqueParser
from mdlpeel.plugins.tlv import TlvGenerator, TlvParser
from mdlpeel.plugins.varint import VarintGenerator, VarintParser


def default_registry() -> PluginRegistry:
    """A fresh registry with every built-in mechanism."""
    registry = PluginRegistry()
    for generator in (
        LengthPrefixGenerator(),
        DelimiterGenerator(),
        FixedHeaderGenerator(),
        ExtensibleBitmapGenerator(),
        TlvGenerator(),
        VarintGenerator(),
    ):
        registry.register_generator(generator)
    for parser in (
        LengthPrefixParser(),
        DelimiterParser(),
        FixedHeaderParser(),
        ExtensibleBitmapParser(),
        TlvParser(),
        VarintParser(),
        OpaqueParser(),
    ):
        registry.register_parser(parser)
    return registry


__all__ = [
    "default_registry",
    "ExtensibleBitmapGenerator",
    "ExtensibleBitmapParser",
    "DelimiterGenerator",
    "DelimiterParser",
    "FixedHeaderGenerator",
    "FixedHeaderParser",
    "LengthPrefixGenerator",
    "LengthPrefixParser",
    "OpaqueParser",
    "TlvGenerator",
    "TlvParser",
    "VarintGenerator",
    "VarintParser",
]
