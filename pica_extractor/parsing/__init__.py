"""
Parsing module for the PICA+ extraction system.

Provides the text and XML codecs, the SRU response parser and the registry
used by the parser and writer drivers to select a serialization format.
"""

from ..exceptions import ConfigurationError
from ..interfaces import RecordCodecInterface
from .text_codec import NormalizedCodec, PlainCodec
from .xml_codec import PicaXMLDecoder, XMLCodec, iter_xml_records, record_to_xml
from .sru_parser import SRUSearchParser

FORMATS = {
    "normalized": NormalizedCodec,
    "plain": PlainCodec,
    "xml": XMLCodec,
}


def get_codec(name: str, pretty: bool = False) -> RecordCodecInterface:
    """
    Create the codec registered under the given format name.

    Raises:
        ConfigurationError: If the format is unknown
    """
    codec_class = FORMATS.get((name or "").lower())
    if codec_class is None:
        raise ConfigurationError(f"Unknown format '{name}', expected one of: {', '.join(sorted(FORMATS))}")
    if codec_class is XMLCodec:
        return XMLCodec(pretty=pretty)
    return codec_class()


__all__ = [
    'FORMATS',
    'get_codec',
    'NormalizedCodec',
    'PlainCodec',
    'XMLCodec',
    'PicaXMLDecoder',
    'SRUSearchParser',
    'iter_xml_records',
    'record_to_xml',
]
