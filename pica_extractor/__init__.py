"""
PICA+ Extraction System

A streaming codec and processing pipeline for PICA+ bibliographic records in
normalized, plain and XML serializations, with SRU retrieval and webcat store access.
"""

__version__ = "1.0.0"

# Import core models and interfaces for easy access
from .models import (
    Subfield,
    Field,
    Record,
    DecodeResult,
    WriterSummary,
    ParserSummary
)

from .interfaces import (
    RecordCodecInterface,
    XMLEventTargetInterface,
    RecordStoreInterface
)

from .exceptions import (
    PicaExtractionError,
    MalformedFieldError,
    MalformedRecordError,
    InvalidCharacterError,
    SourceIOError,
    XMLParsingError,
    ConfigurationError,
    StoreError
)

from .processing import PicaParser, PicaWriter, FieldSelector

__all__ = [
    # Core models
    "Subfield",
    "Field",
    "Record",
    "DecodeResult",
    "WriterSummary",
    "ParserSummary",

    # Interfaces
    "RecordCodecInterface",
    "XMLEventTargetInterface",
    "RecordStoreInterface",

    # Exceptions
    "PicaExtractionError",
    "MalformedFieldError",
    "MalformedRecordError",
    "InvalidCharacterError",
    "SourceIOError",
    "XMLParsingError",
    "ConfigurationError",
    "StoreError",

    # Processing
    "PicaParser",
    "PicaWriter",
    "FieldSelector"
]
