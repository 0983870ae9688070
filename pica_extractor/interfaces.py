"""
Abstract interfaces and base classes for the PICA+ extraction system.

This module defines the contracts that codecs, XML event consumers and
record stores implement, so the parser and writer drivers can be wired
with any of them.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, List, Optional, TextIO

from .models import DecodeResult, Field, Record


class RecordCodecInterface(ABC):
    """Abstract interface for a PICA+ serialization format."""

    name: str = ""

    @abstractmethod
    def decode(self, lines: Iterable[str]) -> Iterator[DecodeResult]:
        """
        Decode records from a stream of text chunks.

        Args:
            lines: Iterable of text chunks (lines or blocks), consumed lazily

        Returns:
            Iterator of DecodeResult, one per raw record found in the input
        """
        pass

    @abstractmethod
    def encode_record(self, record: Record) -> str:
        """
        Serialize a record.

        Raises:
            InvalidCharacterError: If a value cannot be represented in this format
        """
        pass

    @abstractmethod
    def encode_field(self, pica_field: Field) -> str:
        """Serialize a single field outside of any record."""
        pass

    def start_document(self, output: TextIO) -> None:
        """Write whatever precedes the first record (nothing by default)."""

    def end_document(self, output: TextIO) -> None:
        """Write whatever follows the last record (nothing by default)."""


class XMLEventTargetInterface(ABC):
    """
    Abstract consumer of XML parse events.

    The method names follow the lxml parser target protocol, so an
    implementation can be handed to ``lxml.etree.XMLParser(target=...)``
    or driven by another target that forwards events to it.
    """

    @abstractmethod
    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        """Handle an element start event ('{namespace}local' tag names)."""
        pass

    @abstractmethod
    def end(self, tag: str) -> None:
        """Handle an element end event."""
        pass

    @abstractmethod
    def data(self, text: str) -> None:
        """Handle character data."""
        pass

    @abstractmethod
    def close(self) -> List[DecodeResult]:
        """Finish the document and return the results not yet collected."""
        pass


class RecordStoreInterface(ABC):
    """Abstract interface for a remote store with CRUD access to records."""

    @abstractmethod
    def get(self, ppn: str):
        """Retrieve a record by its identifier."""
        pass

    @abstractmethod
    def create(self, record: Record):
        """Insert a new record."""
        pass

    @abstractmethod
    def update(self, ppn, record: Optional[Record] = None, version: Optional[str] = None):
        """Update a record, optionally guarded by a version from a previous request."""
        pass

    @abstractmethod
    def delete(self, ppn: str):
        """Delete a record by its identifier."""
        pass
