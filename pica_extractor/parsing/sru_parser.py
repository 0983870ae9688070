"""
Streaming parser for SRU searchRetrieve responses carrying PICA XML records.

The SRU envelope wraps each PICA record in an ``srw:recordData`` element and
reports the size of the result set (``srw:numberOfRecords``) and an optional
result set identifier (``srw:resultSetId``). ``SRUSearchParser`` receives
the lxml parse events of the whole envelope, hands everything inside
``recordData`` to a ``PicaXMLDecoder`` and collects the result metadata from
the surrounding elements.
"""

import logging

from typing import BinaryIO, Dict, Iterator, List, Optional, Union

from lxml import etree

from ..config.processing_defaults import ProcessingDefaults
from ..exceptions import XMLParsingError
from ..interfaces import XMLEventTargetInterface
from ..models import DecodeResult
from .xml_codec import FIELD_ELEMENT, PicaXMLDecoder, new_xml_parser


SRU_NAMESPACE = "http://www.loc.gov/zing/srw/"

RECORD_DATA_ELEMENT = f"{{{SRU_NAMESPACE}}}recordData"
NUMBER_OF_RECORDS_ELEMENT = f"{{{SRU_NAMESPACE}}}numberOfRecords"
RESULT_SET_ID_ELEMENT = f"{{{SRU_NAMESPACE}}}resultSetId"


class SRUSearchParser(XMLEventTargetInterface):
    """
    Extract PICA+ records and result metadata from an SRU response.

    Inside a record every event is forwarded to the inner decoder, with one
    exception: some servers (sru.gbv.de) emit 'datafield' elements with an
    empty tag attribute. Such a field, its subfields and its end tag are
    dropped so the rest of the record still decodes.

    Attributes:
        decoder: The PicaXMLDecoder receiving the embedded record events
        current_number: Records closed so far in the current document
        number_of_records: Declared size of the result set (string), if seen
        result_set_id: Result set identifier, if seen
    """

    def __init__(self, decoder: Optional[PicaXMLDecoder] = None):
        self.logger = logging.getLogger(__name__)
        self.decoder = decoder or PicaXMLDecoder()
        self.current_number = 0
        self.number_of_records: Optional[str] = None
        self.result_set_id: Optional[str] = None
        self.skipped_fields = 0
        self.in_record = False
        self.skip_field = False
        self._char_data: List[str] = []

    def reset(self) -> None:
        """Prepare for a new response document."""
        self.current_number = 0
        self.number_of_records = None
        self.result_set_id = None
        self.in_record = False
        self.skip_field = False
        self._char_data = []

    # lxml target protocol

    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        if self.in_record:
            if self.skip_field:
                return
            if attrib.get("tag") == "":
                self.skip_field = True
                self.skipped_fields += 1
                self.logger.debug(f"Skipping field with empty tag in SRU record {self.current_number + 1}")
                return
            self.decoder.start(tag, attrib)
        else:
            self._char_data = []
            if tag == RECORD_DATA_ELEMENT:
                self.in_record = True

    def end(self, tag: str) -> None:
        if self.in_record:
            if tag == RECORD_DATA_ELEMENT:
                self.current_number += 1
                self.in_record = False
                self.skip_field = False
            elif self.skip_field:
                if tag.rsplit("}", 1)[-1] == FIELD_ELEMENT:
                    self.skip_field = False
            else:
                self.decoder.end(tag)
        else:
            if tag == NUMBER_OF_RECORDS_ELEMENT:
                self.number_of_records = "".join(self._char_data)
            elif tag == RESULT_SET_ID_ELEMENT:
                self.result_set_id = "".join(self._char_data)

    def data(self, text: str) -> None:
        if self.in_record:
            if not self.skip_field:
                self.decoder.data(text)
        else:
            self._char_data.append(text)

    def close(self) -> List[DecodeResult]:
        return self.decoder.close()

    # document entry points

    def parse(self, document: Union[bytes, str]) -> List[DecodeResult]:
        """
        Parse a complete SRU response document.

        Returns:
            The records decoded from this document

        Raises:
            XMLParsingError: If the envelope is not well-formed
        """
        if isinstance(document, str):
            document = document.encode("utf-8")
        return list(self.iter_parse([document]))

    def parse_stream(self, stream: BinaryIO,
                     chunk_size: int = ProcessingDefaults.CHUNK_SIZE) -> Iterator[DecodeResult]:
        """Parse an SRU response from a binary stream, yielding records as they complete."""
        return self.iter_parse(iter(lambda: stream.read(chunk_size), b""))

    def iter_parse(self, chunks) -> Iterator[DecodeResult]:
        self.reset()
        parser = new_xml_parser(self)
        try:
            for chunk in chunks:
                parser.feed(chunk)
                yield from self.decoder.pop_results()
            remaining = parser.close()
        except etree.XMLSyntaxError as e:
            self.logger.error(f"SRU response is not well-formed: {e}")
            raise XMLParsingError(f"SRU response is not well-formed: {e}")
        yield from remaining
        self.logger.debug(
            f"SRU response parsed: numberOfRecords={self.number_of_records}, "
            f"resultSetId={self.result_set_id}, records={self.current_number}"
        )
