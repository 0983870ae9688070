"""
PICA XML codec.

Decoding is event driven: ``PicaXMLDecoder`` implements the lxml parser
target protocol (start/end/data/close) and rebuilds records with a small
state machine, so it can be fed directly by ``lxml.etree.XMLParser`` or
indirectly by another target that forwards events to it (see
``sru_parser.SRUSearchParser``). Completed records are queued and drained by
the caller, which lets the parser driver stop pulling input as soon as its
limit is reached.

Encoding builds lxml elements and serializes them.
"""

import logging

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, TextIO, Union

from lxml import etree

from ..exceptions import InvalidCharacterError, MalformedFieldError, PicaExtractionError, XMLParsingError
from ..interfaces import RecordCodecInterface, XMLEventTargetInterface
from ..models import DecodeResult, Field, Record, Subfield


PICA_XML_NAMESPACE = "info:srw/schema/5/picaXML-v1.0"

COLLECTION_ELEMENT = "collection"
RECORD_ELEMENT = "record"
FIELD_ELEMENT = "datafield"
SUBFIELD_ELEMENT = "subfield"


def local_name(tag: str) -> str:
    """Strip the '{namespace}' prefix lxml puts in front of element names."""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


class DecoderState(Enum):
    """Position of the decoder within a PICA XML document."""
    OUTSIDE_RECORD = "outside_record"
    IN_RECORD = "in_record"
    IN_FIELD = "in_field"
    IN_SUBFIELD = "in_subfield"


class PicaXMLDecoder(XMLEventTargetInterface):
    """
    Rebuild PICA+ records from XML parse events.

    Elements are matched by local name, so namespaced and unqualified
    documents decode alike. A 'datafield' with an invalid tag or occurrence,
    or a 'subfield' without a valid code, is reported as MalformedFieldError
    in the record's DecodeResult and left out of the record.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.state = DecoderState.OUTSIDE_RECORD
        self.position = 0
        self._results: List[DecodeResult] = []
        self._record: Optional[Record] = None
        self._errors: List[PicaExtractionError] = []
        self._field: Optional[Field] = None
        self._field_valid = False
        self._subfield_code: Optional[str] = None
        self._text: List[str] = []

    def start(self, tag: str, attrib: Dict[str, str]) -> None:
        name = local_name(tag)

        if self.state == DecoderState.OUTSIDE_RECORD:
            if name == RECORD_ELEMENT:
                self.state = DecoderState.IN_RECORD
                self._record = Record()
                self._errors = []

        elif self.state == DecoderState.IN_RECORD:
            if name == FIELD_ELEMENT:
                self.state = DecoderState.IN_FIELD
                self._start_field(attrib)

        elif self.state == DecoderState.IN_FIELD:
            if name == SUBFIELD_ELEMENT:
                self.state = DecoderState.IN_SUBFIELD
                self._subfield_code = attrib.get("code")
                self._text = []

    def _start_field(self, attrib: Dict[str, str]) -> None:
        tag = attrib.get("tag")
        occurrence = attrib.get("occurrence") or None
        try:
            self._field = Field(tag, occurrence)
            self._field_valid = True
        except MalformedFieldError as e:
            self._field = None
            self._field_valid = False
            self._errors.append(e)

    def data(self, text: str) -> None:
        if self.state == DecoderState.IN_SUBFIELD:
            self._text.append(text)

    def end(self, tag: str) -> None:
        name = local_name(tag)

        if self.state == DecoderState.IN_SUBFIELD and name == SUBFIELD_ELEMENT:
            self.state = DecoderState.IN_FIELD
            if self._field_valid:
                try:
                    self._field.subfields.append(Subfield(self._subfield_code, "".join(self._text)))
                except MalformedFieldError as e:
                    e.field_data = self._field.full_tag
                    self._errors.append(e)
                    self._field_valid = False

        elif self.state == DecoderState.IN_FIELD and name == FIELD_ELEMENT:
            self.state = DecoderState.IN_RECORD
            if self._field_valid:
                self._record.fields.append(self._field)
            self._field = None

        elif self.state == DecoderState.IN_RECORD and name == RECORD_ELEMENT:
            self.state = DecoderState.OUTSIDE_RECORD
            self.position += 1
            record_id = self._record.ppn or f"#{self.position}"
            for error in self._errors:
                if error.source_record_id is None:
                    error.source_record_id = record_id
            self._results.append(DecodeResult(record=self._record, errors=self._errors, position=self.position))
            self.logger.debug(f"Decoded XML record {record_id} with {len(self._record)} fields")
            self._record = None
            self._errors = []

    def pop_results(self) -> List[DecodeResult]:
        """Return and forget the records completed so far."""
        results, self._results = self._results, []
        return results

    def close(self) -> List[DecodeResult]:
        if self.state != DecoderState.OUTSIDE_RECORD:
            self.logger.warning(f"XML input ended inside a record (state {self.state.value})")
        return self.pop_results()


def new_xml_parser(target: XMLEventTargetInterface) -> etree.XMLParser:
    """Create an lxml feed parser delivering events to the given target."""
    return etree.XMLParser(target=target, resolve_entities=False, no_network=True, huge_tree=True)


def iter_xml_records(chunks: Iterable[Union[bytes, str]],
                     decoder: Optional[PicaXMLDecoder] = None) -> Iterator[DecodeResult]:
    """
    Decode PICA XML records from document chunks.

    Raises:
        XMLParsingError: If the document is empty or not well-formed
    """
    decoder = decoder or PicaXMLDecoder()
    parser = new_xml_parser(decoder)
    fed = False
    try:
        for chunk in chunks:
            if not chunk:
                continue
            parser.feed(chunk)
            fed = True
            yield from decoder.pop_results()
        if not fed:
            raise XMLParsingError("XML input is empty")
        remaining = parser.close()
    except etree.XMLSyntaxError as e:
        raise XMLParsingError(f"XML syntax error: {e}")
    # the target's close() hands back whatever completed at end of input
    yield from remaining


def field_to_element(pica_field: Field, parent=None) -> etree._Element:
    """Build a 'datafield' element (as a child of parent, if given)."""
    name = f"{{{PICA_XML_NAMESPACE}}}{FIELD_ELEMENT}"
    if parent is None:
        element = etree.Element(name, nsmap={None: PICA_XML_NAMESPACE})
    else:
        element = etree.SubElement(parent, name)
    element.set("tag", pica_field.tag)
    if pica_field.occurrence is not None:
        element.set("occurrence", f"{pica_field.occurrence:02d}")
    try:
        for sf in pica_field.subfields:
            subfield = etree.SubElement(element, f"{{{PICA_XML_NAMESPACE}}}{SUBFIELD_ELEMENT}")
            subfield.set("code", sf.code)
            subfield.text = sf.value
    except ValueError as e:
        raise InvalidCharacterError(f"Field {pica_field.full_tag} cannot be written as XML: {e}")
    return element


def record_to_element(record: Record) -> etree._Element:
    element = etree.Element(f"{{{PICA_XML_NAMESPACE}}}{RECORD_ELEMENT}", nsmap={None: PICA_XML_NAMESPACE})
    for pica_field in record.fields:
        if pica_field.subfields:
            field_to_element(pica_field, element)
    return element


def record_to_xml(record: Record, pretty: bool = False) -> str:
    """Serialize one record as a standalone PICA XML element."""
    return etree.tostring(record_to_element(record), encoding="unicode", pretty_print=pretty)


class XMLCodec(RecordCodecInterface):
    """PICA XML serialization, framed by a 'collection' element when writing streams."""

    name = "xml"
    binary = True

    def __init__(self, pretty: bool = False):
        self.pretty = pretty
        self.record_separator = "" if pretty else "\n"

    def decode(self, chunks: Iterable[Union[bytes, str]]) -> Iterator[DecodeResult]:
        return iter_xml_records(chunks)

    def encode_record(self, record: Record) -> str:
        return record_to_xml(record, self.pretty)

    def encode_field(self, pica_field: Field) -> str:
        return etree.tostring(field_to_element(pica_field), encoding="unicode", pretty_print=self.pretty)

    def start_document(self, output: TextIO) -> None:
        output.write('<?xml version="1.0" encoding="UTF-8"?>\n')
        output.write(f'<{COLLECTION_ELEMENT} xmlns="{PICA_XML_NAMESPACE}">\n')

    def end_document(self, output: TextIO) -> None:
        output.write(f"</{COLLECTION_ELEMENT}>\n")
