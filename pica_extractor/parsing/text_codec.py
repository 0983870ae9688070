"""
Text codecs for PICA+ records.

Two line formats are supported:

- **normalized** PICA+: fields are ``TAG[/NN] `` followed by subfields, each
  introduced by the subfield separator (``\\x1F``) and its one-character code;
  every field ends with the field terminator (``\\x1E``) and every record with
  the record terminator (``\\x1D``). Writers put a newline after each record.
- **plain** PICA+: one field per line, subfields introduced by ``$`` (a
  literal ``$`` in a value is written ``$$``), records separated by an empty
  line.

Decoding follows the same recovery policy for both formats: a field that
cannot be decoded is reported and dropped while the rest of its record is
kept; a record whose first field cannot be decoded, or that is cut off at
the end of the input, is reported as a whole and decoding continues with
the next record.
"""

import logging

from typing import Iterable, Iterator, List, Optional

from ..exceptions import (
    InvalidCharacterError,
    MalformedFieldError,
    MalformedRecordError,
    PicaExtractionError,
)
from ..interfaces import RecordCodecInterface
from ..models import DecodeResult, Field, Record, Subfield, parse_full_tag
from ..utils import SourceUtils


SUBFIELD_SEPARATOR = "\x1f"
FIELD_TERMINATOR = "\x1e"
RECORD_TERMINATOR = "\x1d"

# Characters that can never appear inside a code or value
RESERVED_CHARACTERS = frozenset((SUBFIELD_SEPARATOR, FIELD_TERMINATOR, RECORD_TERMINATOR, "\n", "\r"))

PLAIN_SUBFIELD_INDICATOR = "$"

# str.strip() would also remove the control-character markers
LINE_WHITESPACE = " \t\r\n"


class _UnterminatedField(str):
    """Raw field text found after the last field terminator of a record."""


def check_value(value: str, full_tag: str) -> None:
    """Raise InvalidCharacterError if the value holds a structural marker."""
    for char in value:
        if char in RESERVED_CHARACTERS:
            raise InvalidCharacterError(
                f"Field {full_tag} contains reserved character {char!r}", value=value
            )


def _finish_result(record: Optional[Record], errors: List[PicaExtractionError], position: int) -> DecodeResult:
    """Attach a record identifier to every error and wrap up the result."""
    record_id = (record.ppn if record is not None else None) or f"#{position}"
    for error in errors:
        if error.source_record_id is None:
            error.source_record_id = record_id
    return DecodeResult(record=record, errors=errors, position=position)


def _undecodable_result(raw: str, position: int) -> DecodeResult:
    printable = raw.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")
    error = MalformedRecordError("Record contains bytes that are not valid in the input encoding",
                                 record_data=printable)
    return _finish_result(None, [error], position)


def _decode_fields(raw_fields: List[str], decode_field, raw_record: str, position: int) -> DecodeResult:
    """Shared per-record loop: first field must decode, later failures are local."""
    record = Record()
    errors: List[PicaExtractionError] = []
    for index, raw_field in enumerate(raw_fields):
        try:
            record.fields.append(decode_field(raw_field))
        except MalformedFieldError as e:
            if index == 0:
                error = MalformedRecordError(f"Record is not parseable from the start: {e}",
                                             record_data=raw_record)
                return _finish_result(None, [error], position)
            errors.append(e)
    return _finish_result(record, errors, position)


class NormalizedCodec(RecordCodecInterface):
    """Codec for normalized PICA+ with control-character delimiters."""

    name = "normalized"
    binary = False
    record_separator = "\n"

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def decode(self, chunks: Iterable[str]) -> Iterator[DecodeResult]:
        """
        Decode records lazily from text chunks.

        Input is only pulled as far as needed to complete the next record, so
        a consumer that stops iterating leaves the rest of the source unread.
        """
        pending: List[str] = []
        position = 0
        for chunk in chunks:
            pending.append(chunk)
            if RECORD_TERMINATOR not in chunk:
                continue
            buffer = "".join(pending)
            start = 0
            end = buffer.find(RECORD_TERMINATOR)
            while end >= 0:
                position += 1
                # a bare terminator is an empty record; only line breaks between records are skipped
                yield self.decode_record(buffer[start:end].lstrip(LINE_WHITESPACE), position)
                start = end + 1
                end = buffer.find(RECORD_TERMINATOR, start)
            pending = [buffer[start:]]

        buffer = "".join(pending)
        if buffer.strip(LINE_WHITESPACE):
            position += 1
            self.logger.debug(f"Input ended inside record #{position}")
            error = MalformedRecordError("Record is truncated (missing record terminator)",
                                         record_data=buffer.strip(LINE_WHITESPACE))
            yield _finish_result(None, [error], position)

    def decode_record(self, raw: str, position: int = 1) -> DecodeResult:
        """Decode one record without its record terminator."""
        if SourceUtils.has_undecodable(raw):
            return _undecodable_result(raw, position)
        raw_fields = raw.split(FIELD_TERMINATOR)
        trailing = raw_fields.pop()
        if trailing.strip(LINE_WHITESPACE):
            raw_fields.append(_UnterminatedField(trailing))
        return _decode_fields(raw_fields, self.decode_field, raw, position)

    def decode_field(self, raw: str) -> Field:
        """
        Decode 'TAG[/NN] ' followed by subfield segments.

        Raises:
            MalformedFieldError: On a bad tag token, a field without subfields
                or an empty subfield segment
        """
        if isinstance(raw, _UnterminatedField):
            raise MalformedFieldError("Field is missing its terminator", field_data=str(raw))
        separator = raw.find(SUBFIELD_SEPARATOR)
        if separator < 0:
            raise MalformedFieldError("Field has no subfields", field_data=raw)
        token = raw[:separator]
        if token.endswith(" "):
            token = token[:-1]
        tag, occurrence = parse_full_tag(token)
        subfields = []
        for segment in raw[separator + 1:].split(SUBFIELD_SEPARATOR):
            if not segment:
                raise MalformedFieldError(f"Empty subfield in field {token}", field_data=raw)
            subfields.append(Subfield(segment[0], segment[1:]))
        return Field(tag, occurrence, subfields)

    def encode_field(self, pica_field: Field) -> str:
        if not pica_field.subfields:
            return ""
        full_tag = pica_field.full_tag
        parts = [full_tag, " "]
        for sf in pica_field.subfields:
            check_value(sf.code + sf.value, full_tag)
            parts.append(SUBFIELD_SEPARATOR + sf.code + sf.value)
        parts.append(FIELD_TERMINATOR)
        return "".join(parts)

    def encode_record(self, record: Record) -> str:
        return "".join(self.encode_field(f) for f in record.fields) + RECORD_TERMINATOR


class PlainCodec(RecordCodecInterface):
    """Codec for human-readable plain PICA+ ('021A $aTitle$dSubtitle')."""

    name = "plain"
    binary = False
    record_separator = "\n"

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def decode(self, chunks: Iterable[str]) -> Iterator[DecodeResult]:
        position = 0
        lines: List[str] = []
        for line in _iter_lines(chunks):
            if line.strip(LINE_WHITESPACE):
                if not line.startswith("#"):
                    lines.append(line)
                continue
            if lines:
                position += 1
                yield self.decode_record(lines, position)
                lines = []
        if lines:
            position += 1
            yield self.decode_record(lines, position)

    def decode_record(self, lines: List[str], position: int = 1) -> DecodeResult:
        raw = "\n".join(lines)
        if SourceUtils.has_undecodable(raw):
            return _undecodable_result(raw, position)
        return _decode_fields(lines, self.decode_field, raw, position)

    def decode_field(self, line: str) -> Field:
        """
        Decode one 'TAG[/NN] $aValue...' line.

        Raises:
            MalformedFieldError: On a bad tag token, a line without subfields
                or a '$' that is not followed by a code
        """
        line = line.rstrip("\r\n")
        start = line.find(PLAIN_SUBFIELD_INDICATOR)
        if start < 0:
            raise MalformedFieldError("Field has no subfields", field_data=line)
        token = line[:start].rstrip(" ")
        tag, occurrence = parse_full_tag(token)

        subfields = []
        code = None
        value: List[str] = []
        i = start
        while i < len(line):
            char = line[i]
            if char == PLAIN_SUBFIELD_INDICATOR:
                following = line[i + 1:i + 2]
                if following == PLAIN_SUBFIELD_INDICATOR:
                    value.append(PLAIN_SUBFIELD_INDICATOR)
                    i += 2
                    continue
                if not following:
                    raise MalformedFieldError(f"Empty subfield in field {token}", field_data=line)
                if code is not None:
                    subfields.append(Subfield(code, "".join(value)))
                code, value = following, []
                i += 2
                continue
            value.append(char)
            i += 1
        subfields.append(Subfield(code, "".join(value)))
        return Field(tag, occurrence, subfields)

    def encode_field(self, pica_field: Field) -> str:
        if not pica_field.subfields:
            return ""
        full_tag = pica_field.full_tag
        parts = [full_tag, " "]
        for sf in pica_field.subfields:
            check_value(sf.code + sf.value, full_tag)
            escaped = sf.value.replace(PLAIN_SUBFIELD_INDICATOR, PLAIN_SUBFIELD_INDICATOR * 2)
            parts.append(PLAIN_SUBFIELD_INDICATOR + sf.code + escaped)
        parts.append("\n")
        return "".join(parts)

    def encode_record(self, record: Record) -> str:
        return "".join(self.encode_field(f) for f in record.fields)


def _iter_lines(chunks: Iterable[str]) -> Iterator[str]:
    """Re-split arbitrary text chunks into lines without their line ends."""
    buffer = ""
    for chunk in chunks:
        buffer += chunk
        *complete, buffer = buffer.split("\n")
        for line in complete:
            yield line.rstrip("\r")
    if buffer:
        yield buffer.rstrip("\r")
