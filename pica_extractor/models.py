"""
Core data models for the PICA+ extraction system.

This module defines the record model (Record, Field, Subfield) shared by all
codecs, together with the small result structures passed between the
decoders, the parser driver and the writer.
"""

import re

from dataclasses import dataclass, field
from collections import Counter
from typing import List, Optional, Tuple, Iterator, Union

from .exceptions import MalformedFieldError, PicaExtractionError


TAG_PATTERN = re.compile(r'^[0-9]{3}[A-Z@]$')
FULL_TAG_PATTERN = re.compile(r'^([0-9]{3}[A-Z@])(?:/([0-9]{2}))?$')
SUBFIELD_CODE_PATTERN = re.compile(r'^[0-9A-Za-z]$')

# The record identifier lives in subfield 0 of this control field
PPN_TAG = "003@"
PPN_CODE = "0"


def parse_full_tag(text: str) -> Tuple[str, Optional[int]]:
    """
    Split a 'TAG' or 'TAG/NN' token into tag and occurrence.

    Raises:
        MalformedFieldError: If the token does not match the tag grammar
    """
    match = FULL_TAG_PATTERN.match(text or "")
    if not match:
        raise MalformedFieldError(f"Invalid field tag: {text!r}", field_data=text)
    occurrence = match.group(2)
    return match.group(1), int(occurrence) if occurrence is not None else None


@dataclass
class Subfield:
    """A subfield code paired with its value."""
    code: str
    value: str

    def __post_init__(self):
        if not SUBFIELD_CODE_PATTERN.match(self.code or ""):
            raise MalformedFieldError(f"Invalid subfield code: {self.code!r}", field_data=self.code)
        if self.value is None:
            self.value = ""


@dataclass
class Field:
    """
    A PICA+ field: tag, optional occurrence and an ordered list of subfields.

    Attributes:
        tag: Three digits followed by an upper-case letter or '@' (e.g. '021A')
        occurrence: None, or an integer 0..99 rendered as '/NN'
        subfields: Ordered subfields, possibly empty
    """
    tag: str
    occurrence: Optional[int] = None
    subfields: List[Subfield] = field(default_factory=list)

    def __post_init__(self):
        """Validate tag and occurrence."""
        if not TAG_PATTERN.match(self.tag or ""):
            raise MalformedFieldError(f"Invalid field tag: {self.tag!r}", field_data=self.tag)
        if self.occurrence is not None:
            if isinstance(self.occurrence, str):
                if not self.occurrence.isdigit():
                    raise MalformedFieldError(f"Invalid occurrence: {self.occurrence!r}",
                                              field_data=self.occurrence)
                self.occurrence = int(self.occurrence)
            if not 0 <= self.occurrence <= 99:
                raise MalformedFieldError(f"Occurrence out of range: {self.occurrence}",
                                          field_data=str(self.occurrence))
        self.subfields = [sf if isinstance(sf, Subfield) else Subfield(*sf) for sf in self.subfields]

    @classmethod
    def from_full_tag(cls, full_tag: str, *subfields) -> 'Field':
        """Create a field from a 'TAG[/NN]' token and (code, value) pairs."""
        tag, occurrence = parse_full_tag(full_tag)
        return cls(tag, occurrence, list(subfields))

    @property
    def full_tag(self) -> str:
        """Tag with occurrence suffix, e.g. '021A' or '209A/01'."""
        if self.occurrence is None:
            return self.tag
        return f"{self.tag}/{self.occurrence:02d}"

    def add_subfield(self, code: str, value: str) -> None:
        self.subfields.append(Subfield(code, value))

    def subfield_values(self, code: str) -> List[str]:
        return [sf.value for sf in self.subfields if sf.code == code]

    def first_subfield_value(self, code: str) -> Optional[str]:
        for sf in self.subfields:
            if sf.code == code:
                return sf.value
        return None

    def set_subfield(self, code: str, value: str) -> None:
        """Replace the first subfield with this code, or append one."""
        for sf in self.subfields:
            if sf.code == code:
                sf.value = value
                return
        self.add_subfield(code, value)

    def matches(self, tag: str) -> bool:
        """Check whether this field has the given 'TAG' or 'TAG/NN'."""
        if '/' in tag:
            return self.full_tag == tag
        return self.tag == tag

    def __str__(self) -> str:
        return self.full_tag + " " + "".join(f"${sf.code}{sf.value}" for sf in self.subfields)


@dataclass
class Record:
    """
    A PICA+ record: an ordered sequence of fields.

    The record identifier (ppn) is not stored separately; it is the value of
    subfield '0' in field '003@' and is looked up on demand.
    """
    fields: List[Field] = field(default_factory=list)

    def append(self, *new_fields: Field) -> None:
        for f in new_fields:
            if not isinstance(f, Field):
                raise TypeError(f"Expected Field, got {type(f).__name__}")
            self.fields.append(f)

    def fields_with_tag(self, tag: str) -> List[Field]:
        return [f for f in self.fields if f.matches(tag)]

    def subfield_values(self, tag: str, code: str) -> List[str]:
        values = []
        for f in self.fields_with_tag(tag):
            values.extend(f.subfield_values(code))
        return values

    def first_subfield_value(self, tag: str, code: str) -> Optional[str]:
        for f in self.fields_with_tag(tag):
            value = f.first_subfield_value(code)
            if value is not None:
                return value
        return None

    def remove(self, tag: str) -> int:
        """Remove all fields with the given tag; returns the number removed."""
        kept = [f for f in self.fields if not f.matches(tag)]
        removed = len(self.fields) - len(kept)
        self.fields = kept
        return removed

    def set_subfield(self, tag: str, code: str, value: str) -> None:
        """Set a subfield value in the first field with this tag, creating the field if needed."""
        matching = self.fields_with_tag(tag)
        if matching:
            matching[0].set_subfield(code, value)
        else:
            new_field = Field.from_full_tag(tag)
            new_field.add_subfield(code, value)
            self.fields.append(new_field)

    @property
    def ppn(self) -> Optional[str]:
        return self.first_subfield_value(PPN_TAG, PPN_CODE)

    @ppn.setter
    def ppn(self, value: Optional[str]) -> None:
        if value is None:
            self.remove(PPN_TAG)
        else:
            self.set_subfield(PPN_TAG, PPN_CODE, value)

    def tags(self) -> List[str]:
        """Distinct tags in order of first appearance."""
        seen = []
        for f in self.fields:
            if f.tag not in seen:
                seen.append(f.tag)
        return seen

    def is_empty(self) -> bool:
        return not self.fields

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __str__(self) -> str:
        return "\n".join(str(f) for f in self.fields) + "\n"


@dataclass
class DecodeResult:
    """
    Outcome of decoding one raw record.

    Attributes:
        record: The decoded record, or None if the record was malformed as a whole
        errors: Field- or record-level errors found while decoding
        position: 1-based position of the record within its source
    """
    record: Optional[Record] = None
    errors: List[PicaExtractionError] = field(default_factory=list)
    position: int = 0

    @property
    def is_malformed(self) -> bool:
        return self.record is None


@dataclass
class WriterSummary:
    """
    Counters collected by a writer.

    Attributes:
        records_written: Number of records written (or discarded in null mode)
        fields_written: Number of fields written, including standalone fields
        fields_skipped: Fields left out because they have no subfields
        records_rejected: Records not written because a value cannot be represented
        fields_rejected: Standalone fields not written for the same reason
        field_statistics: Tag -> number of fields with that tag
        record_statistics: Tag -> number of records containing that tag
    """
    records_written: int = 0
    fields_written: int = 0
    fields_skipped: int = 0
    records_rejected: int = 0
    fields_rejected: int = 0
    field_statistics: Counter = field(default_factory=Counter)
    record_statistics: Counter = field(default_factory=Counter)


@dataclass
class ParserSummary:
    """
    Counters collected by a parser across one or more sources.

    Attributes:
        records_processed: Every record attempted, including malformed ones
        records_emitted: Records passed on to the record handler
        records_malformed: Records dropped because they could not be decoded
        fields_malformed: Fields dropped from otherwise valid records
        records_empty: Emitted records left without fields after field filtering
    """
    records_processed: int = 0
    records_emitted: int = 0
    records_malformed: int = 0
    fields_malformed: int = 0
    records_empty: int = 0

    @property
    def success_rate(self) -> float:
        """Share of processed records that were decoded, as a percentage."""
        if self.records_processed == 0:
            return 0.0
        return (self.records_processed - self.records_malformed) / self.records_processed * 100


RecordOrField = Union[Record, Field]
