"""
Field selection by tag and optional subfield code.

A selector string is 'TAG', 'TAG/NN', 'TAG$c' or 'TAG/NN$c'. A FieldSelector
instance is a field handler: plugged into PicaParser it keeps only matching
fields (reduced to the selected subfield, if one is given).
"""

import re

from dataclasses import dataclass
from typing import List, Optional

from ..models import Field, Record, Subfield


SELECTOR_PATTERN = re.compile(r'^([0-9]{3}[A-Z@])(?:/([0-9]{2}))?(?:\$([0-9A-Za-z]))?$')


@dataclass
class FieldSelector:
    """
    Selects fields by tag, occurrence and subfield code.

    Attributes:
        tag: Field tag to match
        occurrence: Occurrence to match, or None for any
        code: Subfield code to keep, or None to keep whole fields
    """
    tag: str
    occurrence: Optional[int] = None
    code: Optional[str] = None

    @classmethod
    def parse(cls, selector: str) -> 'FieldSelector':
        """
        Build a selector from its string form.

        Raises:
            ValueError: If the selector is not 'TAG[/NN][$c]'
        """
        match = SELECTOR_PATTERN.match((selector or "").strip())
        if not match:
            raise ValueError(f"Invalid field selector: {selector!r} (expected TAG[/NN][$c])")
        tag, occurrence, code = match.groups()
        return cls(tag, int(occurrence) if occurrence is not None else None, code)

    def matches(self, pica_field: Field) -> bool:
        if pica_field.tag != self.tag:
            return False
        return self.occurrence is None or pica_field.occurrence == self.occurrence

    def __call__(self, pica_field: Field) -> Optional[Field]:
        if not self.matches(pica_field):
            return None
        if self.code is None:
            return pica_field
        values = pica_field.subfield_values(self.code)
        if not values:
            return None
        return Field(pica_field.tag, pica_field.occurrence, [Subfield(self.code, v) for v in values])

    def values(self, record: Record) -> List[str]:
        """All selected subfield values of a record (whole-field text if no code is set)."""
        selected = []
        for pica_field in record.fields:
            if not self.matches(pica_field):
                continue
            if self.code is None:
                selected.append(str(pica_field))
            else:
                selected.extend(pica_field.subfield_values(self.code))
        return selected

    def __str__(self) -> str:
        text = self.tag
        if self.occurrence is not None:
            text += f"/{self.occurrence:02d}"
        if self.code is not None:
            text += f"${self.code}"
        return text
