"""
Unit tests for FieldSelector.
"""

import pytest

from pica_extractor.models import Field, Record
from pica_extractor.processing.selection import FieldSelector


@pytest.fixture
def record():
    return Record([
        Field.from_full_tag("003@", ("0", "1")),
        Field.from_full_tag("045Q/01", ("a", "54.72"), ("j", "Informatik")),
        Field.from_full_tag("045Q/02", ("a", "54.65")),
        Field.from_full_tag("021A", ("a", "Title")),
    ])


class TestFieldSelector:

    @pytest.mark.parametrize("text, expected", [
        ("021A", FieldSelector("021A")),
        ("045Q/01", FieldSelector("045Q", 1)),
        ("045Q$a", FieldSelector("045Q", None, "a")),
        ("045Q/02$j", FieldSelector("045Q", 2, "j")),
    ])
    def test_parse(self, text, expected):
        assert FieldSelector.parse(text) == expected
        assert str(FieldSelector.parse(text)) == text

    @pytest.mark.parametrize("text", ["", "21A", "021A$", "021A/1", "021A$ab"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            FieldSelector.parse(text)

    def test_whole_field(self, record):
        selector = FieldSelector.parse("045Q")
        selected = [selector(f) for f in record.fields]
        assert [f.full_tag for f in selected if f is not None] == ["045Q/01", "045Q/02"]

    def test_occurrence(self, record):
        selector = FieldSelector.parse("045Q/02")
        assert [f.full_tag for f in record.fields if selector(f)] == ["045Q/02"]

    def test_subfield_reduction(self, record):
        selector = FieldSelector.parse("045Q$j")
        selected = [selector(f) for f in record.fields]
        assert selected == [None, Field("045Q", 1, [("j", "Informatik")]), None, None]

    def test_original_field_is_untouched(self, record):
        FieldSelector.parse("045Q$j")(record.fields[1])
        assert len(record.fields[1].subfields) == 2

    def test_values(self, record):
        assert FieldSelector.parse("045Q$a").values(record) == ["54.72", "54.65"]
        assert FieldSelector.parse("021A").values(record) == ["021A $aTitle"]
