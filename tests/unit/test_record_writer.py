"""
Unit tests for PicaWriter output, null mode and statistics.
"""

import io

import pytest

from lxml import etree

from pica_extractor.exceptions import ConfigurationError, InvalidCharacterError
from pica_extractor.models import Field, Record
from pica_extractor.parsing.xml_codec import PICA_XML_NAMESPACE
from pica_extractor.processing.record_writer import PicaWriter


US, RS, GS = "\x1f", "\x1e", "\x1d"


@pytest.fixture
def records():
    return [
        Record([
            Field.from_full_tag("003@", ("0", "1")),
            Field.from_full_tag("021A", ("a", "First")),
            Field.from_full_tag("044K", ("a", "Subject A")),
            Field.from_full_tag("044K", ("a", "Subject B")),
        ]),
        Record([
            Field.from_full_tag("003@", ("0", "2")),
            Field.from_full_tag("021A", ("a", "Second")),
        ]),
    ]


class TestPicaWriter:
    """Test record and field output."""

    def test_normalized_output(self, records):
        output = io.StringIO()
        writer = PicaWriter(output)
        writer.write_record(records[1])
        writer.close()
        assert output.getvalue() == f"003@ {US}02{RS}021A {US}aSecond{RS}{GS}\n"

    def test_plain_output(self, records):
        output = io.StringIO()
        with PicaWriter(output, format="plain") as writer:
            writer.write(*records)
        assert output.getvalue() == (
            "003@ $01\n021A $aFirst\n044K $aSubject A\n044K $aSubject B\n\n"
            "003@ $02\n021A $aSecond\n\n"
        )

    def test_binary_stream(self, records):
        output = io.BytesIO()
        with PicaWriter(output) as writer:
            writer.write_record(records[1])
        assert output.getvalue().startswith(f"003@ {US}02".encode("utf-8"))

    def test_path_output(self, tmp_path, records):
        path = tmp_path / "out.pica"
        with PicaWriter(str(path)) as writer:
            writer.write(*records)
        assert path.read_text(encoding="utf-8").count(GS) == 2

    def test_write_field(self):
        output = io.StringIO()
        writer = PicaWriter(output, format="plain")
        writer.write(Field("021A", None, [("a", "Only")]))
        assert output.getvalue() == "021A $aOnly\n"
        assert writer.counter == 0
        assert writer.fields == 1

    def test_write_rejects_other_objects(self):
        with pytest.raises(TypeError):
            PicaWriter().write("021A $ax")

    def test_unknown_format(self):
        with pytest.raises(ConfigurationError):
            PicaWriter(format="marc")

    def test_invalid_value_is_not_counted(self):
        writer = PicaWriter(io.StringIO())
        with pytest.raises(InvalidCharacterError):
            writer.write_record(Record([Field("021A", None, [("a", "bad\x1dvalue")])]))
        assert writer.counter == 0

    def test_skip_invalid_keeps_writing(self, records):
        output = io.StringIO()
        writer = PicaWriter(output, skip_invalid=True)
        bad = Record([Field("003@", None, [("0", "2\nx")])])
        writer.write(records[1], bad, Field("021A", None, [("a", "line\nbreak")]), records[1])
        writer.close()

        assert output.getvalue() == f"003@ {US}02{RS}021A {US}aSecond{RS}{GS}\n" * 2
        assert writer.counter == 2
        assert writer.summary.records_rejected == 1
        assert writer.summary.fields_rejected == 1
        assert writer.fields == 4


    def test_xml_output_is_a_collection(self, records):
        output = io.StringIO()
        with PicaWriter(output, format="xml", pretty=True) as writer:
            writer.write(*records)

        root = etree.fromstring(output.getvalue().encode("utf-8"))
        assert root.tag == f"{{{PICA_XML_NAMESPACE}}}collection"
        assert len(root) == 2

    def test_xml_output_without_records(self):
        output = io.StringIO()
        writer = PicaWriter(output, format="xml")
        writer.close()
        assert output.getvalue() == ""


class TestStatistics:
    """Test counters and per-tag statistics."""

    def test_counters(self, records):
        writer = PicaWriter()
        writer.write(*records)
        summary = writer.close()

        assert summary.records_written == 2
        assert summary.fields_written == 6
        assert writer.counter == 2
        assert writer.fields == 6

    def test_null_mode(self, records):
        writer = PicaWriter(None, statistics=True)
        writer.write(*records)
        assert writer.is_null
        assert writer.counter == 2

    def test_field_and_record_statistics(self, records):
        writer = PicaWriter(statistics=True)
        writer.write(*records)

        assert writer.field_statistics == {"003@": 2, "021A": 2, "044K": 2}
        assert writer.record_statistics == {"003@": 2, "021A": 2, "044K": 1}

    def test_statistics_disabled(self, records):
        writer = PicaWriter()
        writer.write(*records)
        assert not writer.field_statistics
        assert not writer.record_statistics

    def test_standalone_field_statistics(self):
        writer = PicaWriter(statistics=True)
        writer.write_field(Field("021A", None, [("a", "x")]))
        assert writer.field_statistics["021A"] == 1
        assert not writer.record_statistics

    @pytest.mark.parametrize("format", ["normalized", "plain", "xml"])
    def test_fields_without_subfields_are_not_counted(self, format):
        writer = PicaWriter(format=format, statistics=True)
        writer.write_record(Record([Field("003@", None, [("0", "1")]), Field("021A")]))
        writer.write_field(Field("044K"))

        assert writer.fields == 1
        assert writer.summary.fields_skipped == 2
        assert writer.field_statistics == {"003@": 1}
        assert writer.record_statistics == {"003@": 1}

