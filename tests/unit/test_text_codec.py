"""
Unit tests for the normalized and plain PICA+ text codecs.
"""

import pytest

from pica_extractor.exceptions import InvalidCharacterError, MalformedFieldError, MalformedRecordError
from pica_extractor.models import Field, Record
from pica_extractor.parsing.text_codec import NormalizedCodec, PlainCodec


US, RS, GS = "\x1f", "\x1e", "\x1d"


def decode_all(codec, text, chunk_size=None):
    """Decode text, optionally split into small chunks to exercise buffering."""
    if chunk_size:
        chunks = [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]
    else:
        chunks = [text]
    return list(codec.decode(chunks))


@pytest.fixture
def sample_record():
    return Record([
        Field.from_full_tag("003@", ("0", "012345678")),
        Field.from_full_tag("021A", ("a", "Die Blechtrommel"), ("h", "Günter Grass")),
        Field.from_full_tag("209A/01", ("a", "Mag 12$34"), ("x", "00")),
    ])


class TestNormalizedDecoding:
    """Test decoding of normalized PICA+."""

    @pytest.fixture
    def codec(self):
        return NormalizedCodec()

    def test_decode_single_record(self, codec):
        text = f"003@ {US}0123{RS}021A {US}aTitle{US}dSub{RS}{GS}\n"
        results = decode_all(codec, text)

        assert len(results) == 1
        record = results[0].record
        assert record.ppn == "123"
        assert record.fields[1] == Field("021A", None, [("a", "Title"), ("d", "Sub")])
        assert results[0].errors == []
        assert results[0].position == 1

    def test_space_after_tag_is_optional(self, codec):
        pica_field = codec.decode_field(f"209A/01{US}aShelf")
        assert pica_field == Field("209A", 1, [("a", "Shelf")])

    def test_decode_across_small_chunks(self, codec, sample_record):
        text = (codec.encode_record(sample_record) + "\n") * 3
        results = decode_all(codec, text, chunk_size=7)
        assert [r.record for r in results] == [sample_record] * 3
        assert [r.position for r in results] == [1, 2, 3]

    def test_whitespace_between_records_is_ignored(self, codec):
        text = f"\n\n003@ {US}01{RS}{GS}\n\n  \n003@ {US}02{RS}{GS}\n\n"
        assert [r.record.ppn for r in decode_all(codec, text)] == ["1", "2"]

    def test_empty_input(self, codec):
        assert decode_all(codec, "") == []

    def test_bare_terminator_is_an_empty_record(self, codec):
        text = f"003@ {US}01{RS}{GS}\n{GS}\n003@ {US}02{RS}{GS}\n"
        results = decode_all(codec, text)

        assert [r.position for r in results] == [1, 2, 3]
        assert results[1].record == Record()
        assert results[1].errors == []

    @pytest.mark.parametrize("chunk_size", [None, 1, 4])
    def test_many_records(self, codec, chunk_size):
        text = "".join(f"003@ {US}0{n}{RS}{GS}" for n in range(250))
        results = decode_all(codec, text, chunk_size=chunk_size)
        assert [r.record.ppn for r in results] == [str(n) for n in range(250)]

    def test_undecodable_bytes_affect_only_their_record(self, codec):
        # bytes read with surrogate escapes, as SourceUtils.iter_text_chunks delivers them
        text = f"003@ {US}01{RS}{GS}\n003@ {US}0\udcff{RS}{GS}\n003@ {US}03{RS}{GS}\n"
        results = decode_all(codec, text)

        assert [r.record.ppn for r in results if not r.is_malformed] == ["1", "3"]
        assert isinstance(results[1].errors[0], MalformedRecordError)
        assert results[1].errors[0].source_record_id == "#2"


    def test_malformed_field_is_dropped(self, codec):
        text = f"003@ {US}0123{RS}21A {US}abad{RS}021A {US}aTitle{RS}{GS}"
        result = decode_all(codec, text)[0]

        assert result.record.tags() == ["003@", "021A"]
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], MalformedFieldError)
        assert result.errors[0].source_record_id == "123"

    def test_field_without_subfields_is_dropped(self, codec):
        text = f"003@ {US}0123{RS}021A {RS}{GS}"
        result = decode_all(codec, text)[0]
        assert result.record.tags() == ["003@"]
        assert len(result.errors) == 1

    def test_unterminated_last_field_is_dropped(self, codec):
        text = f"003@ {US}0123{RS}021A {US}aTitle{GS}"
        result = decode_all(codec, text)[0]
        assert result.record.tags() == ["003@"]
        assert "terminator" in str(result.errors[0])

    def test_bad_first_field_makes_record_malformed(self, codec):
        text = f"xyz {US}0123{RS}021A {US}aTitle{RS}{GS}003@ {US}0456{RS}{GS}"
        results = decode_all(codec, text)

        assert results[0].is_malformed
        assert isinstance(results[0].errors[0], MalformedRecordError)
        assert results[0].errors[0].source_record_id == "#1"
        assert results[1].record.ppn == "456"

    def test_truncated_final_record(self, codec):
        text = f"003@ {US}0123{RS}{GS}\n003@ {US}0456{RS}021A {US}aTi"
        results = decode_all(codec, text)

        assert len(results) == 2
        assert results[0].record.ppn == "123"
        assert results[1].is_malformed
        assert isinstance(results[1].errors[0], MalformedRecordError)
        assert results[1].position == 2

    def test_decode_is_lazy(self, codec):
        pulled = []

        def chunks():
            for part in [f"003@ {US}01{RS}{GS}", f"003@ {US}02{RS}{GS}", f"003@ {US}03{RS}{GS}"]:
                pulled.append(part)
                yield part

        iterator = codec.decode(chunks())
        assert next(iterator).record.ppn == "1"
        assert len(pulled) == 1


class TestNormalizedEncoding:
    """Test encoding, round trips and reserved character checks."""

    @pytest.fixture
    def codec(self):
        return NormalizedCodec()

    def test_encode_field(self, codec):
        pica_field = Field("028A", 1, [("a", "X"), ("b", "Y")])
        assert codec.encode_field(pica_field) == f"028A/01 {US}aX{US}bY{RS}"

    def test_encode_record(self, codec):
        record = Record([Field("003@", None, [("0", "1")])])
        assert codec.encode_record(record) == f"003@ {US}01{RS}{GS}"

    def test_field_without_subfields_is_not_written(self, codec):
        record = Record([Field("003@", None, [("0", "1")]), Field("021A")])
        assert codec.encode_record(record) == f"003@ {US}01{RS}{GS}"

    def test_round_trip(self, codec, sample_record):
        encoded = codec.encode_record(sample_record)
        decoded = decode_all(codec, encoded)[0]
        assert decoded.record == sample_record
        assert codec.encode_record(decoded.record) == encoded

    def test_empty_record_round_trip(self, codec):
        encoded = codec.encode_record(Record())
        assert encoded == GS
        results = decode_all(codec, encoded + "\n")
        assert [r.record for r in results] == [Record()]
        assert codec.encode_record(results[0].record) == encoded


    def test_encoding_is_idempotent(self, codec, sample_record):
        assert codec.encode_record(sample_record) == codec.encode_record(sample_record)

    @pytest.mark.parametrize("value", ["a\x1fb", "a\x1eb", "a\x1db", "line\nbreak", "carriage\rreturn"])
    def test_reserved_characters_are_rejected(self, codec, value):
        pica_field = Field("021A", None, [("a", value)])
        with pytest.raises(InvalidCharacterError):
            codec.encode_field(pica_field)


class TestPlainCodec:
    """Test the human-readable plain format."""

    @pytest.fixture
    def codec(self):
        return PlainCodec()

    def test_decode_records_separated_by_blank_line(self, codec):
        text = "003@ $0123\n021A $aTitle$dSub\n\n003@ $0456\n"
        results = decode_all(codec, text)

        assert [r.record.ppn for r in results] == ["123", "456"]
        assert results[0].record.first_subfield_value("021A", "d") == "Sub"

    def test_dollar_escape(self, codec):
        pica_field = codec.decode_field("021A $aPrice: 10$$$hAuthor")
        assert pica_field.subfield_values("a") == ["Price: 10$"]
        assert pica_field.subfield_values("h") == ["Author"]
        assert codec.encode_field(pica_field) == "021A $aPrice: 10$$$hAuthor\n"

    def test_comment_lines_are_skipped(self, codec):
        text = "# exported records\n003@ $0123\n"
        assert decode_all(codec, text)[0].record.tags() == ["003@"]

    def test_occurrence(self, codec):
        assert codec.decode_field("209A/03 $aShelf") == Field("209A", 3, [("a", "Shelf")])

    def test_malformed_line_is_dropped(self, codec):
        result = decode_all(codec, "003@ $0123\nnot a field\n021A $aTitle\n")[0]
        assert result.record.tags() == ["003@", "021A"]
        assert isinstance(result.errors[0], MalformedFieldError)

    def test_bad_first_line_makes_record_malformed(self, codec):
        result = decode_all(codec, "garbage\n003@ $0123\n")[0]
        assert result.is_malformed

    def test_undecodable_bytes_affect_only_their_record(self, codec):
        results = decode_all(codec, "003@ $01\n\n003@ $0\udcfe\n\n003@ $03\n")
        assert [r.is_malformed for r in results] == [False, True, False]
        assert isinstance(results[1].errors[0], MalformedRecordError)


    def test_round_trip(self, codec, sample_record):
        encoded = codec.encode_record(sample_record)
        assert encoded.splitlines()[2] == "209A/01 $aMag 12$$34$x00"
        assert decode_all(codec, encoded)[0].record == sample_record

    def test_decode_across_small_chunks(self, codec, sample_record):
        text = (codec.encode_record(sample_record) + "\n") * 2
        results = decode_all(codec, text, chunk_size=5)
        assert [r.record for r in results] == [sample_record] * 2

    def test_reserved_characters_are_rejected(self, codec):
        with pytest.raises(InvalidCharacterError):
            codec.encode_field(Field("021A", None, [("a", "two\nlines")]))
